"""Kubernetes cluster interaction utilities.

This module fetches the SealedSecrets controller's public certificate
through the Kubernetes API service proxy, the same endpoint kubeseal
uses for --fetch-cert.
"""

from typing import BinaryIO, Protocol

from icecream import ic
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError, MaxRetryError

from k8s_sealer.exceptions import CertFetchError
from k8s_sealer.models import ControllerInfo

CERT_PROXY_PATH = "/api/v1/namespaces/{namespace}/services/{name}/proxy/v1/cert.pem"
PEM_ACCEPT = "application/x-pem-file, */*"


class CertificateFetcher(Protocol):
    """Opens the controller's PEM certificate as a readable stream."""

    def open_certificate(self, kubeconfig: str, controller: ControllerInfo) -> BinaryIO:
        """Open the certificate served by the controller.

        Args:
            kubeconfig: Path to the cluster's kubeconfig, or empty for
                the default location.
            controller: The controller service to read from.

        Returns:
            A binary stream of PEM data. The caller closes it.

        Raises:
            CertFetchError: If the certificate cannot be fetched.

        """
        ...


class ClusterCertificateFetcher:
    """Fetches the controller certificate from a live cluster."""

    def open_certificate(self, kubeconfig: str, controller: ControllerInfo) -> BinaryIO:
        """Fetch the certificate through the API server's service proxy.

        Raises:
            CertFetchError: If the cluster cannot be reached or refuses the request.

        """
        api_client = self._api_client(kubeconfig)
        proxy_name = f"http:{controller.name}:"
        ic(kubeconfig, controller.namespace, proxy_name)

        try:
            return api_client.call_api(
                CERT_PROXY_PATH,
                "GET",
                path_params={"namespace": controller.namespace, "name": proxy_name},
                header_params={"Accept": PEM_ACCEPT},
                auth_settings=["BearerToken"],
                _return_http_data_only=True,
                _preload_content=False,
            )
        except ApiException as e:
            raise CertFetchError(f"Error fetching certificate: {e.status} {e.reason}") from e
        except MaxRetryError as e:
            raise CertFetchError(f"Failed to connect to the Kubernetes cluster: {e.reason}") from e
        except HTTPError as e:
            raise CertFetchError(f"Error fetching certificate: {e}") from e

    @staticmethod
    def _api_client(kubeconfig: str) -> client.ApiClient:
        """Build an API client for a cluster.

        An explicit kubeconfig must load. Without one, the default
        kubeconfig location is tried first and the in-cluster service
        account second.

        Raises:
            CertFetchError: If no usable configuration is found.

        """
        try:
            return config.new_client_from_config(config_file=kubeconfig or None)
        except (ConfigException, OSError) as e:
            if kubeconfig:
                raise CertFetchError(f"Invalid or missing kubeconfig '{kubeconfig}': {e}") from e

        configuration = client.Configuration()
        try:
            config.load_incluster_config(client_configuration=configuration)
        except ConfigException as e:
            raise CertFetchError(f"Invalid or missing kubeconfig: {e}") from e
        return client.ApiClient(configuration)
