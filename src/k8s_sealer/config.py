"""Process configuration for k8s-sealer.

Settings are read from the environment once at startup and passed to
the seal service. The per-cluster and per-domain lookups used while
handling a request are pure functions of this object.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from k8s_sealer.exceptions import InvalidClusterError, UnsupportedDomainError
from k8s_sealer.models import ClusterName, ControllerInfo, OutputFormat, TLSFiles

DEFAULT_CONTROLLER_NAMESPACE = "kube-system"
DEFAULT_CONTROLLER_NAME = "sealed-secrets-controller"

# Order matters: ".services.teko.vn" must be tried before ".teko.vn"
DOMAIN_SUFFIXES: tuple[tuple[str, str], ...] = (
    (".services.teko.vn", "SERVICES"),
    (".teko.vn", "TEKO"),
    (".vnshop.vn", "VNSHOP"),
)


@dataclass(frozen=True)
class Settings:
    """Read-only service configuration.

    Attributes:
        output_format: Serialization format for sealed secrets.
        registry_host: Docker registry host used for dockerconfigjson secrets.
        controller_namespace: Namespace of the SealedSecrets controller.
        controller_name: Service name of the SealedSecrets controller.
        cert_files: Certificate file path per cluster. Empty means fetch
            the certificate from the cluster.
        kubeconfig_files: Kubeconfig path per cluster. Empty means the
            client library's default location.
        tls_files: Certificate and key paths per domain suffix.

    """

    output_format: str = OutputFormat.JSON.value
    registry_host: str = ""
    controller_namespace: str = DEFAULT_CONTROLLER_NAMESPACE
    controller_name: str = DEFAULT_CONTROLLER_NAME
    cert_files: Mapping[ClusterName, str] = field(default_factory=dict)
    kubeconfig_files: Mapping[ClusterName, str] = field(default_factory=dict)
    tls_files: Mapping[str, TLSFiles] = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: str | None) -> "Settings":
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.
            **overrides: Scalar settings taking precedence over the
                environment. None values are ignored.

        Returns:
            A populated Settings instance.

        """
        env = os.environ if environ is None else environ

        values: dict[str, str] = {
            "output_format": env.get("OUTPUT_FORMAT") or OutputFormat.JSON.value,
            "registry_host": env.get("REGISTRY_HOST", ""),
            "controller_namespace": env.get("CONTROLLER_NAMESPACE") or DEFAULT_CONTROLLER_NAMESPACE,
            "controller_name": env.get("CONTROLLER_NAME") or DEFAULT_CONTROLLER_NAME,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})

        return cls(
            cert_files={c: env.get(f"{c.env_prefix}_CERT_FILE", "") for c in ClusterName},
            kubeconfig_files={c: env.get(f"{c.env_prefix}_KUBECONFIG_FILE", "") for c in ClusterName},
            tls_files={
                suffix: TLSFiles(
                    cert_file=env.get(f"{prefix}_TLS_CERT_FILE", ""),
                    key_file=env.get(f"{prefix}_TLS_KEY_FILE", ""),
                )
                for suffix, prefix in DOMAIN_SUFFIXES
            },
            **values,
        )

    @property
    def controller(self) -> ControllerInfo:
        """The SealedSecrets controller service to fetch certificates from."""
        return ControllerInfo(name=self.controller_name, namespace=self.controller_namespace)

    def cert_file_path(self, cluster: str) -> str:
        """Return the certificate file configured for a cluster.

        Raises:
            InvalidClusterError: If the cluster is not a known cluster.

        """
        return self.cert_files.get(parse_cluster(cluster), "")

    def kubeconfig_file(self, cluster: str) -> str:
        """Return the kubeconfig file configured for a cluster.

        Raises:
            InvalidClusterError: If the cluster is not a known cluster.

        """
        return self.kubeconfig_files.get(parse_cluster(cluster), "")

    def tls_files_for(self, domain: str) -> TLSFiles:
        """Return the TLS certificate and key files serving a domain.

        Args:
            domain: Fully qualified domain name.

        Returns:
            TLSFiles for the first suffix the domain ends with.

        Raises:
            UnsupportedDomainError: If no configured suffix matches.

        """
        for suffix, _ in DOMAIN_SUFFIXES:
            if domain.endswith(suffix):
                return self.tls_files.get(suffix, TLSFiles(cert_file="", key_file=""))

        supported = " or ".join(f"*{suffix}" for suffix, _ in DOMAIN_SUFFIXES)
        raise UnsupportedDomainError(f"Unsupported domain: {domain}. Domain must be {supported}")


def parse_cluster(cluster: str) -> ClusterName:
    """Convert a cluster identifier to a ClusterName.

    Raises:
        InvalidClusterError: If the identifier is not a known cluster.

    """
    try:
        return ClusterName(cluster)
    except ValueError as err:
        raise InvalidClusterError(f"Invalid cluster: {cluster}") from err
