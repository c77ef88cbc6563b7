"""Seal service.

This module provides the SealService class which coordinates certificate
resolution, secret creation, sealing and serialization for each of the
supported secret types.
"""

from collections.abc import Mapping

from icecream import ic
from kubernetes.client import V1Secret

from k8s_sealer import console
from k8s_sealer.certificates import load_public_key
from k8s_sealer.cluster import CertificateFetcher, ClusterCertificateFetcher
from k8s_sealer.config import Settings
from k8s_sealer.secrets.creation import create_dockerconfigjson_secret, create_opaque_secret, create_tls_secret
from k8s_sealer.secrets.encoding import encode_sealed_secret
from k8s_sealer.secrets.sealing import HybridSealer, Sealer, strip_server_metadata


class SealService:
    """Seals secrets for the configured clusters.

    Attributes:
        settings: Read-only service configuration.
        fetcher: Cluster access used when a cluster has no certificate file.
        sealer: The sealing implementation.

    """

    def __init__(
        self,
        settings: Settings,
        *,
        fetcher: CertificateFetcher | None = None,
        sealer: Sealer | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher: CertificateFetcher = fetcher or ClusterCertificateFetcher()
        self.sealer: Sealer = sealer or HybridSealer()

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"SealService(output_format={self.settings.output_format!r}, controller={self.settings.controller!r})"

    def seal_opaque(self, cluster: str, name: str, namespace: str, data: Mapping[str, bytes]) -> bytes:
        """Seal an Opaque secret.

        Args:
            cluster: The cluster to seal for.
            name: The name of the secret.
            namespace: The namespace of the secret.
            data: Mapping of key to raw value.

        Returns:
            The encoded SealedSecret manifest.

        """
        cert_file, kubeconfig = self._cluster_paths(cluster)
        secret = create_opaque_secret(name, namespace, data)
        return self._seal(secret, cert_file, kubeconfig)

    def seal_dockerconfigjson(self, cluster: str, name: str, namespace: str, username: str, password: str) -> bytes:
        """Seal a docker-registry secret for the configured registry host.

        Returns:
            The encoded SealedSecret manifest.

        """
        cert_file, kubeconfig = self._cluster_paths(cluster)
        secret = create_dockerconfigjson_secret(name, namespace, self.settings.registry_host, username, password)
        return self._seal(secret, cert_file, kubeconfig)

    def seal_tls(self, cluster: str, namespace: str, domain: str) -> bytes:
        """Seal the TLS pair configured for a domain.

        Returns:
            The encoded SealedSecret manifest.

        """
        cert_file, kubeconfig = self._cluster_paths(cluster)
        secret = create_tls_secret(namespace, domain, self.settings.tls_files_for(domain))
        return self._seal(secret, cert_file, kubeconfig)

    def _cluster_paths(self, cluster: str) -> tuple[str, str]:
        return self.settings.cert_file_path(cluster), self.settings.kubeconfig_file(cluster)

    def _seal(self, secret: V1Secret, cert_file: str, kubeconfig: str) -> bytes:
        strip_server_metadata(secret)

        public_key = load_public_key(cert_file, kubeconfig, self.settings.controller, self.fetcher)
        sealed_secret = self.sealer.seal(secret, public_key)
        ic(sealed_secret)

        output = encode_sealed_secret(sealed_secret, self.settings.output_format)
        source = cert_file or f"{self.settings.controller_namespace}/{self.settings.controller_name}"
        console.success(
            f"Sealed {secret.type} secret "
            f"{console.highlight(f'{secret.metadata.namespace}/{secret.metadata.name}')} with {source}"
        )
        return output
