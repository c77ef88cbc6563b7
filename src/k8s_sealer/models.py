"""Data models for k8s-sealer.

This module provides type-safe data structures shared by the
configuration, the secret builders and the HTTP layer.
"""

from enum import Enum
from typing import NamedTuple


class ClusterName(str, Enum):
    """Clusters a secret can be sealed for.

    Inherits from str so members compare equal to the identifiers
    sent by clients.
    """

    PRODUCTION = "production"
    LAB = "lab"
    DEV = "dev"
    STAGE = "stage"

    @property
    def env_prefix(self) -> str:
        """Prefix of the environment variables configuring this cluster."""
        return _CLUSTER_ENV_PREFIXES[self]


_CLUSTER_ENV_PREFIXES = {
    ClusterName.PRODUCTION: "PROD",
    ClusterName.LAB: "LAB",
    ClusterName.DEV: "DEV",
    ClusterName.STAGE: "STAGE",
}


class SecretType(str, Enum):
    """Supported Kubernetes secret types."""

    OPAQUE = "Opaque"
    DOCKER_CONFIG_JSON = "kubernetes.io/dockerconfigjson"
    TLS = "kubernetes.io/tls"


class OutputFormat(str, Enum):
    """Serialization formats for sealed secrets."""

    JSON = "json"
    YAML = "yaml"


class ControllerInfo(NamedTuple):
    """Location of the SealedSecrets controller service.

    Attributes:
        name: The controller service name.
        namespace: The namespace where the controller is deployed.

    """

    name: str
    namespace: str


class TLSFiles(NamedTuple):
    """Certificate and key files configured for a domain suffix.

    Attributes:
        cert_file: Path to the PEM certificate chain.
        key_file: Path to the PEM private key.

    """

    cert_file: str
    key_file: str
