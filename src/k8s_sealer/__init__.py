"""k8s-sealer: HTTP API sealing Kubernetes secrets.

This package turns plaintext Kubernetes secrets into SealedSecret
manifests that can safely be committed to source control.

Example usage:
    from k8s_sealer import SealService, Settings

    service = SealService(Settings.from_env())
    manifest = service.seal_opaque("dev", "db-creds", "default", {"password": b"hunter2"})
"""

__version__ = "0.1.0"

from k8s_sealer.api import create_app
from k8s_sealer.cli import cli
from k8s_sealer.config import Settings
from k8s_sealer.exceptions import (
    CertFetchError,
    CertFileUnavailableError,
    CertOrKeyReadError,
    EncodingError,
    InvalidClusterError,
    MalformedRequestBodyError,
    NoCertificatesFoundError,
    SealerError,
    SealingError,
    UnsupportedDomainError,
    UnsupportedKeyTypeError,
    UnsupportedOutputFormatError,
)
from k8s_sealer.service import SealService

__all__ = [
    # Version
    "__version__",
    # Main CLI
    "cli",
    # Classes
    "SealService",
    "Settings",
    "create_app",
    # Exceptions
    "SealerError",
    "InvalidClusterError",
    "CertFileUnavailableError",
    "CertFetchError",
    "NoCertificatesFoundError",
    "UnsupportedKeyTypeError",
    "UnsupportedDomainError",
    "CertOrKeyReadError",
    "UnsupportedOutputFormatError",
    "SealingError",
    "EncodingError",
    "MalformedRequestBodyError",
]
