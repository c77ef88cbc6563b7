"""Custom exceptions for k8s-sealer.

This module defines the exception hierarchy used throughout the service.
The HTTP layer maps MalformedRequestBodyError to 403 and every other
SealerError to a generic 500 response.
"""


class SealerError(Exception):
    """Base exception for all k8s-sealer errors.

    All custom exceptions in this package inherit from this class,
    allowing callers to catch all k8s-sealer errors with a single
    except clause.
    """

    pass


class InvalidClusterError(SealerError):
    """Raised when a cluster identifier is not one of the known clusters.

    Known clusters are production, lab, dev and stage.
    """

    pass


class CertFileUnavailableError(SealerError):
    """Raised when a configured certificate file cannot be opened."""

    pass


class CertFetchError(SealerError):
    """Raised when the certificate cannot be fetched from the cluster.

    This can occur when:
    - The kubeconfig is invalid or missing
    - The cluster is unreachable
    - The controller service does not exist or returns an error
    """

    pass


class NoCertificatesFoundError(SealerError):
    """Raised when the PEM data does not contain any certificate."""

    pass


class UnsupportedKeyTypeError(SealerError):
    """Raised when the certificate's public key is not an RSA key."""

    pass


class UnsupportedDomainError(SealerError):
    """Raised when a TLS domain does not match any configured suffix."""

    pass


class CertOrKeyReadError(SealerError):
    """Raised when a TLS certificate or key file cannot be read."""

    pass


class UnsupportedOutputFormatError(SealerError):
    """Raised when the output format is neither json nor yaml."""

    pass


class SealingError(SealerError):
    """Raised when a secret cannot be sealed.

    This can occur when:
    - The secret is missing a name or namespace
    - The name or namespace is not a valid Kubernetes name
    - A value cannot be encrypted with the public key
    """

    pass


class EncodingError(SealerError):
    """Raised when a sealed secret cannot be serialized."""

    pass


class MalformedRequestBodyError(SealerError):
    """Raised when a request body cannot be decoded."""

    pass
