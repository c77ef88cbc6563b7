"""Sealing certificate acquisition and public key parsing."""

from typing import BinaryIO

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa
from icecream import ic
from urllib3.exceptions import HTTPError

from k8s_sealer.cluster import CertificateFetcher
from k8s_sealer.exceptions import (
    CertFetchError,
    CertFileUnavailableError,
    NoCertificatesFoundError,
    UnsupportedKeyTypeError,
)
from k8s_sealer.models import ControllerInfo


def open_certificate(
    cert_file: str,
    kubeconfig: str,
    controller: ControllerInfo,
    fetcher: CertificateFetcher,
) -> BinaryIO:
    """Open the sealing certificate for a cluster.

    A configured certificate file takes precedence. Without one, the
    certificate is fetched from the controller running in the cluster.

    Args:
        cert_file: Local certificate path, or empty.
        kubeconfig: Kubeconfig path used when fetching from the cluster.
        controller: The controller service serving the certificate.
        fetcher: Cluster access used when no file is configured.

    Returns:
        A binary stream of PEM data. The caller closes it.

    Raises:
        CertFileUnavailableError: If the configured file cannot be opened.
        CertFetchError: If the certificate cannot be fetched.

    """
    if cert_file:
        ic(cert_file)
        try:
            return open(cert_file, "rb")
        except OSError as e:
            raise CertFileUnavailableError(f"Cannot open cert file '{cert_file}': {e.strerror}") from e

    return fetcher.open_certificate(kubeconfig, controller)


def parse_public_key(stream: BinaryIO) -> rsa.RSAPublicKey:
    """Read PEM certificates from a stream and return the first one's key.

    Args:
        stream: Binary stream of PEM encoded certificates.

    Returns:
        The RSA public key of the first certificate.

    Raises:
        CertFetchError: If the stream breaks while being read.
        NoCertificatesFoundError: If the data holds no parseable certificate.
        UnsupportedKeyTypeError: If the key is not an RSA key.

    """
    try:
        data = stream.read()
    except HTTPError as e:
        raise CertFetchError(f"Failed to read certificate from cluster: {e}") from e
    except OSError as e:
        raise CertFileUnavailableError(f"Failed to read certificate: {e}") from e

    try:
        certs = x509.load_pem_x509_certificates(data)
    except ValueError as e:
        raise NoCertificatesFoundError(f"Failed to read any certificates: {e}") from e

    if not certs:
        raise NoCertificatesFoundError("Failed to read any certificates")

    try:
        public_key = certs[0].public_key()
    except (ValueError, UnsupportedAlgorithm) as e:
        raise UnsupportedKeyTypeError(f"Cannot load certificate public key: {e}") from e
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise UnsupportedKeyTypeError(f"Expected RSA public key but found {type(public_key).__name__}")

    return public_key


def load_public_key(
    cert_file: str,
    kubeconfig: str,
    controller: ControllerInfo,
    fetcher: CertificateFetcher,
) -> rsa.RSAPublicKey:
    """Open a cluster's sealing certificate and return its public key."""
    stream = open_certificate(cert_file, kubeconfig, controller, fetcher)
    try:
        return parse_public_key(stream)
    finally:
        stream.close()
