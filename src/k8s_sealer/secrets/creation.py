"""Secret creation functions.

This module builds the plaintext Kubernetes secrets that get sealed:
opaque key/value secrets, docker registry credentials and TLS pairs.
Values are stored base64 encoded in ``V1Secret.data``, as the
Kubernetes API carries them.
"""

import base64
import json
from collections.abc import Mapping

from icecream import ic
from kubernetes.client import V1ObjectMeta, V1Secret

from k8s_sealer.exceptions import CertOrKeyReadError
from k8s_sealer.models import SecretType, TLSFiles

DOCKER_CONFIG_JSON_KEY = ".dockerconfigjson"
TLS_CERT_KEY = "tls.crt"
TLS_PRIVATE_KEY_KEY = "tls.key"


def create_secret(name: str, namespace: str, secret_type: SecretType, data: Mapping[str, bytes]) -> V1Secret:
    """Create a raw Kubernetes secret.

    Args:
        name: The name of the secret.
        namespace: The namespace of the secret.
        secret_type: The Kubernetes secret type.
        data: Mapping of key to raw value.

    Returns:
        A V1Secret holding the base64 encoded values.

    """
    return V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=V1ObjectMeta(name=name, namespace=namespace),
        type=secret_type.value,
        data={key: base64.b64encode(value).decode("ascii") for key, value in data.items()},
    )


def secret_payload(secret: V1Secret) -> dict[str, bytes]:
    """Return the decoded values of a secret."""
    return {key: base64.b64decode(value) for key, value in (secret.data or {}).items()}


def create_opaque_secret(name: str, namespace: str, data: Mapping[str, bytes]) -> V1Secret:
    """Create an Opaque secret from arbitrary key/value data."""
    ic(name, namespace, list(data))
    return create_secret(name, namespace, SecretType.OPAQUE, data)


def create_dockerconfigjson(host: str, username: str, password: str) -> bytes:
    """Create a docker config.json for registry authentication.

    Args:
        host: The registry host.
        username: The registry username.
        password: The registry password.

    Returns:
        The compact JSON document as bytes.

    """
    auth = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    document = {"auths": {host: {"auth": auth}}}
    return json.dumps(document, separators=(",", ":")).encode()


def create_dockerconfigjson_secret(
    name: str,
    namespace: str,
    registry_host: str,
    username: str,
    password: str,
) -> V1Secret:
    """Create a docker-registry secret for the configured registry.

    Credentials are never traced, only the secret's coordinates.
    """
    ic(name, namespace, registry_host)
    data = {DOCKER_CONFIG_JSON_KEY: create_dockerconfigjson(registry_host, username, password)}
    return create_secret(name, namespace, SecretType.DOCKER_CONFIG_JSON, data)


def read_tls_pair(tls_files: TLSFiles) -> tuple[bytes, bytes]:
    """Read a TLS certificate and private key from disk.

    Args:
        tls_files: Paths of the certificate and key.

    Returns:
        The certificate and key contents.

    Raises:
        CertOrKeyReadError: If either file cannot be read.

    """
    try:
        with open(tls_files.cert_file, "rb") as f:
            cert = f.read()
    except OSError as e:
        raise CertOrKeyReadError("Cannot read tls cert file") from e

    try:
        with open(tls_files.key_file, "rb") as f:
            key = f.read()
    except OSError as e:
        raise CertOrKeyReadError("Cannot read tls key file") from e

    return cert, key


def create_tls_secret(namespace: str, domain: str, tls_files: TLSFiles) -> V1Secret:
    """Create a TLS secret named after the domain it serves.

    Args:
        namespace: The namespace of the secret.
        domain: The domain, used to name the secret ``<domain>-tls``.
        tls_files: Certificate and key paths for the domain's suffix.

    Returns:
        A kubernetes.io/tls V1Secret.

    Raises:
        CertOrKeyReadError: If the certificate or key cannot be read.

    """
    ic(namespace, domain, tls_files)
    cert, key = read_tls_pair(tls_files)
    data = {TLS_CERT_KEY: cert, TLS_PRIVATE_KEY_KEY: key}
    return create_secret(f"{domain}-tls", namespace, SecretType.TLS, data)
