"""Secret sealing operations.

This module turns a plaintext V1Secret into a SealedSecret manifest the
sealed-secrets controller can decrypt. Every value is encrypted with the
controller's hybrid scheme: a random AES-256-GCM session key per value,
itself encrypted with RSA-OAEP (SHA-256) under the controller's public
key and a label binding the value to its scope.
"""

import base64
import os
import re
import struct
from typing import Any, Protocol

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from icecream import ic
from kubernetes.client import V1Secret

from k8s_sealer.exceptions import SealingError
from k8s_sealer.secrets.creation import secret_payload

SEALED_SECRET_API_VERSION = "bitnami.com/v1alpha1"
SEALED_SECRET_KIND = "SealedSecret"

NAMESPACE_WIDE_ANNOTATION = "sealedsecrets.bitnami.com/namespace-wide"
CLUSTER_WIDE_ANNOTATION = "sealedsecrets.bitnami.com/cluster-wide"

_SESSION_KEY_BYTES = 32
_GCM_NONCE_BYTES = 12

# Kubernetes DNS subdomain name validation (RFC 1123)
_DNS_SUBDOMAIN_MAX_LENGTH = 253
_DNS_SUBDOMAIN_PATTERN = r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"


class Sealer(Protocol):
    """Seals a plaintext secret with a cluster's public key."""

    def seal(self, secret: V1Secret, public_key: rsa.RSAPublicKey) -> dict[str, Any]:
        """Return the SealedSecret manifest for a secret.

        Raises:
            SealingError: If the secret is malformed or encryption fails.

        """
        ...


def validate_k8s_name(name: str | None) -> bool | str:
    """Validate a Kubernetes resource name (DNS subdomain).

    Args:
        name: The name to validate.

    Returns:
        True if valid, or an error message string if invalid.

    """
    if not name:
        return "Name cannot be empty"
    if len(name) > _DNS_SUBDOMAIN_MAX_LENGTH:
        return f"Name must be {_DNS_SUBDOMAIN_MAX_LENGTH} characters or less"
    if not re.match(_DNS_SUBDOMAIN_PATTERN, name):
        return "Name must consist of lowercase alphanumeric characters, '-' or '.', and must start and end with an alphanumeric character"
    return True


def strip_server_metadata(secret: V1Secret) -> V1Secret:
    """Clear the read-only metadata a cluster stamps on stored objects.

    Args:
        secret: The secret to clean up in place.

    Returns:
        The same secret, for chaining.

    """
    metadata = secret.metadata
    metadata.self_link = None
    metadata.uid = None
    metadata.resource_version = None
    metadata.generation = None
    metadata.creation_timestamp = None
    metadata.deletion_timestamp = None
    metadata.deletion_grace_period_seconds = None
    return secret


def encryption_label(secret: V1Secret) -> bytes:
    """Return the OAEP label binding sealed values to the secret's scope.

    Strict scope (the default) binds to namespace and name, namespace-wide
    scope to the namespace only, and cluster-wide scope to nothing.
    """
    annotations = secret.metadata.annotations or {}
    if annotations.get(CLUSTER_WIDE_ANNOTATION) == "true":
        return b""
    if annotations.get(NAMESPACE_WIDE_ANNOTATION) == "true":
        return secret.metadata.namespace.encode()
    return f"{secret.metadata.namespace}/{secret.metadata.name}".encode()


def hybrid_encrypt(public_key: rsa.RSAPublicKey, plaintext: bytes, label: bytes) -> bytes:
    """Encrypt a value with a one-time session key wrapped for the controller.

    The output is the big-endian length of the RSA ciphertext (2 bytes),
    the RSA ciphertext and the AES-GCM ciphertext.
    """
    session_key = os.urandom(_SESSION_KEY_BYTES)
    rsa_ciphertext = public_key.encrypt(
        session_key,
        padding.OAEP(
            mgf=padding.MGF1(algorithm=hashes.SHA256()),
            algorithm=hashes.SHA256(),
            label=label or None,
        ),
    )
    # The session key is used once, so a zero nonce is safe
    aes_ciphertext = AESGCM(session_key).encrypt(bytes(_GCM_NONCE_BYTES), plaintext, None)
    return struct.pack(">H", len(rsa_ciphertext)) + rsa_ciphertext + aes_ciphertext


class HybridSealer:
    """Seals secrets in the format of the sealed-secrets controller."""

    def seal(self, secret: V1Secret, public_key: rsa.RSAPublicKey) -> dict[str, Any]:
        """Encrypt every data value under the secret's scope label.

        Args:
            secret: Secret with a valid name and namespace.
            public_key: The controller's sealing key.

        Returns:
            The SealedSecret manifest as a dict.

        Raises:
            SealingError: If the name or namespace is invalid or encryption fails.

        """
        metadata = secret.metadata
        for field, value in (("name", metadata.name), ("namespace", metadata.namespace)):
            result = validate_k8s_name(value)
            if result is not True:
                raise SealingError(f"Invalid secret {field} {value!r}: {result}")

        label = encryption_label(secret)
        ic(metadata.namespace, metadata.name, label)

        try:
            encrypted_data = {
                key: base64.b64encode(hybrid_encrypt(public_key, value, label)).decode("ascii")
                for key, value in secret_payload(secret).items()
            }
        except ValueError as e:
            raise SealingError(f"Cannot create sealed secret: {e}") from e

        return {
            "kind": SEALED_SECRET_KIND,
            "apiVersion": SEALED_SECRET_API_VERSION,
            "metadata": self._sealed_metadata(secret),
            "spec": {
                "template": {
                    "metadata": self._template_metadata(secret),
                    "type": secret.type,
                },
                "encryptedData": encrypted_data,
            },
        }

    @staticmethod
    def _sealed_metadata(secret: V1Secret) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": secret.metadata.name,
            "namespace": secret.metadata.namespace,
            "creationTimestamp": None,
        }
        scope = {
            key: value
            for key, value in (secret.metadata.annotations or {}).items()
            if key in (NAMESPACE_WIDE_ANNOTATION, CLUSTER_WIDE_ANNOTATION)
        }
        if scope:
            metadata["annotations"] = scope
        return metadata

    @staticmethod
    def _template_metadata(secret: V1Secret) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": secret.metadata.name,
            "namespace": secret.metadata.namespace,
            "creationTimestamp": None,
        }
        if secret.metadata.labels:
            metadata["labels"] = dict(secret.metadata.labels)
        if secret.metadata.annotations:
            metadata["annotations"] = dict(secret.metadata.annotations)
        return metadata
