"""Secrets management subpackage.

This package contains modules for building plaintext secrets, sealing
them and serializing the resulting SealedSecret manifests.
"""

from k8s_sealer.secrets.creation import (
    create_dockerconfigjson,
    create_dockerconfigjson_secret,
    create_opaque_secret,
    create_secret,
    create_tls_secret,
    secret_payload,
)
from k8s_sealer.secrets.encoding import encode_sealed_secret, parse_output_format
from k8s_sealer.secrets.sealing import HybridSealer, Sealer, strip_server_metadata

__all__ = [
    # creation
    "create_secret",
    "create_opaque_secret",
    "create_dockerconfigjson",
    "create_dockerconfigjson_secret",
    "create_tls_secret",
    "secret_payload",
    # sealing
    "Sealer",
    "HybridSealer",
    "strip_server_metadata",
    # encoding
    "encode_sealed_secret",
    "parse_output_format",
]
