"""Shared test fixtures for k8s-sealer tests."""

import base64
import datetime
import io
import struct

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.x509.oid import NameOID
from fastapi.testclient import TestClient

from k8s_sealer.api import create_app
from k8s_sealer.config import Settings
from k8s_sealer.service import SealService


def _self_signed_pem(private_key, common_name: str = "sealed-secret") -> bytes:
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(private_key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM)


class FakeFetcher:
    """In-memory stand-in for fetching the certificate from a cluster."""

    def __init__(self, pem: bytes) -> None:
        self.pem = pem
        self.calls: list[tuple] = []
        self.streams: list[io.BytesIO] = []

    def open_certificate(self, kubeconfig, controller):
        self.calls.append((kubeconfig, controller))
        stream = io.BytesIO(self.pem)
        self.streams.append(stream)
        return stream


@pytest.fixture(scope="session")
def rsa_private_key():
    """RSA key pair of the sealed-secrets controller."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rsa_cert_pem(rsa_private_key):
    """PEM certificate of the controller."""
    return _self_signed_pem(rsa_private_key)


@pytest.fixture(scope="session")
def ec_cert_pem():
    """PEM certificate holding an EC key."""
    return _self_signed_pem(ec.generate_private_key(ec.SECP256R1()))


@pytest.fixture
def cert_file(tmp_path, rsa_cert_pem):
    """Controller certificate written to disk."""
    path = tmp_path / "dev-cert.pem"
    path.write_bytes(rsa_cert_pem)
    return path


@pytest.fixture
def tls_files(tmp_path):
    """TLS certificate and key files per domain prefix."""
    files = {}
    for prefix in ("SERVICES", "TEKO", "VNSHOP"):
        cert = tmp_path / f"{prefix.lower()}.crt"
        key = tmp_path / f"{prefix.lower()}.key"
        cert.write_bytes(f"{prefix} CERT".encode())
        key.write_bytes(f"{prefix} KEY".encode())
        files[prefix] = (cert, key)
    return files


@pytest.fixture
def environ(cert_file, tls_files):
    """Environment configuring the dev cluster from a file."""
    env = {
        "REGISTRY_HOST": "registry.example.com",
        "DEV_CERT_FILE": str(cert_file),
        "PROD_KUBECONFIG_FILE": "/etc/k8s-sealer/prod.kubeconfig",
    }
    for prefix, (cert, key) in tls_files.items():
        env[f"{prefix}_TLS_CERT_FILE"] = str(cert)
        env[f"{prefix}_TLS_KEY_FILE"] = str(key)
    return env


@pytest.fixture
def settings(environ):
    """Settings built from the test environment."""
    return Settings.from_env(environ)


@pytest.fixture
def fake_fetcher(rsa_cert_pem):
    """Fetcher serving the controller certificate without a cluster."""
    return FakeFetcher(rsa_cert_pem)


@pytest.fixture
def service(settings, fake_fetcher):
    """SealService using the test settings and fake fetcher."""
    return SealService(settings, fetcher=fake_fetcher)


@pytest.fixture
def client(service):
    """HTTP test client for the API."""
    return TestClient(create_app(service))


@pytest.fixture
def unseal(rsa_private_key):
    """Decrypt the encryptedData of a strict-scoped SealedSecret manifest."""

    def _unseal(manifest: dict, label: bytes | None = None) -> dict[str, bytes]:
        metadata = manifest["metadata"]
        if label is None:
            label = f"{metadata['namespace']}/{metadata['name']}".encode()

        values = {}
        for key, encoded in manifest["spec"]["encryptedData"].items():
            ciphertext = base64.b64decode(encoded)
            (rsa_len,) = struct.unpack(">H", ciphertext[:2])
            session_key = rsa_private_key.decrypt(
                ciphertext[2 : 2 + rsa_len],
                padding.OAEP(
                    mgf=padding.MGF1(algorithm=hashes.SHA256()),
                    algorithm=hashes.SHA256(),
                    label=label or None,
                ),
            )
            values[key] = AESGCM(session_key).decrypt(bytes(12), ciphertext[2 + rsa_len :], None)
        return values

    return _unseal
