"""Tests for api.py module."""

import base64
import json
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from urllib3.exceptions import ProtocolError

from k8s_sealer.api import ERR_INTERNAL, create_app
from k8s_sealer.config import Settings
from k8s_sealer.service import SealService

OPAQUE_REQUEST = {"cluster": "dev", "name": "s1", "namespace": "default", "data": {"k": "dGVzdA=="}}


def sealed_manifest(response) -> dict:
    return json.loads(base64.b64decode(response.json()["sealedSecret"]))


class TestSealOpaque:
    """Tests for POST /api/seal/opaque."""

    def test_seal(self, client, unseal):
        """Test a configured dev certificate seals the payload."""
        response = client.post("/api/seal/opaque", json=OPAQUE_REQUEST)

        assert response.status_code == 200
        assert response.json()["sealedSecret"]
        manifest = sealed_manifest(response)
        assert manifest["metadata"]["name"] == "s1"
        assert unseal(manifest) == {"k": b"test"}

    def test_sealed_output_ends_with_newline(self, client):
        """Test the encoded manifest keeps its trailing newline."""
        response = client.post("/api/seal/opaque", json=OPAQUE_REQUEST)

        assert base64.b64decode(response.json()["sealedSecret"]).endswith(b"}\n")

    def test_unknown_fields_are_ignored(self, client):
        """Test extra body fields do not fail decoding."""
        response = client.post("/api/seal/opaque", json={**OPAQUE_REQUEST, "labels": {"a": "b"}})

        assert response.status_code == 200

    def test_invalid_base64(self, client):
        """Test data values must be base64."""
        response = client.post("/api/seal/opaque", json={**OPAQUE_REQUEST, "data": {"k": "not base64!"}})

        assert response.status_code == 403
        assert "err" in response.json()

    def test_invalid_cluster_is_hidden(self, client):
        """Test internal errors are replaced by a generic message."""
        with patch("k8s_sealer.console.error") as mock_error:
            response = client.post("/api/seal/opaque", json={**OPAQUE_REQUEST, "cluster": "qa"})

        assert response.status_code == 500
        assert response.json() == {"err": ERR_INTERNAL}
        logged = mock_error.call_args[0][0]
        assert "Invalid cluster: qa" in logged
        assert "code=500" in logged

    def test_missing_name_is_internal_error(self, client):
        """Test a secret without a name is not sealed."""
        response = client.post("/api/seal/opaque", json={"cluster": "dev", "namespace": "default", "data": {}})

        assert response.status_code == 500
        assert response.json() == {"err": ERR_INTERNAL}


class TestSealDockerconfigjson:
    """Tests for POST /api/seal/dockerconfigjson."""

    def test_seal(self, client, unseal):
        """Test registry credentials are sealed."""
        response = client.post(
            "/api/seal/dockerconfigjson",
            json={"cluster": "dev", "name": "regcred", "namespace": "apps", "username": "u", "password": "p"},
        )

        assert response.status_code == 200
        manifest = sealed_manifest(response)
        assert manifest["spec"]["template"]["type"] == "kubernetes.io/dockerconfigjson"
        assert unseal(manifest) == {".dockerconfigjson": b'{"auths":{"registry.example.com":{"auth":"dTpw"}}}'}


class TestSealTLS:
    """Tests for POST /api/seal/tls."""

    def test_seal(self, client, unseal):
        """Test the domain's TLS pair is sealed."""
        response = client.post("/api/seal/tls", json={"cluster": "dev", "namespace": "web", "domain": "shop.teko.vn"})

        assert response.status_code == 200
        manifest = sealed_manifest(response)
        assert manifest["metadata"]["name"] == "shop.teko.vn-tls"
        assert unseal(manifest) == {"tls.crt": b"TEKO CERT", "tls.key": b"TEKO KEY"}

    def test_unsupported_domain(self, client):
        """Test unsupported domains are internal errors."""
        response = client.post("/api/seal/tls", json={"cluster": "dev", "namespace": "web", "domain": "example.com"})

        assert response.status_code == 500
        assert response.json() == {"err": ERR_INTERNAL}


class TestMalformedBodies:
    """Tests for undecodable request bodies."""

    @pytest.mark.parametrize(
        "path", ["/api/seal/opaque", "/api/seal/dockerconfigjson", "/api/seal/tls"]
    )
    def test_malformed_json(self, client, path):
        """Test invalid JSON is answered with 403 and an error."""
        response = client.post(path, content=b'{"cluster": "dev",', headers={"Content-Type": "application/json"})

        assert response.status_code == 403
        assert response.json()["err"]

    @pytest.mark.parametrize("body", [b"", b"[]", b'"dev"', b'{"cluster": 1}', b'{"data": {"k": 1}}'])
    def test_wrong_shapes(self, client, body):
        """Test bodies of the wrong shape are rejected."""
        response = client.post("/api/seal/opaque", content=body)

        assert response.status_code == 403
        assert "err" in response.json()

    def test_decode_error_is_visible(self, client):
        """Test decode errors are not hidden from the client."""
        response = client.post("/api/seal/tls", content=b"[]")

        assert response.json()["err"] != ERR_INTERNAL


class TestRouting:
    """Tests for unmatched routes and headers."""

    @pytest.mark.parametrize("path", ["/", "/api/seal", "/api/seal/unknown", "/healthz"])
    def test_not_found(self, client, path):
        """Test unmatched paths return an empty object."""
        response = client.post(path, json={})

        assert response.status_code == 404
        assert response.json() == {}

    def test_wrong_method(self, client):
        """Test known routes only accept POST."""
        response = client.get("/api/seal/opaque")

        assert response.status_code == 405
        assert response.json() == {}

    def test_headers(self, client):
        """Test every response is JSON with permissive CORS headers."""
        for response in (client.post("/api/seal/opaque", json=OPAQUE_REQUEST), client.get("/missing")):
            assert response.headers["content-type"] == "application/json; charset=utf-8"
            assert response.headers["access-control-allow-origin"] == "*"
            assert response.headers["access-control-allow-headers"] == "Origin, Content-Type, Authorization"
            assert response.headers["access-control-allow-method"] == "POST, GET, PUT, PATCH"

    @pytest.mark.parametrize("path", ["/api/seal/opaque", "/anything"])
    def test_options_short_circuits(self, client, path):
        """Test OPTIONS requests get headers and no body."""
        response = client.options(path)

        assert response.status_code == 200
        assert response.content == b""
        assert response.headers["access-control-allow-origin"] == "*"


class TestClusterFallback:
    """Tests for clusters without a certificate file."""

    def test_fetch_failure_is_internal_error(self, environ):
        """Test a failing certificate fetch surfaces as a generic 500."""
        client = TestClient(create_app(SealService(Settings.from_env(environ))))

        with patch("kubernetes.config.new_client_from_config") as mock_new_client, patch(
            "kubernetes.config.load_incluster_config"
        ):
            mock_new_client.side_effect = OSError("no such file")
            response = client.post("/api/seal/opaque", json={**OPAQUE_REQUEST, "cluster": "production"})

        assert response.status_code == 500
        assert response.json() == {"err": ERR_INTERNAL}


class TestBrokenCertificateStream:
    """Tests for failures while reading a fetched certificate."""

    @staticmethod
    def broken_fetcher(error: Exception) -> MagicMock:
        stream = MagicMock()
        stream.read.side_effect = error
        fetcher = MagicMock()
        fetcher.open_certificate.return_value = stream
        return fetcher

    def test_dropped_connection(self, settings):
        """Test a connection dropped mid-read is a generic JSON 500."""
        service = SealService(settings, fetcher=self.broken_fetcher(ProtocolError("Connection broken")))
        client = TestClient(create_app(service))

        with patch("k8s_sealer.console.error") as mock_error:
            response = client.post("/api/seal/opaque", json={**OPAQUE_REQUEST, "cluster": "lab"})

        assert response.status_code == 500
        assert response.json() == {"err": ERR_INTERNAL}
        assert response.headers["content-type"] == "application/json; charset=utf-8"
        assert "Connection broken" in mock_error.call_args[0][0]

    def test_unexpected_exception(self, settings):
        """Test errors outside the sealer hierarchy keep the JSON error contract."""
        service = SealService(settings, fetcher=self.broken_fetcher(RuntimeError("stream state corrupted")))
        client = TestClient(create_app(service), raise_server_exceptions=False)

        with patch("k8s_sealer.console.error") as mock_error:
            response = client.post("/api/seal/opaque", json={**OPAQUE_REQUEST, "cluster": "lab"})

        assert response.status_code == 500
        assert response.json() == {"err": ERR_INTERNAL}
        assert response.headers["content-type"] == "application/json; charset=utf-8"
        assert response.headers["access-control-allow-origin"] == "*"
        logged = mock_error.call_args[0][0]
        assert "stream state corrupted" in logged
        assert "code=500" in logged
