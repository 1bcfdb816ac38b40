"""
Unit tests for the certificate HTTP endpoints.

The app is built around an injected pipeline over the fake ledger, so
these exercise routing, body parsing, the error-to-status mapping and
the response shapes.
"""

from __future__ import annotations

import pytest
from conftest import ACCOUNTS, FakeLedger, FakeUploader
from eth_utils import keccak
from fastapi.testclient import TestClient

from certchain.clients.ipfs import UploadFailure
from certchain.main import create_app
from certchain.systems.certificates.pipeline import CertificatePipeline
from certchain.systems.certificates.store import JsonFileMetadataStore


@pytest.fixture
def uploader() -> FakeUploader:
    return FakeUploader()


@pytest.fixture
def client(config, ledger, uploader):
    pipeline = CertificatePipeline(
        config=config,
        w3=ledger,
        uploader=uploader,
        store=JsonFileMetadataStore(config.store.metadata_path),
    )
    with TestClient(create_app(config, pipeline)) as test_client:
        yield test_client


# ─── Issue ───────────────────────────────────────────────────────


class TestIssueEndpoint:
    def test_issue_legacy_payload(self, client, legacy_payload):
        response = client.post("/issue", json=legacy_payload)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["certId"] == 0
        assert body["txHash"].startswith("0x")
        assert body["contentLocator"] == "ipfs://QmFake1"
        assert body["contentHash"] == "0x" + keccak(text="ipfs://QmFake1").hex()
        assert body["metadata"]["attributes"][4] == {"trait_type": "Category", "value": "E"}

    def test_missing_field(self, client, ledger):
        response = client.post("/issue", json={})

        assert response.status_code == 400
        assert response.json() == {"error": "fullname is required"}
        assert ledger.rpc_calls == []

    def test_body_not_json(self, client):
        response = client.post(
            "/issue", content=b"fullname=A", headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 400
        assert "not valid JSON" in response.json()["error"]

    def test_body_not_an_object(self, client):
        response = client.post("/issue", json=["fullname", "A"])
        assert response.status_code == 400

    def test_upload_failure(self, client, uploader, legacy_payload):
        uploader.error = UploadFailure("IPFS upload failed: 401")

        response = client.post("/issue", json=legacy_payload)

        assert response.status_code == 502
        assert response.json()["error"] == "IPFS upload failed: 401"

    def test_submission_failure(self, client, ledger, legacy_payload):
        ledger.typed_error = RuntimeError("typed boom")
        ledger.raw_send_error = "raw boom"

        response = client.post("/issue", json=legacy_payload)

        assert response.status_code == 500
        assert "raw boom" in response.json()["error"]


# ─── Verify ──────────────────────────────────────────────────────


class TestVerifyEndpoint:
    def test_verify_latest_after_issue(self, client, legacy_payload):
        issued = client.post("/issue", json=legacy_payload).json()

        response = client.get("/verify")

        assert response.status_code == 200
        body = response.json()
        assert body["certId"] == issued["certId"]
        assert body["resolved"] is True
        assert body["metadata"] == issued["metadata"]
        assert body["record"]["contentHash"] == issued["contentHash"]
        assert body["record"]["subject"] == ACCOUNTS[2]

    def test_verify_by_id_without_metadata(self, client, ledger):
        ledger.issue_directly(ACCOUNTS[2], keccak(text="ipfs://QmElsewhere"))

        body = client.get("/verify/0").json()

        assert body["resolved"] is False
        assert body["metadata"] is None
        assert body["record"]["issuer"] == ACCOUNTS[0]

    def test_nothing_issued(self, client):
        response = client.get("/verify")
        assert response.status_code == 404
        assert "error" in response.json()

    def test_non_integer_id_uses_error_envelope(self, client, ledger):
        response = client.get("/verify/abc")

        assert response.status_code == 400
        body = response.json()
        assert set(body) == {"error"}
        assert "record_id" in body["error"]
        assert ledger.rpc_calls == []

    def test_unknown_id(self, client, legacy_payload):
        client.post("/issue", json=legacy_payload)
        assert client.get("/verify/7").status_code == 404


# ─── Status & CORS ───────────────────────────────────────────────


class TestStatus:
    @pytest.mark.parametrize("path", ["/", "/health"])
    def test_status(self, client, config, path):
        response = client.get(path)
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok",
            "rpc": config.ledger.rpc_url,
            "port": config.server.port,
        }

    @pytest.mark.parametrize(
        ("method", "path"),
        [("POST", "/"), ("PUT", "/"), ("DELETE", "/"), ("GET", "/anything/else"), ("POST", "/verify")],
    )
    def test_other_methods_and_paths_report_liveness(self, client, config, method, path):
        response = client.request(method, path)
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["rpc"] == config.ledger.rpc_url

    def test_cors_preflight(self, client):
        response = client.options(
            "/issue",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    def test_injected_pipeline_left_open(self, config, ledger):
        uploader = FakeUploader()
        pipeline = CertificatePipeline(
            config=config,
            w3=FakeLedger(),
            uploader=uploader,
            store=JsonFileMetadataStore(config.store.metadata_path),
        )
        with TestClient(create_app(config, pipeline)):
            pass
        assert uploader.closed is False
