# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_attestation

import base64
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import pytest
from authority import AttestationAuthority, FixtureTransport, RejectingTransport, make_quote
from fastapi.testclient import TestClient

from coreason_attestation.api import app
from coreason_attestation.config import AttestationSettings
from coreason_attestation.services import AttestationServiceAsync
from coreason_attestation.transport.interfaces import TransportClient

CONFIGURED = AttestationSettings(client_cert=Path("client.crt"), client_key=Path("client.key"))


@contextmanager
def _client(
    authority: AttestationAuthority,
    transport: TransportClient,
    settings: AttestationSettings = CONFIGURED,
) -> Generator[TestClient, None, None]:
    app.state.service = AttestationServiceAsync(
        transport=transport, settings=settings, trusted_key=authority.trusted_key
    )
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.state.service = None


@pytest.fixture
def client(authority: AttestationAuthority) -> Generator[TestClient, None, None]:
    with _client(authority, FixtureTransport(authority)) as test_client:
        yield test_client


def _request(evidence: bytes, nonce: Optional[str] = None) -> dict[str, Optional[str]]:
    return {"quote": base64.b64encode(evidence).decode("ascii"), "nonce": nonce}


def test_attestation(client: TestClient, evidence: bytes, enclave_report_data: bytes) -> None:
    response = client.post("/attestation", json=_request(evidence, "n-1"))
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "OK"
    assert data["report_id"] == "165171271757108173876306223827987629752"
    assert base64.b64decode(data["report_data"]) == enclave_report_data


def test_attestation_bad_base64(client: TestClient) -> None:
    response = client.post("/attestation", json={"quote": "not base64!"})
    assert response.status_code == 400
    assert "base64" in response.json()["detail"]


def test_attestation_empty_quote(client: TestClient) -> None:
    response = client.post("/attestation", json={"quote": ""})
    assert response.status_code == 400


def test_attestation_verification_failure(authority: AttestationAuthority, evidence: bytes) -> None:
    """Test that a report for other evidence maps to 422."""

    class WrongEvidenceTransport(FixtureTransport):
        async def submit(self, client_cert, evidence, nonce=None):  # type: ignore[no-untyped-def]
            return self.authority.respond(make_quote(b"\x07" * 64))

    with _client(authority, WrongEvidenceTransport(authority)) as client:
        response = client.post("/attestation", json=_request(evidence))
        assert response.status_code == 422
        assert response.json()["detail"].startswith("EvidenceMismatchError")


def test_attestation_revoked(authority: AttestationAuthority, evidence: bytes) -> None:
    with _client(authority, FixtureTransport(authority, status="GROUP_REVOKED")) as client:
        response = client.post("/attestation", json=_request(evidence))
        assert response.status_code == 422
        assert "GROUP_REVOKED" in response.json()["detail"]


def test_attestation_upstream_rejection(authority: AttestationAuthority, evidence: bytes) -> None:
    with _client(authority, RejectingTransport()) as client:
        response = client.post("/attestation", json=_request(evidence))
        assert response.status_code == 502
        assert response.json()["detail"].startswith("AuthorityRejectedError")


def test_attestation_without_client_certificate(authority: AttestationAuthority, evidence: bytes) -> None:
    with _client(authority, FixtureTransport(authority), AttestationSettings()) as client:
        response = client.post("/attestation", json=_request(evidence))
        assert response.status_code == 503


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "READY",
        "authority_url": CONFIGURED.authority_url,
        "verify_server_tls": True,
    }


def test_health_not_configured(authority: AttestationAuthority) -> None:
    with _client(authority, FixtureTransport(authority), AttestationSettings()) as client:
        response = client.get("/health")
        assert response.status_code == 503
        assert response.json()["detail"] == "Client certificate not configured"
