# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_attestation

"""
Shared fixtures.
"""

from pathlib import Path
from typing import Any

import pytest
from authority import NOW, AttestationAuthority, make_certificate, make_quote, to_pem
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from coreason_attestation.schemas import ClientCertificate


@pytest.fixture(scope="session")
def authority() -> AttestationAuthority:
    return AttestationAuthority()


@pytest.fixture(scope="session")
def enclave_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def enclave_report_data(enclave_key: ec.EllipticCurvePrivateKey) -> bytes:
    point = enclave_key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    return point[1:]


@pytest.fixture
def evidence(enclave_report_data: bytes) -> bytes:
    return make_quote(enclave_report_data, trailer=b"\x5a" * 680)


@pytest.fixture
def clock() -> Any:
    return lambda: NOW


@pytest.fixture
def client_cert(tmp_path: Path) -> ClientCertificate:
    """Client certificate and key written to disk."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = make_certificate("Test Enclave Proxy", key.public_key(), "Test Enclave Proxy", key, ca=False)
    cert_path = tmp_path / "client.crt"
    key_path = tmp_path / "client.key"
    cert_path.write_bytes(to_pem(cert))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return ClientCertificate(cert_path=cert_path, key_path=key_path)
