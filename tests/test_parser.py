# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_attestation

import json
from urllib.parse import quote as url_quote

import pytest
from authority import AttestationAuthority, to_pem
from cryptography import x509

from coreason_attestation.exceptions import MalformedResponseError, SchemaError
from coreason_attestation.parser import ReportParser
from coreason_attestation.schemas import QuoteStatus, RawResponse


@pytest.fixture
def parser() -> ReportParser:
    return ReportParser()


def test_parse_valid_response(parser: ReportParser, authority: AttestationAuthority, evidence: bytes) -> None:
    raw = authority.respond(evidence, nonce="n-1")
    report = parser.parse(raw)

    assert report.body.isv_enclave_quote_status == QuoteStatus.OK
    assert report.body.nonce == "n-1"
    assert report.raw_body == raw.body
    assert len(report.signature) == 256
    assert report.signing_certificates == (to_pem(authority.signing_cert), to_pem(authority.root_cert))


def test_parse_keeps_exact_body_bytes(parser: ReportParser, authority: AttestationAuthority, evidence: bytes) -> None:
    """Test that the raw body is retained even when it is not canonical JSON."""
    body = b'{ "isvEnclaveQuoteStatus" : "OK",\n  "isvEnclaveQuoteBody":"%s", "timestamp":"2025-06-01T00:00:00"}' % (
        json.loads(authority.respond(evidence).body)["isvEnclaveQuoteBody"].encode()
    )
    report = parser.parse(authority.respond(evidence, body=body))
    assert report.raw_body == body


def test_parse_invalid_json(parser: ReportParser, authority: AttestationAuthority, evidence: bytes) -> None:
    with pytest.raises(SchemaError, match="not valid JSON"):
        parser.parse(authority.respond(evidence, body=b"{not json"))


def test_parse_non_object_json(parser: ReportParser, authority: AttestationAuthority, evidence: bytes) -> None:
    with pytest.raises(SchemaError, match="must be a JSON object"):
        parser.parse(authority.respond(evidence, body=b"[1, 2]"))


@pytest.mark.parametrize("missing", ["isvEnclaveQuoteStatus", "isvEnclaveQuoteBody", "timestamp"])
def test_parse_missing_mandatory_field(
    parser: ReportParser, authority: AttestationAuthority, evidence: bytes, missing: str
) -> None:
    body = authority.report_json(evidence)
    del body[missing]
    with pytest.raises(SchemaError, match="Invalid report body"):
        parser.parse(authority.respond(evidence, body=json.dumps(body).encode()))


def test_parse_signature_not_base64(parser: ReportParser, authority: AttestationAuthority, evidence: bytes) -> None:
    raw = authority.respond(evidence)
    with pytest.raises(MalformedResponseError, match="not valid base64"):
        parser.parse(raw.model_copy(update={"signature": "%%%"}))


def test_parse_certificate_header_without_pem(
    parser: ReportParser, authority: AttestationAuthority, evidence: bytes
) -> None:
    raw = authority.respond(evidence)
    with pytest.raises(MalformedResponseError, match="no PEM certificate"):
        parser.parse(raw.model_copy(update={"signing_certificate": url_quote("garbage")}))


def test_split_certificate_chain_not_url_encoded(authority: AttestationAuthority) -> None:
    """Test that a plain PEM header is accepted as well."""
    header = (to_pem(authority.signing_cert) + to_pem(authority.root_cert)).decode("ascii")
    assert len(ReportParser.split_certificate_chain(header)) == 2


def test_parse_does_not_verify(parser: ReportParser, authority: AttestationAuthority, evidence: bytes) -> None:
    """Test that parsing succeeds for a report signed by anyone; trust is the validator's job."""
    forged = AttestationAuthority()
    raw: RawResponse = forged.respond(evidence)
    assert parser.parse(raw).body.isv_enclave_quote_status == QuoteStatus.OK


def test_split_certificate_chain_round_trips_pem(authority: AttestationAuthority) -> None:
    """Test that each block keeps its trailing newline and still loads without one."""
    pem = to_pem(authority.signing_cert) + to_pem(authority.root_cert)
    assert ReportParser.split_certificate_chain(url_quote(pem.decode("ascii"))) == (
        to_pem(authority.signing_cert),
        to_pem(authority.root_cert),
    )

    blocks = ReportParser.split_certificate_chain(pem.decode("ascii").rstrip("\n"))
    assert blocks[1] == to_pem(authority.root_cert).rstrip(b"\n")
    assert x509.load_pem_x509_certificate(blocks[1]) == authority.root_cert
