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
Data schemas for Coreason Attestation.

Defines the evidence submission, the authority's report and the validated
enclave identity. Every model is immutable once constructed.
"""

import base64
import binascii
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ConfigDict, Field, field_validator

from coreason_attestation.exceptions import KeyParseError
from coreason_attestation.quote import QUOTE_BODY_SIZE, QuoteBody

# Longest nonce the authority accepts
NONCE_MAX_LENGTH = 32


class QuoteStatus(str, Enum):
    """
    Quote status assigned by the attestation authority.

    Only OK means the platform is fully trusted. The remaining values signal
    revocation, stale platform TCB or required configuration changes.
    """

    OK = "OK"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    GROUP_REVOKED = "GROUP_REVOKED"
    SIGNATURE_REVOKED = "SIGNATURE_REVOKED"
    KEY_REVOKED = "KEY_REVOKED"
    SIGRL_VERSION_MISMATCH = "SIGRL_VERSION_MISMATCH"
    GROUP_OUT_OF_DATE = "GROUP_OUT_OF_DATE"
    CONFIGURATION_NEEDED = "CONFIGURATION_NEEDED"
    SW_HARDENING_NEEDED = "SW_HARDENING_NEEDED"
    CONFIGURATION_AND_SW_HARDENING_NEEDED = "CONFIGURATION_AND_SW_HARDENING_NEEDED"


class CorrelationMode(str, Enum):
    """
    How the echoed quote body is matched against the submitted evidence.

    Attributes:
        EXACT: Decoded echoed body must equal the evidence's quote body bytes.
        PREFIX: Echoed base64 text must be a non-empty prefix of base64(evidence).
    """

    EXACT = "exact"
    PREFIX = "prefix"


class ClientCertificate(BaseModel):
    """
    TLS client certificate used to authenticate to the attestation authority.

    Attributes:
        cert_path (Path): PEM certificate (may also contain the private key).
        key_path (Optional[Path]): PEM private key, if kept in a separate file.
        password (Optional[str]): Password of an encrypted private key.
    """

    model_config = ConfigDict(frozen=True)

    cert_path: Path
    key_path: Optional[Path] = None
    password: Optional[str] = Field(default=None, repr=False)


class EvidenceSubmission(BaseModel):
    """Request envelope sent to the attestation authority."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    isv_enclave_quote: str = Field(..., alias="isvEnclaveQuote", min_length=1)
    nonce: Optional[str] = Field(default=None, max_length=NONCE_MAX_LENGTH)

    @classmethod
    def from_evidence(cls, evidence: bytes, nonce: Optional[str] = None) -> "EvidenceSubmission":
        """Wrap raw evidence bytes, base64-encoded."""
        return cls(isv_enclave_quote=base64.b64encode(evidence).decode("ascii"), nonce=nonce)

    def to_json(self) -> bytes:
        """Serialize to the wire format, omitting an absent nonce."""
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


class RawResponse(BaseModel):
    """
    Unparsed response of the attestation authority.

    Attributes:
        status_code (int): HTTP status code.
        body (bytes): Exact response body bytes, as signed by the authority.
        signature (str): Verbatim signature header.
        signing_certificate (str): Verbatim signing certificate chain header.
    """

    model_config = ConfigDict(frozen=True)

    status_code: int
    body: bytes
    signature: str
    signing_certificate: str


class ReportBody(BaseModel):
    """
    Structured attestation verification report.

    Unknown fields are ignored so newer report versions still parse.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = ""
    isv_enclave_quote_status: QuoteStatus = Field(..., alias="isvEnclaveQuoteStatus")
    isv_enclave_quote_body: str = Field(..., alias="isvEnclaveQuoteBody")
    platform_info_blob: Optional[str] = Field(default=None, alias="platformInfoBlob")
    revocation_reason: Optional[int] = Field(default=None, alias="revocationReason")
    pse_manifest_status: Optional[str] = Field(default=None, alias="pseManifestStatus")
    pse_manifest_hash: Optional[str] = Field(default=None, alias="pseManifestHash")
    nonce: Optional[str] = None
    epid_pseudonym: Optional[str] = Field(default=None, alias="epidPseudonym")
    advisory_url: Optional[str] = Field(default=None, alias="advisoryURL")
    advisory_ids: List[str] = Field(default_factory=list, alias="advisoryIDs")
    version: Optional[int] = None
    timestamp: datetime

    @field_validator("isv_enclave_quote_body")
    @classmethod
    def validate_quote_body(cls, v: str) -> str:
        """Validate that the echoed quote body is base64 and long enough to decode."""
        try:
            decoded = base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError("isvEnclaveQuoteBody must be valid base64") from e
        if len(decoded) < QUOTE_BODY_SIZE:
            raise ValueError(f"isvEnclaveQuoteBody must hold at least {QUOTE_BODY_SIZE} bytes")
        return v

    @field_validator("platform_info_blob")
    @classmethod
    def validate_platform_info_blob(cls, v: Optional[str]) -> Optional[str]:
        """Validate that platformInfoBlob is hexadecimal."""
        if v is None:
            return v
        try:
            bytes.fromhex(v)
        except ValueError as e:
            raise ValueError("platformInfoBlob must contain only hexadecimal characters") from e
        return v

    @field_validator("timestamp")
    @classmethod
    def validate_timestamp(cls, v: datetime) -> datetime:
        """Interpret naive timestamps as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def quote_body_bytes(self) -> bytes:
        """Decoded bytes of the echoed quote body."""
        return base64.b64decode(self.isv_enclave_quote_body)

    def decode_quote_body(self) -> QuoteBody:
        """Decode the echoed SGX quote body."""
        return QuoteBody.from_bytes(self.quote_body_bytes())


class AttestationReport(BaseModel):
    """
    Attestation report as received from the authority.

    The raw body is retained because the signature covers those exact bytes;
    re-serializing ``body`` does not reproduce them.

    Attributes:
        body (ReportBody): The parsed report body.
        raw_body (bytes): The exact response body bytes.
        signature (bytes): Decoded detached signature over raw_body.
        signing_certificates (Tuple[bytes, ...]): PEM certificates, leaf first.
    """

    model_config = ConfigDict(frozen=True)

    body: ReportBody
    raw_body: bytes
    signature: bytes
    signing_certificates: Tuple[bytes, ...]


class EnclaveIdentity(BaseModel):
    """
    Identity of an enclave whose report passed validation.

    The enclave's public key travels in the report data as an uncompressed
    P-256 point without the leading 0x04 byte (x || y).

    Attributes:
        report_id (str): Authority-assigned report identifier.
        status (QuoteStatus): Accepted quote status.
        timestamp (datetime): Report timestamp (UTC).
        mr_enclave (str): Enclave measurement, hex.
        mr_signer (str): Enclave signer hash, hex.
        isv_prod_id (int): Enclave product id.
        isv_svn (int): Enclave security version.
        debug (bool): True if the enclave runs in debug mode.
        report_data (bytes): 64 bytes carrying the enclave public key.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64", val_json_bytes="base64")

    report_id: str
    status: QuoteStatus
    timestamp: datetime
    mr_enclave: str
    mr_signer: str
    isv_prod_id: int
    isv_svn: int
    debug: bool
    report_data: bytes

    @classmethod
    def from_report(cls, body: ReportBody) -> "EnclaveIdentity":
        """Build the identity from a validated report body."""
        quote = body.decode_quote_body()
        return cls(
            report_id=body.id,
            status=body.isv_enclave_quote_status,
            timestamp=body.timestamp,
            mr_enclave=quote.mr_enclave.hex(),
            mr_signer=quote.mr_signer.hex(),
            isv_prod_id=quote.isv_prod_id,
            isv_svn=quote.isv_svn,
            debug=quote.debug,
            report_data=quote.report_data,
        )

    def public_key(self) -> ec.EllipticCurvePublicKey:
        """
        Load the enclave public key from the report data.

        Raises:
            KeyParseError: If the report data is not a point on P-256.
        """
        try:
            return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256R1(), b"\x04" + self.report_data)
        except ValueError as e:
            raise KeyParseError(f"Report data does not carry a P-256 public key: {e}") from e

    def public_key_pem(self) -> str:
        """The enclave public key as a PEM SubjectPublicKeyInfo block."""
        return (
            self.public_key()
            .public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
            .decode("ascii")
        )
