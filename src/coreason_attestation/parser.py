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
Report Parser.

Turns a raw authority response into an AttestationReport. Parsing never
establishes trust; that is the ReportValidator's job.
"""

import base64
import binascii
import json
import re
from typing import Tuple
from urllib.parse import unquote

from pydantic import ValidationError

from coreason_attestation.exceptions import MalformedResponseError, SchemaError
from coreason_attestation.schemas import AttestationReport, RawResponse, ReportBody
from coreason_attestation.utils.logger import logger

_PEM_CERTIFICATE = re.compile(
    r"-----BEGIN CERTIFICATE-----\s.*?-----END CERTIFICATE-----\r?\n?",
    re.DOTALL,
)


class ReportParser:
    """
    Parser for attestation authority responses.

    Stateless; a single instance may be shared between concurrent calls.
    """

    def parse(self, response: RawResponse) -> AttestationReport:
        """
        Parse a raw response.

        Args:
            response: The raw HTTP 200 response.

        Returns:
            AttestationReport: Parsed body, exact body bytes and decoded headers.

        Raises:
            SchemaError: If the body is not JSON or misses a mandatory field.
            MalformedResponseError: If a signature header cannot be decoded.
        """
        body = self.parse_body(response.body)
        signature = self.decode_signature(response.signature)
        certificates = self.split_certificate_chain(response.signing_certificate)

        logger.info(
            f"Parsed attestation report {body.id or '<no id>'} "
            f"(status={body.isv_enclave_quote_status.value}, certificates={len(certificates)})"
        )
        return AttestationReport(
            body=body,
            raw_body=response.body,
            signature=signature,
            signing_certificates=certificates,
        )

    @staticmethod
    def parse_body(raw_body: bytes) -> ReportBody:
        """Deserialize the JSON report body."""
        try:
            payload = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Attestation report body is not valid JSON: {e}")
            raise SchemaError(f"Report body is not valid JSON: {e}") from e

        if not isinstance(payload, dict):
            raise SchemaError("Report body must be a JSON object")

        try:
            return ReportBody.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Attestation report body failed schema validation: {e}")
            raise SchemaError(f"Invalid report body: {e}") from e

    @staticmethod
    def decode_signature(header: str) -> bytes:
        """Decode the base64 signature header."""
        try:
            signature = base64.b64decode(header.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedResponseError(f"Report signature is not valid base64: {e}") from e
        if not signature:
            raise MalformedResponseError("Report signature is empty")
        return signature

    @staticmethod
    def split_certificate_chain(header: str) -> Tuple[bytes, ...]:
        """
        Decode the URL-encoded certificate chain header into PEM blocks.

        Returns:
            Tuple[bytes, ...]: PEM certificates in header order (leaf first).
        """
        pem_text = unquote(header)
        blocks = tuple(match.group(0).encode("utf-8") for match in _PEM_CERTIFICATE.finditer(pem_text))
        if not blocks:
            raise MalformedResponseError("Signing certificate header contains no PEM certificate")
        return blocks
