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
Attestation error kinds.

Every failure of the attestation protocol surfaces as exactly one of the
subclasses below so callers can branch on the kind of failure. None of them is
ever downgraded to a warning.
"""

from typing import Optional


class AttestationError(Exception):
    """Base class for every attestation failure."""

    pass


class KeyFormatError(AttestationError):
    """Raised when a credential block cannot be PEM-decoded."""

    pass


class KeyParseError(AttestationError):
    """Raised when PEM-decoded bytes are not a well-formed public key."""

    pass


class TransportError(AttestationError):
    """Raised on connection, TLS or timeout failures talking to the authority."""

    pass


class AuthorityRejectedError(AttestationError):
    """Raised when the authority answers with a non-200 HTTP status."""

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.detail = detail
        message = f"Attestation authority returned HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MalformedResponseError(AttestationError):
    """Raised when the authority response lacks, or carries undecodable, signature headers."""

    pass


class SchemaError(AttestationError):
    """Raised when the report body is not valid JSON or misses mandatory fields."""

    pass


class EvidenceMismatchError(AttestationError):
    """Raised when the report does not echo the submitted evidence (possible replay)."""

    pass


class UntrustedSignerError(AttestationError):
    """Raised when the signing certificate chain does not terminate at the trusted key."""

    pass


class InvalidSignatureError(AttestationError):
    """Raised when the report signature does not verify over the raw body bytes."""

    pass


class QuoteRejectedError(AttestationError):
    """Raised when the quote status is not in the caller's accepted set."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Quote status not accepted: {status}")
