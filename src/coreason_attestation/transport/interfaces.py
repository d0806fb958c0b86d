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
Transport Interfaces.

Defines the contract for exchanging evidence with an attestation authority.
"""

from abc import ABC, abstractmethod
from typing import Optional

from coreason_attestation.schemas import ClientCertificate, RawResponse


class TransportClient(ABC):
    """
    Abstract Base Class for attestation authority transports.

    Responsible for one request/response exchange per call. Implementations
    never retry; retry policy belongs to the caller.
    """

    @abstractmethod
    async def submit(
        self,
        client_cert: ClientCertificate,
        evidence: bytes,
        nonce: Optional[str] = None,
    ) -> RawResponse:
        """
        Submit enclave evidence for verification.

        Args:
            client_cert: Certificate authenticating the caller to the authority.
            evidence: Raw quote bytes (non-empty).
            nonce: Optional nonce echoed back in the report.

        Returns:
            RawResponse: The unparsed HTTP 200 response with its signature headers.
        """
        pass  # pragma: no cover
