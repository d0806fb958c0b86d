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
HTTPS transport to the attestation authority.

Posts ``{"isvEnclaveQuote": <base64>}`` over a TLS connection authenticated
with the caller's client certificate and returns the raw response.
"""

import ssl
from typing import Optional

import httpx

from coreason_attestation.exceptions import AuthorityRejectedError, MalformedResponseError, TransportError
from coreason_attestation.schemas import NONCE_MAX_LENGTH, ClientCertificate, EvidenceSubmission, RawResponse
from coreason_attestation.transport.interfaces import TransportClient
from coreason_attestation.utils.logger import logger

SIGNATURE_HEADER = "X-IASReport-Signature"
SIGNING_CERTIFICATE_HEADER = "X-IASReport-Signing-Certificate"


class HttpTransportClient(TransportClient):
    """
    Transport talking HTTPS to the attestation authority with httpx.

    A fresh connection is opened for each submission because the client
    certificate is supplied per call.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        verify_server_tls: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the transport.

        Args:
            url: Report endpoint of the attestation authority.
            timeout: Deadline in seconds for the whole exchange.
            verify_server_tls: Validate the authority's server certificate.
            transport: Optional httpx transport (used to stub the network).
        """
        self.url = url
        self.timeout = timeout
        self.verify_server_tls = verify_server_tls
        self._transport = transport

    def _ssl_context(self, client_cert: ClientCertificate) -> ssl.SSLContext:
        """Build the TLS context presenting the client certificate."""
        context = ssl.create_default_context()
        if not self.verify_server_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        try:
            context.load_cert_chain(
                certfile=str(client_cert.cert_path),
                keyfile=str(client_cert.key_path) if client_cert.key_path else None,
                password=client_cert.password,
            )
        except (OSError, ssl.SSLError) as e:
            logger.error(f"Failed to load client certificate {client_cert.cert_path}: {e}")
            raise TransportError(f"Cannot load client certificate: {e}") from e
        return context

    async def submit(
        self,
        client_cert: ClientCertificate,
        evidence: bytes,
        nonce: Optional[str] = None,
    ) -> RawResponse:
        """
        Submit a quote to the attestation authority.

        Raises:
            ValueError: If evidence is empty or the nonce is too long.
            TransportError: On connection, TLS or timeout failure.
            AuthorityRejectedError: If the authority returns a non-200 status.
            MalformedResponseError: If a signature header is missing.
        """
        if not evidence:
            raise ValueError("evidence cannot be empty")
        if nonce is not None and len(nonce) > NONCE_MAX_LENGTH:
            raise ValueError(f"nonce cannot exceed {NONCE_MAX_LENGTH} characters")

        if not self.verify_server_tls:
            logger.warning("Attestation authority TLS certificate is NOT verified. Relying on report signature only.")

        submission = EvidenceSubmission.from_evidence(evidence, nonce=nonce)
        context = self._ssl_context(client_cert)

        logger.info(f"Submitting {len(evidence)} bytes of evidence to {self.url}")
        try:
            async with httpx.AsyncClient(verify=context, timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    content=submission.to_json(),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.HTTPError as e:
            logger.error(f"Attestation authority connection error: {e}")
            raise TransportError(f"Attestation authority connection error: {e}") from e

        if response.status_code != 200:
            logger.error(f"Attestation authority returned error: HTTP {response.status_code}")
            raise AuthorityRejectedError(response.status_code, response.reason_phrase or None)

        signature = response.headers.get(SIGNATURE_HEADER)
        signing_certificate = response.headers.get(SIGNING_CERTIFICATE_HEADER)
        missing = [
            name
            for name, value in ((SIGNATURE_HEADER, signature), (SIGNING_CERTIFICATE_HEADER, signing_certificate))
            if not value
        ]
        if missing:
            logger.error(f"Attestation response is missing headers: {missing}")
            raise MalformedResponseError(f"Response is missing required headers: {', '.join(missing)}")

        return RawResponse(
            status_code=response.status_code,
            body=response.content,
            signature=signature,
            signing_certificate=signing_certificate,
        )
