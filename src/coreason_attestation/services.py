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
Coreason Attestation Services.

This module provides the Async-Native and Sync-Facade service classes that run
the full attestation exchange: submit evidence, parse the report, validate it.
"""

from typing import Any, Collection, Optional

import anyio

from coreason_attestation.config import AttestationSettings
from coreason_attestation.crypto.keys import PublicKey, get_trusted_verification_key
from coreason_attestation.parser import ReportParser
from coreason_attestation.schemas import ClientCertificate, EnclaveIdentity, QuoteStatus
from coreason_attestation.transport.factory import get_transport_client
from coreason_attestation.transport.interfaces import TransportClient
from coreason_attestation.utils.logger import logger
from coreason_attestation.validator import ReportValidator


class AttestationServiceAsync:
    """
    Async-Native Attestation Service.

    Composes TransportClient -> ReportParser -> ReportValidator. Holds no
    per-call state, so concurrent calls never share evidence or reports.
    """

    def __init__(
        self,
        transport: Optional[TransportClient] = None,
        settings: Optional[AttestationSettings] = None,
        trusted_key: Optional[PublicKey] = None,
        parser: Optional[ReportParser] = None,
        validator: Optional[ReportValidator] = None,
    ) -> None:
        """
        Initialize the Async Service.

        Args:
            transport: Network seam to the authority. Built from settings if omitted.
            settings: Runtime configuration. Read from the environment if omitted.
            trusted_key: Root of trust. Defaults to the pinned verification key.
            parser: Report parser.
            validator: Report validator. Built from settings if omitted.
        """
        self.settings = settings or AttestationSettings.from_env()
        self.transport = transport or get_transport_client(self.settings)
        self.trusted_key = trusted_key or get_trusted_verification_key()
        self.parser = parser or ReportParser()
        self.validator = validator or ReportValidator(correlation=self.settings.correlation)

    async def attest(
        self,
        client_cert: ClientCertificate,
        evidence: bytes,
        nonce: Optional[str] = None,
        accepted_statuses: Optional[Collection[QuoteStatus]] = None,
    ) -> EnclaveIdentity:
        """
        Attest enclave evidence with the authority.

        Args:
            client_cert: Certificate authenticating the caller to the authority.
            evidence: Raw quote bytes.
            nonce: Optional nonce the report must echo, at most 32 characters.
            accepted_statuses: Overrides the configured accepted statuses.

        Returns:
            EnclaveIdentity: The validated identity. Any failure propagates unchanged.
        """
        statuses = accepted_statuses if accepted_statuses is not None else self.settings.accepted_statuses

        raw_response = await self.transport.submit(client_cert, evidence, nonce)
        report = self.parser.parse(raw_response)

        # Chain and signature checks are CPU bound, run in thread
        return await anyio.to_thread.run_sync(
            self.validator.validate,
            report,
            evidence,
            self.trusted_key,
            statuses,
            nonce,
        )


class AttestationService:
    """
    Sync Facade for the Attestation Service.

    Wraps AttestationServiceAsync to provide a synchronous interface for
    callers without an event loop.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self._async = AttestationServiceAsync(*args, **kwargs)
        self._portal: Optional[anyio.from_thread.BlockingPortal] = None
        self._portal_cm: Any = None

    def __enter__(self) -> "AttestationService":
        # Start a persistent event loop (portal) for the context
        self._portal_cm = anyio.from_thread.start_blocking_portal()
        self._portal = self._portal_cm.__enter__()
        return self

    def __exit__(self, *args: Any) -> None:
        if self._portal_cm:
            try:
                self._portal_cm.__exit__(None, None, None)
            finally:
                self._portal = None
                self._portal_cm = None

    def attest(
        self,
        client_cert: ClientCertificate,
        evidence: bytes,
        nonce: Optional[str] = None,
        accepted_statuses: Optional[Collection[QuoteStatus]] = None,
    ) -> EnclaveIdentity:
        """
        Attest enclave evidence synchronously.
        """
        if not self._portal:
            raise RuntimeError("Service used outside of context manager")
        logger.debug("Dispatching attestation through blocking portal")
        return self._portal.call(  # type: ignore[no-any-return]
            self._async.attest, client_cert, evidence, nonce, accepted_statuses
        )
