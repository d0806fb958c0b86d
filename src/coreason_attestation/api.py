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
Management API.

Loopback-only sidecar exposing the attestation exchange over HTTP, using the
client certificate configured for this process.
"""

import base64
import binascii
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from coreason_attestation.config import AttestationSettings
from coreason_attestation.exceptions import (
    AttestationError,
    AuthorityRejectedError,
    MalformedResponseError,
    SchemaError,
    TransportError,
)
from coreason_attestation.schemas import NONCE_MAX_LENGTH, EnclaveIdentity
from coreason_attestation.services import AttestationServiceAsync
from coreason_attestation.utils.logger import logger

# Failures on the authority side of the exchange
UPSTREAM_ERRORS = (TransportError, AuthorityRejectedError, MalformedResponseError, SchemaError)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Manage the lifecycle of the Attestation API.

    Builds the service once from the environment. The pinned verification key
    is parsed here so a broken deployment fails at startup.
    """
    if getattr(app.state, "service", None) is None:
        app.state.service = AttestationServiceAsync()
    logger.info("Attestation API ready.")
    yield
    logger.info("Shutting down Attestation API...")


app = FastAPI(title="Coreason Attestation API", lifespan=lifespan)


class AttestationRequest(BaseModel):
    quote: str = Field(..., description="Base64-encoded enclave quote")
    nonce: Optional[str] = Field(default=None, max_length=NONCE_MAX_LENGTH)


class HealthResponse(BaseModel):
    status: str
    authority_url: str
    verify_server_tls: bool


def _get_service(request: Request) -> AttestationServiceAsync:
    service: AttestationServiceAsync = request.app.state.service
    return service


@app.post("/attestation", response_model=EnclaveIdentity)  # type: ignore[misc]
async def post_attestation(payload: AttestationRequest, request: Request) -> EnclaveIdentity:
    """
    Attest an enclave quote.

    Returns the validated enclave identity.
    """
    service = _get_service(request)

    try:
        evidence = base64.b64decode(payload.quote, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=400, detail="quote must be valid base64") from e
    if not evidence:
        raise HTTPException(status_code=400, detail="quote cannot be empty")

    try:
        client_cert = service.settings.client_certificate()
    except ValueError as e:
        logger.error(f"Attestation requested without client certificate: {e}")
        raise HTTPException(status_code=503, detail="Client certificate not configured") from e

    try:
        return await service.attest(client_cert, evidence, payload.nonce)
    except UPSTREAM_ERRORS as e:
        logger.error(f"Attestation authority exchange failed: {e}")
        raise HTTPException(status_code=502, detail=f"{type(e).__name__}: {e}") from e
    except AttestationError as e:
        logger.error(f"Attestation verification failed: {e}")
        raise HTTPException(status_code=422, detail=f"{type(e).__name__}: {e}") from e


@app.get("/health", response_model=HealthResponse)  # type: ignore[misc]
async def get_health(request: Request) -> HealthResponse:
    """
    Health check endpoint.

    Returns 503 until a client certificate is configured.
    """
    settings: AttestationSettings = _get_service(request).settings
    if settings.client_cert is None:
        raise HTTPException(status_code=503, detail="Client certificate not configured")
    return HealthResponse(
        status="READY",
        authority_url=settings.authority_url,
        verify_server_tls=settings.verify_server_tls,
    )
