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
Transport Factory.

Builds the TransportClient described by the runtime configuration.
"""

from typing import Optional

from coreason_attestation.config import AttestationSettings
from coreason_attestation.transport.http_client import HttpTransportClient
from coreason_attestation.transport.interfaces import TransportClient
from coreason_attestation.utils.logger import logger


def get_transport_client(settings: Optional[AttestationSettings] = None) -> TransportClient:
    """
    Factory to return the configured TransportClient.

    Args:
        settings: Configuration to use. Read from the environment if omitted.

    Returns:
        TransportClient: An HttpTransportClient bound to the configured authority.
    """
    settings = settings or AttestationSettings.from_env()
    if not settings.verify_server_tls:
        logger.warning("Server TLS verification DISABLED for the attestation authority.")
    logger.info(f"Initializing HTTPS transport to {settings.authority_url}")
    return HttpTransportClient(
        url=settings.authority_url,
        timeout=settings.timeout,
        verify_server_tls=settings.verify_server_tls,
    )
