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
Logging configuration.

A single loguru logger shared by every component, writing human readable
records to stderr and structured JSON records to ``logs/attestation.log``.
"""

import os
import sys
from pathlib import Path

from loguru import logger

__all__ = ["logger"]

LOG_LEVEL = os.getenv("COREASON_ATTESTATION_LOG_LEVEL", "INFO").upper()

# Remove the default handler so the sinks below are the only ones
logger.remove()

logger.add(
    sys.stderr,
    level=LOG_LEVEL,
    format=(
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    ),
)

log_path = Path("logs")
if not log_path.exists():
    log_path.mkdir(parents=True, exist_ok=True)

logger.add(
    log_path / "attestation.log",
    rotation="500 MB",
    retention="10 days",
    serialize=True,
    enqueue=True,
    level=LOG_LEVEL,
)
