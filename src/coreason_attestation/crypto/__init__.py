# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_attestation

from coreason_attestation.crypto.keys import (
    INTEL_REPORT_SIGNING_KEY_PEM,
    PublicKey,
    get_trusted_verification_key,
    public_key_from_pem,
)

__all__ = [
    "INTEL_REPORT_SIGNING_KEY_PEM",
    "PublicKey",
    "get_trusted_verification_key",
    "public_key_from_pem",
]
