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
Key Provider.

Parses the pinned verification key that anchors the trust chain of every
attestation report. The key is a deployment constant: it is never fetched
remotely and cannot be replaced at runtime.
"""

import base64
import binascii
import re
from functools import lru_cache
from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from coreason_attestation.exceptions import KeyFormatError, KeyParseError
from coreason_attestation.utils.logger import logger

PublicKey = Union[rsa.RSAPublicKey, ec.EllipticCurvePublicKey]

# Intel Attestation Service report signing key
INTEL_REPORT_SIGNING_KEY_PEM = """
-----BEGIN PUBLIC KEY-----
MIIBIjANBgkqhkiG9w0BAQEFAAOCAQ8AMIIBCgKCAQEAqXot4OZuphR8nudFrAFi
aGxxkgma/Es/BA+tbeCTUR106AL1ENcWA4FX3K+E9BBL0/7X5rj5nIgX/R/1ubhk
KWw9gfqPG3KeAtIdcv/uTO1yXv50vqaPvE1CRChvzdS/ZEBqQ5oVvLTPZ3VEicQj
lytKgN9cLnxbwtuvLUK7eyRPfJW/ksddOzP8VBBniolYnRCD2jrMRZ8nBM2ZWYwn
XnwYeOAHV+W9tOhAImwRwKF/95yAsVwd21ryHMJBcGH70qLagZ7Ttyt++qO/6+KA
XJuKwZqjRlEtSEz8gZQeFfVYgcwSfo96oSMAzVr7V0L6HSDLRnpb6xxmbPdqNol4
tQIDAQAB
-----END PUBLIC KEY-----
"""

_PEM_BLOCK = re.compile(
    r"-----BEGIN (?P<label>[A-Z0-9 ]+)-----(?P<body>.*?)-----END (?P=label)-----",
    re.DOTALL,
)


def _decode_pem_block(pem: Union[str, bytes]) -> bytes:
    """Return the DER payload of the first PEM block in ``pem``."""
    text = pem.decode("ascii", errors="replace") if isinstance(pem, bytes) else pem
    match = _PEM_BLOCK.search(text)
    if match is None:
        raise KeyFormatError("Failed to find a PEM block containing the public key")

    body = "".join(match.group("body").split())
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError) as e:
        raise KeyFormatError(f"Failed to decode PEM block: {e}") from e


def public_key_from_pem(pem: Union[str, bytes]) -> PublicKey:
    """
    Parse a PEM-encoded SubjectPublicKeyInfo block.

    Args:
        pem: The PEM text (only the first block is considered).

    Returns:
        PublicKey: The parsed RSA or EC public key.

    Raises:
        KeyFormatError: If no PEM block can be decoded.
        KeyParseError: If the decoded bytes are not a supported public key.
    """
    der = _decode_pem_block(pem)
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, TypeError) as e:
        raise KeyParseError(f"Public key is invalid: {e}") from e

    if not isinstance(key, (rsa.RSAPublicKey, ec.EllipticCurvePublicKey)):
        raise KeyParseError(f"Unsupported public key type: {type(key).__name__}")
    return key


@lru_cache(maxsize=1)
def get_trusted_verification_key() -> PublicKey:
    """
    Get the pinned trusted verification key.

    Parsed on first use and cached for the lifetime of the process.
    """
    key = public_key_from_pem(INTEL_REPORT_SIGNING_KEY_PEM)
    logger.info("Loaded pinned attestation verification key.")
    return key
