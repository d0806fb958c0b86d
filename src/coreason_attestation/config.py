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
Runtime configuration.

Settings are read from ``COREASON_ATTESTATION_*`` environment variables and
validated with pydantic. The trusted verification key is deliberately not
configurable here; see ``coreason_attestation.crypto.keys``.
"""

import os
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coreason_attestation.schemas import ClientCertificate, CorrelationMode, QuoteStatus

ENV_PREFIX = "COREASON_ATTESTATION_"

DEFAULT_AUTHORITY_URL = "https://test-as.sgx.trustedservices.intel.com:443/attestation/sgx/v2/report"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# Settings fields copied verbatim from the environment
_ENV_FIELDS = {
    "authority_url": "AUTHORITY_URL",
    "timeout": "TIMEOUT",
    "client_cert": "CLIENT_CERT",
    "client_key": "CLIENT_KEY",
    "client_key_password": "CLIENT_KEY_PASSWORD",
}


def parse_flag(name: str, value: str) -> bool:
    """
    Parse a boolean environment value.

    Raises:
        ValueError: If the value is neither a recognised true nor false spelling.
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be one of {sorted(_TRUE_VALUES | _FALSE_VALUES)}, got {value!r}")


class AttestationSettings(BaseModel):
    """
    Configuration of the attestation client.

    Attributes:
        authority_url (str): Report endpoint of the attestation authority.
        timeout (float): Deadline in seconds for one submission.
        verify_server_tls (bool): Validate the authority's TLS certificate.
        correlation (CorrelationMode): Evidence correlation mode.
        accepted_statuses (FrozenSet[QuoteStatus]): Quote statuses treated as trusted.
        client_cert (Optional[Path]): Client certificate used by the API and CLI.
        client_key (Optional[Path]): Client private key used by the API and CLI.
        client_key_password (Optional[str]): Password of the client private key.
    """

    model_config = ConfigDict(frozen=True)

    authority_url: str = DEFAULT_AUTHORITY_URL
    timeout: float = Field(default=30.0, description="Request deadline in seconds")
    verify_server_tls: bool = True
    correlation: CorrelationMode = CorrelationMode.EXACT
    accepted_statuses: FrozenSet[QuoteStatus] = frozenset({QuoteStatus.OK})
    client_cert: Optional[Path] = None
    client_key: Optional[Path] = None
    client_key_password: Optional[str] = Field(default=None, repr=False)

    @field_validator("authority_url")
    @classmethod
    def validate_authority_url(cls, v: str) -> str:
        """Validate that the authority is reached over HTTPS."""
        if not v.startswith("https://"):
            raise ValueError("authority_url must use https")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate that timeout is positive."""
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("accepted_statuses")
    @classmethod
    def validate_accepted_statuses(cls, v: FrozenSet[QuoteStatus]) -> FrozenSet[QuoteStatus]:
        """Validate that at least one status is accepted."""
        if not v:
            raise ValueError("accepted_statuses cannot be empty")
        return v

    def client_certificate(self) -> ClientCertificate:
        """
        Client certificate configured for the API and CLI.

        Raises:
            ValueError: If no client certificate is configured.
        """
        if self.client_cert is None:
            raise ValueError(f"No client certificate configured ({ENV_PREFIX}CLIENT_CERT)")
        return ClientCertificate(
            cert_path=self.client_cert,
            key_path=self.client_key,
            password=self.client_key_password,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AttestationSettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ValueError: If VERIFY_SERVER_TLS is not a recognised boolean.
            ValidationError: If any other value fails validation.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}

        def get(name: str) -> Optional[str]:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or not raw.strip():
                return None
            return raw.strip()

        for field, name in _ENV_FIELDS.items():
            raw = get(name)
            if raw is not None:
                values[field] = raw

        verify = get("VERIFY_SERVER_TLS")
        if verify is not None:
            values["verify_server_tls"] = parse_flag(ENV_PREFIX + "VERIFY_SERVER_TLS", verify)

        correlation = get("CORRELATION")
        if correlation is not None:
            values["correlation"] = correlation.lower()

        statuses = get("ACCEPTED_STATUSES")
        if statuses is not None:
            values["accepted_statuses"] = frozenset(s.strip().upper() for s in statuses.split(",") if s.strip())

        return cls.model_validate(values)
