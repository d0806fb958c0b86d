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
Entry point for the Coreason Attestation client.

Submits an enclave quote to the attestation authority and prints the validated
enclave identity, or serves the loopback Management API.
"""

import argparse
import base64
import os
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from coreason_attestation.api import app as api_app
from coreason_attestation.config import ENV_PREFIX, AttestationSettings, parse_flag
from coreason_attestation.exceptions import AttestationError
from coreason_attestation.schemas import ClientCertificate, QuoteStatus
from coreason_attestation.services import AttestationService
from coreason_attestation.utils.logger import logger

VERIFY_TLS_ENV = f"{ENV_PREFIX}VERIFY_SERVER_TLS"


def apply_security_policy(insecure_flag: bool) -> None:
    """
    Configure server TLS verification for the attestation authority.

    Disabling verification requires the explicit --insecure CLI flag, so an
    environment variable alone can never weaken the transport.

    Args:
        insecure_flag (bool): True if --insecure was passed in CLI.

    Raises:
        RuntimeError: If the environment disables verification but --insecure is missing.
        ValueError: If the environment value is not a recognised boolean.
    """
    env_value = os.environ.get(VERIFY_TLS_ENV, "").strip()
    env_disabled = bool(env_value) and not parse_flag(VERIFY_TLS_ENV, env_value)

    if insecure_flag:
        logger.warning("!!! ATTESTATION AUTHORITY TLS CERTIFICATE WILL NOT BE VERIFIED !!!")
        logger.warning("Authenticity relies solely on the report signature chain.")
        os.environ[VERIFY_TLS_ENV] = "false"
    else:
        if env_disabled:
            error_msg = (
                f"Security Violation: {VERIFY_TLS_ENV}=false is set in the environment, "
                "but the required '--insecure' CLI flag is missing. "
                "Refusing to disable server TLS verification without explicit CLI override."
            )
            logger.critical(error_msg)
            raise RuntimeError(error_msg)

        os.environ[VERIFY_TLS_ENV] = "true"
        logger.info("Server TLS verification enabled for the attestation authority.")


def read_evidence(path: Path, is_base64: bool) -> bytes:
    """Read a quote file, raw or base64-encoded."""
    data = path.read_bytes()
    if is_base64:
        data = base64.b64decode(b"".join(data.split()), validate=True)
    if not data:
        raise ValueError(f"Quote file is empty: {path}")
    return data


def run_attest(parsed_args: argparse.Namespace) -> None:
    """Attest a quote file and print the enclave identity as JSON."""
    settings = AttestationSettings.from_env()
    if parsed_args.accept_status:
        settings = settings.model_copy(
            update={"accepted_statuses": frozenset(QuoteStatus(s) for s in parsed_args.accept_status)}
        )

    if parsed_args.cert:
        client_cert = ClientCertificate(cert_path=parsed_args.cert, key_path=parsed_args.key)
    else:
        client_cert = settings.client_certificate()

    evidence = read_evidence(parsed_args.quote, parsed_args.base64)

    with AttestationService(settings=settings) as service:
        identity = service.attest(client_cert, evidence, parsed_args.nonce)

    print(identity.model_dump_json(indent=2))


def run_api_server(port: int) -> None:
    """Run the Management API server."""
    logger.info(f"Starting Attestation API on 127.0.0.1:{port}")
    # Constraint: Only listen on loopback interface
    uvicorn.run(api_app, host="127.0.0.1", port=port, log_level="info")


def main(args: Optional[list[str]] = None) -> None:
    """
    Entry point for the Coreason Attestation client.

    Args:
        args (Optional[list[str]]): Command line arguments. Defaults to sys.argv[1:].
    """
    parser = argparse.ArgumentParser(description="Coreason Attestation Client")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Do not verify the attestation authority's TLS certificate",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    attest_parser = subparsers.add_parser("attest", help="Attest an enclave quote")
    attest_parser.add_argument("--quote", "-q", type=Path, required=True, help="Path to the quote file")
    attest_parser.add_argument("--base64", action="store_true", help="Quote file is base64-encoded")
    attest_parser.add_argument("--cert", type=Path, help="Client certificate (PEM)")
    attest_parser.add_argument("--key", type=Path, help="Client private key (PEM)")
    attest_parser.add_argument("--nonce", type=str, help="Nonce the report must echo")
    attest_parser.add_argument(
        "--accept-status",
        action="append",
        choices=[s.value for s in QuoteStatus],
        help="Quote status to accept (repeatable, default: OK)",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the Management API")
    serve_parser.add_argument("--port", "-p", type=int, default=8000, help="Port on 127.0.0.1")

    parsed_args = parser.parse_args(args)

    try:
        apply_security_policy(insecure_flag=parsed_args.insecure)

        if parsed_args.command == "attest":
            run_attest(parsed_args)
        else:
            run_api_server(parsed_args.port)

    except AttestationError as e:
        logger.error(f"Attestation failed ({type(e).__name__}): {e}")
        sys.exit(2)
    except Exception as e:
        logger.exception(f"Failed to run Coreason Attestation: {e}")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()  # pragma: no cover
