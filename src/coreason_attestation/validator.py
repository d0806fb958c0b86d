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
Report Validator.

Establishes that an attestation report is authentic and belongs to the
submitted evidence before the enclave identity inside it is released.

The checks run in a fixed order and each one fails with its own error kind:

1. Evidence correlation   -> EvidenceMismatchError
2. Certificate chain      -> UntrustedSignerError
3. Report signature       -> InvalidSignatureError
4. Quote status policy    -> QuoteRejectedError
"""

import base64
from datetime import datetime, timezone
from typing import Callable, Collection, List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from coreason_attestation.crypto.keys import PublicKey
from coreason_attestation.exceptions import (
    EvidenceMismatchError,
    InvalidSignatureError,
    QuoteRejectedError,
    UntrustedSignerError,
)
from coreason_attestation.quote import QUOTE_BODY_SIZE
from coreason_attestation.schemas import (
    AttestationReport,
    CorrelationMode,
    EnclaveIdentity,
    QuoteStatus,
    ReportBody,
)
from coreason_attestation.utils.logger import logger

# Statuses that are rejected even when a caller lists them as accepted
NEVER_ACCEPTED = frozenset({QuoteStatus.SIGNATURE_INVALID})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _verify_with_key(
    public_key: PublicKey,
    signature: bytes,
    data: bytes,
    hash_algorithm: Optional[hashes.HashAlgorithm],
) -> None:
    """
    Verify ``signature`` over ``data``.

    RSA keys use PKCS#1 v1.5, EC keys use ECDSA.

    Raises:
        InvalidSignature: If the signature does not verify.
        TypeError: If the key type or hash algorithm is unsupported.
    """
    if hash_algorithm is None:
        raise TypeError("Signature hash algorithm is required")
    if isinstance(public_key, rsa.RSAPublicKey):
        public_key.verify(signature, data, padding.PKCS1v15(), hash_algorithm)
    elif isinstance(public_key, ec.EllipticCurvePublicKey):
        public_key.verify(signature, data, ec.ECDSA(hash_algorithm))
    else:
        raise TypeError(f"Unsupported key type: {type(public_key).__name__}")


def _same_key(a: PublicKey, b: PublicKey) -> bool:
    der = serialization.Encoding.DER
    spki = serialization.PublicFormat.SubjectPublicKeyInfo
    return bool(a.public_bytes(der, spki) == b.public_bytes(der, spki))


class ReportValidator:
    """
    Validator for attestation reports.

    Holds no per-call state; a single instance may be shared between threads.
    """

    def __init__(
        self,
        correlation: CorrelationMode = CorrelationMode.EXACT,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """
        Initialize the validator.

        Args:
            correlation: How the echoed quote body is matched to the evidence.
            clock: Returns the current UTC time, for certificate validity checks.
        """
        self.correlation = correlation
        self._clock = clock or _utcnow

    def validate(
        self,
        report: AttestationReport,
        evidence: bytes,
        trusted_key: PublicKey,
        accepted_statuses: Collection[QuoteStatus],
        nonce: Optional[str] = None,
    ) -> EnclaveIdentity:
        """
        Validate a report and extract the attested enclave identity.

        Args:
            report: Parsed report as received from the authority.
            evidence: The evidence that was submitted.
            trusted_key: Pinned key terminating the signing certificate chain.
            accepted_statuses: Quote statuses the caller trusts.
            nonce: Nonce sent with the evidence, if any.

        Returns:
            EnclaveIdentity: The attested identity.

        Raises:
            EvidenceMismatchError: Report does not correspond to the evidence.
            UntrustedSignerError: Certificate chain does not reach the trusted key.
            InvalidSignatureError: Signature does not cover the raw body bytes.
            QuoteRejectedError: Quote status is not accepted.
        """
        self.check_evidence(report.body, evidence, nonce)
        signer = self.verify_certificate_chain(report.signing_certificates, trusted_key)
        self.verify_signature(report, signer)
        self.check_status(report.body, accepted_statuses)

        identity = EnclaveIdentity.from_report(report.body)
        logger.info(
            f"Attestation report {identity.report_id or '<no id>'} validated: "
            f"mr_enclave={identity.mr_enclave} status={identity.status.value}"
        )
        return identity

    def check_evidence(self, body: ReportBody, evidence: bytes, nonce: Optional[str] = None) -> None:
        """Confirm the report echoes the submitted evidence (and nonce)."""
        if self.correlation == CorrelationMode.PREFIX:
            submitted = base64.b64encode(evidence).decode("ascii")
            echoed = body.isv_enclave_quote_body
            matches = bool(echoed) and submitted.startswith(echoed)
        else:
            matches = body.quote_body_bytes() == evidence[:QUOTE_BODY_SIZE]

        if not matches:
            logger.critical("Attestation report does not contain the submitted quote. Possible replay.")
            raise EvidenceMismatchError("Report does not contain submitted quote")

        if nonce is not None and body.nonce != nonce:
            logger.critical("Attestation report nonce does not match the submitted nonce. Possible replay.")
            raise EvidenceMismatchError("Report nonce does not match submitted nonce")

    def verify_certificate_chain(self, pem_certificates: Collection[bytes], trusted_key: PublicKey) -> x509.Certificate:
        """
        Validate the signing certificate chain up to the trusted key.

        Walks the chain from the leaf. Each certificate must be within its
        validity window. The walk stops at the first certificate that either
        carries the trusted key or is signed by it; every certificate before
        that one must be directly issued by its successor.

        Returns:
            x509.Certificate: The leaf (signing) certificate.
        """
        chain = self._load_certificates(pem_certificates)
        now = self._clock()

        for index, cert in enumerate(chain):
            if not (cert.not_valid_before_utc <= now <= cert.not_valid_after_utc):
                logger.error(f"Signing certificate {cert.subject.rfc4514_string()} is outside its validity period")
                raise UntrustedSignerError(f"Certificate {cert.subject.rfc4514_string()} is expired or not yet valid")

            if self._is_anchored(cert, trusted_key):
                logger.debug(f"Certificate chain anchored at depth {index}")
                return chain[0]

            if index + 1 == len(chain):
                break

            issuer = chain[index + 1]
            try:
                cert.verify_directly_issued_by(issuer)
            except (InvalidSignature, UnsupportedAlgorithm, ValueError, TypeError) as e:
                logger.critical(f"Broken link in signing certificate chain at depth {index}: {e!r}")
                raise UntrustedSignerError(
                    f"Certificate {cert.subject.rfc4514_string()} is not issued by {issuer.subject.rfc4514_string()}"
                ) from e

        logger.critical("Signing certificate chain does not terminate at the trusted verification key.")
        raise UntrustedSignerError("Certificate chain does not terminate at the trusted verification key")

    @staticmethod
    def _load_certificates(pem_certificates: Collection[bytes]) -> List[x509.Certificate]:
        if not pem_certificates:
            raise UntrustedSignerError("No signing certificate provided")
        chain = []
        for pem in pem_certificates:
            try:
                chain.append(x509.load_pem_x509_certificate(pem))
            except ValueError as e:
                logger.error(f"Failed to load signing certificate: {e}")
                raise UntrustedSignerError(f"Invalid signing certificate: {e}") from e
        return chain

    @staticmethod
    def _is_anchored(cert: x509.Certificate, trusted_key: PublicKey) -> bool:
        """True if the certificate carries, or is signed by, the trusted key."""
        try:
            if _same_key(cert.public_key(), trusted_key):  # type: ignore[arg-type]
                return True
            _verify_with_key(trusted_key, cert.signature, cert.tbs_certificate_bytes, cert.signature_hash_algorithm)
        except (InvalidSignature, UnsupportedAlgorithm, TypeError):
            return False
        return True

    @staticmethod
    def verify_signature(report: AttestationReport, signer: x509.Certificate) -> None:
        """Verify the detached signature over the exact raw report body bytes."""
        try:
            _verify_with_key(
                signer.public_key(),  # type: ignore[arg-type]
                report.signature,
                report.raw_body,
                hashes.SHA256(),
            )
        except (InvalidSignature, UnsupportedAlgorithm, TypeError) as e:
            logger.critical("Attestation report signature is INVALID.")
            raise InvalidSignatureError("Report signature does not match the report body") from e

    @staticmethod
    def check_status(body: ReportBody, accepted_statuses: Collection[QuoteStatus]) -> None:
        """Apply the caller's quote status policy."""
        status = body.isv_enclave_quote_status
        if status in NEVER_ACCEPTED or status not in accepted_statuses:
            accepted = sorted(s.value if isinstance(s, QuoteStatus) else str(s) for s in accepted_statuses)
            logger.error(f"Quote status rejected: {status.value} (accepted: {accepted})")
            raise QuoteRejectedError(status.value)

        if status != QuoteStatus.OK:
            logger.warning(
                f"Accepting quote with status {status.value} by caller policy "
                f"(revocationReason={body.revocation_reason}, advisories={body.advisory_ids})"
            )
