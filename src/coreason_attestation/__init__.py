"""
Coreason Attestation Package.

Client-side remote attestation of SGX enclaves: submit a quote to the
attestation authority and validate the signed report it returns.
"""

from coreason_attestation.services import AttestationService, AttestationServiceAsync

__all__ = ["AttestationService", "AttestationServiceAsync"]
