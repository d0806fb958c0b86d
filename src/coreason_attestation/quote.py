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
SGX Quote Body.

Decodes the 432-byte quote body that the attestation authority echoes back in
``isvEnclaveQuoteBody``: a 48-byte quote header followed by the 384-byte
enclave report body. The quote signature that follows in a full quote is never
echoed and is not parsed here.
"""

import struct

from pydantic import BaseModel, ConfigDict, Field

from coreason_attestation.exceptions import SchemaError

QUOTE_HEADER_SIZE = 48
REPORT_BODY_SIZE = 384
QUOTE_BODY_SIZE = QUOTE_HEADER_SIZE + REPORT_BODY_SIZE

REPORT_DATA_SIZE = 64

# attributes.flags DEBUG bit
SGX_FLAGS_DEBUG = 0x0000000000000002


class QuoteBody(BaseModel):
    """
    Decoded SGX quote body.

    Attributes:
        version (int): Quote format version.
        sign_type (int): EPID signature type (0 unlinkable, 1 linkable).
        epid_group_id (bytes): EPID group identifier.
        qe_svn (int): Security version of the quoting enclave.
        pce_svn (int): Security version of the provisioning certification enclave.
        xeid (int): Extended EPID group id.
        basename (bytes): Basename used for the linkable signature.
        cpu_svn (bytes): Security version of the CPU.
        misc_select (int): Enclave MISCSELECT.
        attributes_flags (int): Enclave attribute flags.
        attributes_xfrm (int): Enclave XFRM.
        mr_enclave (bytes): Enclave measurement.
        mr_signer (bytes): Hash of the enclave signer's key.
        isv_prod_id (int): Enclave product id.
        isv_svn (int): Enclave security version.
        report_data (bytes): 64 bytes of enclave-chosen data.
    """

    model_config = ConfigDict(frozen=True)

    version: int
    sign_type: int
    epid_group_id: bytes = Field(..., min_length=4, max_length=4)
    qe_svn: int
    pce_svn: int
    xeid: int
    basename: bytes = Field(..., min_length=32, max_length=32)
    cpu_svn: bytes = Field(..., min_length=16, max_length=16)
    misc_select: int
    attributes_flags: int
    attributes_xfrm: int
    mr_enclave: bytes = Field(..., min_length=32, max_length=32)
    mr_signer: bytes = Field(..., min_length=32, max_length=32)
    isv_prod_id: int
    isv_svn: int
    report_data: bytes = Field(..., min_length=REPORT_DATA_SIZE, max_length=REPORT_DATA_SIZE)

    @property
    def debug(self) -> bool:
        """True if the enclave was launched in debug mode."""
        return bool(self.attributes_flags & SGX_FLAGS_DEBUG)

    @classmethod
    def from_bytes(cls, data: bytes) -> "QuoteBody":
        """
        Decode a quote body.

        Args:
            data: At least QUOTE_BODY_SIZE bytes; anything after the body is ignored.

        Raises:
            SchemaError: If the data is too short to hold a quote body.
        """
        if len(data) < QUOTE_BODY_SIZE:
            raise SchemaError(f"Quote body too short: {len(data)} < {QUOTE_BODY_SIZE} bytes")

        version, sign_type = struct.unpack_from("<HH", data, 0)
        qe_svn, pce_svn, xeid = struct.unpack_from("<HHI", data, 8)

        report = data[QUOTE_HEADER_SIZE:QUOTE_BODY_SIZE]
        (misc_select,) = struct.unpack_from("<I", report, 16)
        flags, xfrm = struct.unpack_from("<QQ", report, 48)
        isv_prod_id, isv_svn = struct.unpack_from("<HH", report, 256)

        return cls(
            version=version,
            sign_type=sign_type,
            epid_group_id=data[4:8],
            qe_svn=qe_svn,
            pce_svn=pce_svn,
            xeid=xeid,
            basename=data[16:48],
            cpu_svn=report[0:16],
            misc_select=misc_select,
            attributes_flags=flags,
            attributes_xfrm=xfrm,
            mr_enclave=report[64:96],
            mr_signer=report[128:160],
            isv_prod_id=isv_prod_id,
            isv_svn=isv_svn,
            report_data=report[320:384],
        )
