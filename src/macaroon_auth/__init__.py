"""macaroon-auth — macaroon bearer credentials: minting, caveats, wire formats, verification.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import macaroon_auth
>>> macaroon_auth.__version__
'0.1.0'

Quick start
-----------
::

    from macaroon_auth import Macaroon, marshal_slice, unmarshal_slice

    root_key = b"this is a super secret key"
    m = Macaroon.new(root_key, "keyid", "https://service.example/")
    m.add_first_party_caveat("time < 2030-01-01")

    # Third-party caveat, discharged by another service
    m.add_third_party_caveat(b"shared with auth", "user=alice", "https://auth.example/")
    d = Macaroon.new(b"shared with auth", "user=alice", "https://auth.example/")
    d.bind(m.signature)

    wire = marshal_slice([m, d])
    primary, *discharges = unmarshal_slice(wire)
    primary.verify(root_key, check=lambda cond: cond == "time < 2030-01-01",
                   discharges=discharges)
"""
from __future__ import annotations

__version__: str = "0.1.0"

# ------------------------------------------------------------------
# Errors
# ------------------------------------------------------------------
from macaroon_auth.errors import (
    CaveatCheckError,
    CryptoError,
    DischargeNotFoundError,
    DischargeReusedError,
    DischargeUnusedError,
    JSONFormatError,
    MacaroonError,
    PacketFormatError,
    PacketTooLargeError,
    SignatureMismatchError,
    VerificationError,
)

# ------------------------------------------------------------------
# Core
# ------------------------------------------------------------------
from macaroon_auth.core import Caveat, Macaroon

# ------------------------------------------------------------------
# Wire formats
# ------------------------------------------------------------------
from macaroon_auth.wire.binary import (
    decode_base64,
    encode_base64,
    marshal_binary,
    marshal_slice,
    unmarshal_binary,
    unmarshal_slice,
)
from macaroon_auth.wire.json_format import (
    macaroon_from_json,
    macaroon_to_json,
    slice_from_json,
    slice_to_json,
)

# ------------------------------------------------------------------
# Verification
# ------------------------------------------------------------------
from macaroon_auth.verification import VerificationPolicy, Verifier

__all__ = [
    "__version__",
    # Core
    "Caveat",
    "Macaroon",
    # Wire
    "decode_base64",
    "encode_base64",
    "macaroon_from_json",
    "macaroon_to_json",
    "marshal_binary",
    "marshal_slice",
    "slice_from_json",
    "slice_to_json",
    "unmarshal_binary",
    "unmarshal_slice",
    # Verification
    "VerificationPolicy",
    "Verifier",
    # Errors
    "CaveatCheckError",
    "CryptoError",
    "DischargeNotFoundError",
    "DischargeReusedError",
    "DischargeUnusedError",
    "JSONFormatError",
    "MacaroonError",
    "PacketFormatError",
    "PacketTooLargeError",
    "SignatureMismatchError",
    "VerificationError",
]
