"""Exception hierarchy for macaroon encoding, crypto, and verification.

Every error raised by this package derives from :class:`MacaroonError`, so
callers that only care about "the credential is no good" can catch that one
class. The subclasses carry structured attributes for callers that need to
tell a malformed token from a rejected caveat.
"""
from __future__ import annotations


class MacaroonError(Exception):
    """Base class for all macaroon-related errors."""


# ---------------------------------------------------------------------------
# Encoding errors
# ---------------------------------------------------------------------------


class PacketFormatError(MacaroonError):
    """Raised when a binary packet stream is malformed."""

    def __init__(self, reason: str, offset: int | None = None) -> None:
        self.reason = reason
        self.offset = offset
        where = f" at offset {offset}" if offset is not None else ""
        super().__init__(f"Invalid macaroon packet{where}: {reason}")


class PacketTooLargeError(MacaroonError):
    """Raised when a field does not fit in a single packet."""

    def __init__(self, field: str, size: int, limit: int) -> None:
        self.field = field
        self.size = size
        self.limit = limit
        super().__init__(
            f"Packet for field {field!r} is {size} bytes, limit is {limit}"
        )


class JSONFormatError(MacaroonError):
    """Raised when a JSON macaroon does not match the expected schema."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid JSON macaroon: {reason}")


# ---------------------------------------------------------------------------
# Crypto errors
# ---------------------------------------------------------------------------


class CryptoError(MacaroonError):
    """Raised when caveat key encryption or decryption fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


# ---------------------------------------------------------------------------
# Verification errors
# ---------------------------------------------------------------------------


class VerificationError(MacaroonError):
    """Base class for errors raised while verifying a macaroon."""


class CaveatCheckError(VerificationError):
    """Raised when the caller's check rejects a first-party caveat."""

    def __init__(self, condition: str, reason: str = "") -> None:
        self.condition = condition
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(f"Caveat {condition!r} not satisfied{detail}")


class DischargeNotFoundError(VerificationError):
    """Raised when no discharge macaroon matches a third-party caveat."""

    def __init__(self, caveat_id: str) -> None:
        self.caveat_id = caveat_id
        super().__init__(f"Cannot find discharge macaroon for caveat {caveat_id!r}")


class DischargeReusedError(VerificationError):
    """Raised when one discharge macaroon satisfies more than one caveat."""

    def __init__(self, discharge_id: str) -> None:
        self.discharge_id = discharge_id
        super().__init__(f"Discharge macaroon {discharge_id!r} was used more than once")


class DischargeUnusedError(VerificationError):
    """Raised when a supplied discharge macaroon satisfies no caveat."""

    def __init__(self, discharge_id: str) -> None:
        self.discharge_id = discharge_id
        super().__init__(f"Discharge macaroon {discharge_id!r} was not used")


class SignatureMismatchError(VerificationError):
    """Raised when the recomputed signature differs from the stored one."""

    def __init__(self, macaroon_id: str) -> None:
        self.macaroon_id = macaroon_id
        super().__init__(
            f"Signature mismatch after caveat verification of macaroon {macaroon_id!r}"
        )


__all__ = [
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
