"""Binary v1 encoding of macaroons and macaroon slices.

Encoding
--------
A macaroon encodes as its packet arena (``location``, ``identifier``, then
``cid`` / ``vid`` / ``cl`` packets for each caveat) followed by one
``signature`` packet. The encoding is self-delimiting, so a slice (a
primary macaroon followed by its discharges) is plain concatenation.

Transport form
--------------
HTTP clients usually pass macaroons around as unpadded base64url of the
binary form; :func:`encode_base64` / :func:`decode_base64` handle that and
accept padded input too.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Iterable, Optional

from macaroon_auth.core.caveat import CaveatRecord, FirstPartyCaveat, ThirdPartyCaveat
from macaroon_auth.core.macaroon import Macaroon
from macaroon_auth.crypto.keys import HASH_LEN
from macaroon_auth.errors import PacketFormatError
from macaroon_auth.wire.packet import (
    FIELD_CAVEAT_ID,
    FIELD_CAVEAT_LOCATION,
    FIELD_IDENTIFIER,
    FIELD_LOCATION,
    FIELD_SIGNATURE,
    FIELD_VERIFICATION_ID,
    Packet,
    append_packet,
    parse_packet,
)

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Single macaroon
# ------------------------------------------------------------------


def marshal_binary(macaroon: Macaroon) -> bytes:
    """Return the binary encoding of *macaroon*."""
    buf = bytearray(macaroon.arena)
    append_packet(buf, FIELD_SIGNATURE, macaroon.signature)
    return bytes(buf)


class _PendingCaveat:
    """Caveat fields collected while scanning packets."""

    def __init__(self, caveat_id: Packet) -> None:
        self.caveat_id = caveat_id
        self.verification_id: Optional[Packet] = None
        self.location: Optional[Packet] = None

    def record(self, delta: int) -> CaveatRecord:
        """Build the caveat record, shifting every packet by *delta*."""
        caveat_id = self.caveat_id.rebase(delta)
        location = self.location.rebase(delta) if self.location is not None else None
        if self.verification_id is None:
            return FirstPartyCaveat(caveat_id, location)
        return ThirdPartyCaveat(caveat_id, self.verification_id.rebase(delta), location)


def _expect_packet(buf: memoryview, offset: int, field: str) -> Packet:
    packet = parse_packet(buf, offset)
    name = packet.field_name(buf)
    if name != field:
        raise PacketFormatError(f"expected field {field!r}, got {name!r}", offset)
    return packet


def unmarshal_binary(data: bytes, offset: int = 0) -> tuple[Macaroon, int]:
    """Decode one macaroon starting at *offset* in *data*.

    Returns
    -------
    tuple[Macaroon, int]
        The macaroon and the number of bytes consumed.

    Raises
    ------
    PacketFormatError
        When the packet stream is malformed.
    """
    with memoryview(data) as buf:
        location = _expect_packet(buf, offset, FIELD_LOCATION)
        identifier = _expect_packet(buf, location.end, FIELD_IDENTIFIER)

        pending_caveats: list[_PendingCaveat] = []
        start = identifier.end
        while True:
            packet = parse_packet(buf, start)
            field = packet.field_name(buf)
            pending = pending_caveats[-1] if pending_caveats else None

            if field == FIELD_SIGNATURE:
                signature = packet.data(buf)
                if len(signature) != HASH_LEN:
                    raise PacketFormatError(
                        f"signature has unexpected length {len(signature)}", start
                    )
                # The decoded macaroon owns a private copy of just its own bytes.
                arena = bytearray(buf[offset : packet.start])
                caveats = [p.record(-offset) for p in pending_caveats]
                macaroon = Macaroon(
                    arena,
                    location.rebase(-offset),
                    identifier.rebase(-offset),
                    caveats,
                    signature,
                )
                return macaroon, packet.end - offset

            if field == FIELD_CAVEAT_ID:
                pending_caveats.append(_PendingCaveat(packet))
            elif field == FIELD_VERIFICATION_ID:
                if pending is None:
                    raise PacketFormatError(f"{field!r} field outside caveat", start)
                if pending.verification_id is not None:
                    raise PacketFormatError(f"repeated field {field!r} in caveat", start)
                if packet.total_len == packet.header_len + 1:
                    raise PacketFormatError("empty verification id", start)
                pending.verification_id = packet
            elif field == FIELD_CAVEAT_LOCATION:
                if pending is None:
                    raise PacketFormatError(f"{field!r} field outside caveat", start)
                if pending.location is not None:
                    raise PacketFormatError(f"repeated field {field!r} in caveat", start)
                pending.location = packet
            else:
                raise PacketFormatError(f"unexpected field {field!r}", start)

            start = packet.end


def unmarshal_binary_exact(data: bytes) -> Macaroon:
    """Decode *data*, which must hold exactly one macaroon."""
    macaroon, consumed = unmarshal_binary(data)
    if consumed != len(data):
        raise PacketFormatError(
            f"{len(data) - consumed} unexpected trailing bytes", consumed
        )
    return macaroon


# ------------------------------------------------------------------
# Slices
# ------------------------------------------------------------------


def marshal_slice(macaroons: Iterable[Macaroon]) -> bytes:
    """Concatenate the binary encodings of *macaroons*."""
    return b"".join(marshal_binary(m) for m in macaroons)


def unmarshal_slice(data: bytes) -> list[Macaroon]:
    """Decode every macaroon in a concatenated binary slice."""
    macaroons: list[Macaroon] = []
    offset = 0
    while offset < len(data):
        macaroon, consumed = unmarshal_binary(data, offset)
        macaroons.append(macaroon)
        offset += consumed
    logger.debug("Decoded slice of %d macaroons (%d bytes)", len(macaroons), offset)
    return macaroons


# ------------------------------------------------------------------
# base64url transport form
# ------------------------------------------------------------------


def encode_base64(data: bytes) -> str:
    """Return unpadded base64url of *data*."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def decode_base64(text: str) -> bytes:
    """Decode base64url *text*, padded or unpadded.

    Raises
    ------
    PacketFormatError
        When *text* is not valid base64url.
    """
    stripped = text.strip()
    try:
        return base64.b64decode(
            stripped + "=" * (-len(stripped) % 4), altchars=b"-_", validate=True
        )
    except (binascii.Error, ValueError) as exc:
        raise PacketFormatError(f"invalid base64url encoding: {exc}") from exc


__all__ = [
    "decode_base64",
    "encode_base64",
    "marshal_binary",
    "marshal_slice",
    "unmarshal_binary",
    "unmarshal_binary_exact",
    "unmarshal_slice",
]
