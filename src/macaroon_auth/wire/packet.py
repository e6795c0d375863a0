"""Packet codec — length-prefixed field framing for the macaroon v1 format.

Packet layout
-------------
::

    XXXX fieldname ' ' data '\\n'

``XXXX`` is the total packet length (including the four digits themselves)
as lowercase hexadecimal, so no packet can exceed 65535 bytes.

Packets never own their bytes. A :class:`Packet` is a ``(start, length)``
view into a ``bytearray`` arena owned by a macaroon; every packet of that
macaroon lives in the same arena, in wire order.
"""
from __future__ import annotations

from dataclasses import dataclass

from macaroon_auth.errors import PacketFormatError, PacketTooLargeError

# ------------------------------------------------------------------
# Field names
# ------------------------------------------------------------------

FIELD_LOCATION: str = "location"
FIELD_IDENTIFIER: str = "identifier"
FIELD_CAVEAT_ID: str = "cid"
FIELD_VERIFICATION_ID: str = "vid"
FIELD_CAVEAT_LOCATION: str = "cl"
FIELD_SIGNATURE: str = "signature"

FIELD_NAMES = frozenset(
    {
        FIELD_LOCATION,
        FIELD_IDENTIFIER,
        FIELD_CAVEAT_ID,
        FIELD_VERIFICATION_ID,
        FIELD_CAVEAT_LOCATION,
        FIELD_SIGNATURE,
    }
)

MAX_PACKET_LEN: int = 65535
PACKET_PREFIX_LEN: int = 4
# Four length digits, a one-letter field name, the space, and the newline.
MIN_PACKET_LEN: int = PACKET_PREFIX_LEN + 3

_HEX_DIGITS = frozenset(b"0123456789abcdefABCDEF")


@dataclass(frozen=True)
class Packet:
    """A view onto one packet stored in a shared byte arena.

    Parameters
    ----------
    start:
        Offset of the first length digit within the arena.
    total_len:
        Length of the whole packet, length digits and newline included.
    header_len:
        Length of ``XXXXfieldname ``, i.e. the offset of the data within the packet.
    """

    start: int
    total_len: int
    header_len: int

    @property
    def end(self) -> int:
        """Offset one past the terminating newline."""
        return self.start + self.total_len

    def field_name(self, buf: bytes | bytearray) -> str:
        """Return the packet's field name."""
        name = buf[self.start + PACKET_PREFIX_LEN : self.start + self.header_len - 1]
        return bytes(name).decode("ascii", errors="replace")

    def data(self, buf: bytes | bytearray) -> bytes:
        """Return the packet's payload, without header or newline."""
        return bytes(buf[self.start + self.header_len : self.end - 1])

    def rebase(self, delta: int) -> "Packet":
        """Return the same packet shifted by *delta* bytes."""
        return Packet(self.start + delta, self.total_len, self.header_len)


def packet_size(field: str, data: bytes) -> int:
    """Return the encoded size of a packet holding *data* under *field*."""
    return PACKET_PREFIX_LEN + len(field) + 1 + len(data) + 1


def append_packet(buf: bytearray, field: str, data: bytes) -> Packet:
    """Append a packet to *buf* and return a view of it.

    Raises
    ------
    PacketTooLargeError
        When the packet would exceed :data:`MAX_PACKET_LEN` bytes. *buf* is
        not modified in that case.
    """
    size = packet_size(field, data)
    if size > MAX_PACKET_LEN:
        raise PacketTooLargeError(field, size, MAX_PACKET_LEN)

    start = len(buf)
    buf += b"%04x" % size
    buf += field.encode("ascii")
    buf += b" "
    buf += data
    buf += b"\n"
    return Packet(start=start, total_len=size, header_len=PACKET_PREFIX_LEN + len(field) + 1)


def parse_packet(buf: bytes | bytearray, offset: int) -> Packet:
    """Parse the packet starting at *offset* in *buf*.

    Raises
    ------
    PacketFormatError
        When the bytes at *offset* are not a well-formed packet.
    """
    remaining = len(buf) - offset
    if remaining < 6:
        raise PacketFormatError("packet too short", offset)

    digits = bytes(buf[offset : offset + PACKET_PREFIX_LEN])
    if not all(b in _HEX_DIGITS for b in digits):
        raise PacketFormatError(f"cannot parse size {digits!r}", offset)
    size = int(digits, 16)
    if size > remaining:
        raise PacketFormatError(
            f"packet size {size} exceeds remaining {remaining} bytes", offset
        )
    if size < MIN_PACKET_LEN:
        raise PacketFormatError(f"packet size {size} too small", offset)

    body = bytes(buf[offset + PACKET_PREFIX_LEN : offset + size])
    space = body.find(b" ")
    # The separator must precede the terminating newline, and the field
    # name must not be empty.
    if space <= 0 or space >= len(body) - 1:
        raise PacketFormatError("cannot parse field name", offset)
    if body[-1:] != b"\n":
        raise PacketFormatError("no terminating newline found", offset)

    return Packet(start=offset, total_len=size, header_len=PACKET_PREFIX_LEN + space + 1)


__all__ = [
    "FIELD_CAVEAT_ID",
    "FIELD_CAVEAT_LOCATION",
    "FIELD_IDENTIFIER",
    "FIELD_LOCATION",
    "FIELD_NAMES",
    "FIELD_SIGNATURE",
    "FIELD_VERIFICATION_ID",
    "MAX_PACKET_LEN",
    "Packet",
    "append_packet",
    "packet_size",
    "parse_packet",
]
