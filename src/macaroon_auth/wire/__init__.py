"""Wire formats — packet framing, binary and JSON encodings.

The binary and JSON encoders live in :mod:`macaroon_auth.wire.binary` and
:mod:`macaroon_auth.wire.json_format`; they depend on the macaroon core and
are re-exported from :mod:`macaroon_auth` itself.
"""
from __future__ import annotations

from macaroon_auth.wire.packet import (
    MAX_PACKET_LEN,
    Packet,
    append_packet,
    parse_packet,
)

__all__ = ["MAX_PACKET_LEN", "Packet", "append_packet", "parse_packet"]
