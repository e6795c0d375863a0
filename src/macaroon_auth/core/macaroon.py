"""Macaroon — a bearer credential with chained, attenuating caveats.

A macaroon holds a location hint, an identifier, an ordered list of caveats
and a 32-byte signature. The signature starts as the keyed hash of the
identifier under a key derived from the root key, and every caveat added
afterwards is folded into it. Anyone holding a macaroon can add caveats
(narrowing its authority); only the holder of the root key can verify it.

Storage model
-------------
All packets of a macaroon (location, identifier, caveat fields) are kept in
wire order in a single ``bytearray`` arena. Packets and caveat records are
offset views into that arena, so binary encoding is the arena plus a final
signature packet. :meth:`Macaroon.clone` copies the arena, so appending to a
clone never touches the original.

A single instance must not be mutated from several threads at once; hand
each thread its own :meth:`~Macaroon.clone`.

Example
-------
::

    m = Macaroon.new(b"root key", "key-id", "https://service.example/")
    m.add_first_party_caveat("time < 2030-01-01")
    m.verify(b"root key", check=lambda cond: cond == "time < 2030-01-01")
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Iterable, Optional, Union

from macaroon_auth.core.caveat import (
    Caveat,
    CaveatRecord,
    FirstPartyCaveat,
    ThirdPartyCaveat,
)
from macaroon_auth.crypto.keys import (
    HASH_LEN,
    bind_for_request,
    keyed_hash,
    keyed_hash2,
    make_key,
)
from macaroon_auth.crypto.secretbox import RandomSource, encrypt
from macaroon_auth.wire.packet import (
    FIELD_CAVEAT_ID,
    FIELD_CAVEAT_LOCATION,
    FIELD_IDENTIFIER,
    FIELD_LOCATION,
    FIELD_VERIFICATION_ID,
    Packet,
    append_packet,
)

if TYPE_CHECKING:
    from macaroon_auth.verification.policy import VerificationPolicy

logger = logging.getLogger(__name__)

TextOrBytes = Union[str, bytes, bytearray]


def to_bytes(value: TextOrBytes, name: str = "value") -> bytes:
    """Return *value* as bytes, encoding text as UTF-8."""
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise TypeError(f"{name} must be str or bytes, got {type(value).__name__}")


class Macaroon:
    """A mutable macaroon backed by a packet arena.

    Use :meth:`new` to mint a macaroon, or one of the ``from_*`` class
    methods to decode one. The constructor takes already-validated arena
    views and is meant for the decoders in :mod:`macaroon_auth.wire`.
    """

    def __init__(
        self,
        data: bytearray,
        location: Packet,
        identifier: Packet,
        caveats: list[CaveatRecord],
        signature: bytes,
    ) -> None:
        if len(signature) != HASH_LEN:
            raise ValueError(f"signature must be {HASH_LEN} bytes, got {len(signature)}")
        self._data = data
        self._location = location
        self._id = identifier
        self._caveats = caveats
        self._sig = bytes(signature)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @classmethod
    def new(
        cls,
        root_key: TextOrBytes,
        id: TextOrBytes,
        location: TextOrBytes = "",
    ) -> "Macaroon":
        """Mint a new macaroon.

        Parameters
        ----------
        root_key:
            Secret key of any length; never stored in the macaroon.
        id:
            Identifier the minting service uses to find the root key again.
        location:
            Advisory hint of where the macaroon is meant to be used.

        Raises
        ------
        PacketTooLargeError
            When *id* or *location* does not fit in a packet.
        """
        id_bytes = to_bytes(id, "id")
        data = bytearray()
        location_packet = append_packet(data, FIELD_LOCATION, to_bytes(location, "location"))
        id_packet = append_packet(data, FIELD_IDENTIFIER, id_bytes)
        signature = keyed_hash(make_key(to_bytes(root_key, "root_key")), id_bytes)
        return cls(data, location_packet, id_packet, [], signature)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def location(self) -> str:
        """The macaroon's location hint."""
        return self._text(self._location)

    @property
    def location_bytes(self) -> bytes:
        """The location hint as raw bytes."""
        return self.packet_data(self._location)

    @property
    def id(self) -> str:
        """The macaroon identifier."""
        return self._text(self._id)

    @property
    def id_bytes(self) -> bytes:
        """The macaroon identifier as raw bytes."""
        return self.packet_data(self._id)

    @property
    def signature(self) -> bytes:
        """The current 32-byte signature."""
        return self._sig

    @property
    def signature_hex(self) -> str:
        return self._sig.hex()

    @property
    def caveats(self) -> tuple[Caveat, ...]:
        """Snapshot of the caveats in the order they were added."""
        return tuple(
            Caveat(
                id=self._text(record.caveat_id),
                location=self._text(record.location) if record.location else "",
                is_third_party=isinstance(record, ThirdPartyCaveat),
            )
            for record in self._caveats
        )

    @property
    def records(self) -> tuple[CaveatRecord, ...]:
        """Caveat records as arena views, for the verifier and encoders."""
        return tuple(self._caveats)

    @property
    def arena(self) -> bytes:
        """Packet-encoded location, identifier and caveats, in wire order."""
        return bytes(self._data)

    def packet_data(self, packet: Packet) -> bytes:
        """Return the payload of *packet* from this macaroon's arena."""
        return packet.data(self._data)

    def _text(self, packet: Packet) -> str:
        return self.packet_data(packet).decode("utf-8", errors="replace")

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add_first_party_caveat(self, caveat_id: TextOrBytes) -> None:
        """Add a caveat checked by the verifier itself.

        Raises
        ------
        PacketTooLargeError
            When *caveat_id* does not fit in a packet.
        """
        cid = to_bytes(caveat_id, "caveat_id")
        self._append_caveat(cid, b"", b"")
        self._sig = keyed_hash2(self._sig, b"", cid)
        logger.debug("Added first-party caveat to macaroon %r", self.id)

    def add_third_party_caveat(
        self,
        root_key: TextOrBytes,
        caveat_id: TextOrBytes,
        location: TextOrBytes = "",
        rand: Optional[RandomSource] = None,
    ) -> None:
        """Add a caveat that must be discharged by a third party.

        Parameters
        ----------
        root_key:
            Root key the third party will use to mint the discharge
            macaroon. It is shared with the third party out of band
            (typically inside *caveat_id*, encrypted for it).
        caveat_id:
            Identifier the third party uses to recover the root key and
            the condition to check.
        location:
            Location hint of the discharging service.
        rand:
            Random source for the encryption nonce.

        Raises
        ------
        CryptoError
            When the random source is exhausted.
        """
        cid = to_bytes(caveat_id, "caveat_id")
        verification_id = encrypt(self._sig, make_key(to_bytes(root_key, "root_key")), rand)
        self._append_caveat(cid, verification_id, to_bytes(location, "location"))
        self._sig = keyed_hash2(self._sig, verification_id, cid)
        logger.debug("Added third-party caveat to macaroon %r", self.id)

    def bind(self, parent_signature: bytes) -> None:
        """Bind this discharge macaroon to the primary macaroon signature."""
        self._sig = bind_for_request(bytes(parent_signature), self._sig)

    def clone(self) -> "Macaroon":
        """Return an independent copy of this macaroon."""
        return Macaroon(
            bytearray(self._data),
            self._location,
            self._id,
            list(self._caveats),
            self._sig,
        )

    def _append_caveat(self, cid: bytes, verification_id: bytes, location: bytes) -> None:
        mark = len(self._data)
        try:
            cid_packet = append_packet(self._data, FIELD_CAVEAT_ID, cid)
            vid_packet = (
                append_packet(self._data, FIELD_VERIFICATION_ID, verification_id)
                if verification_id
                else None
            )
            location_packet = (
                append_packet(self._data, FIELD_CAVEAT_LOCATION, location)
                if location
                else None
            )
        except Exception:
            del self._data[mark:]
            raise

        record: CaveatRecord
        if vid_packet is None:
            record = FirstPartyCaveat(cid_packet, location_packet)
        else:
            record = ThirdPartyCaveat(cid_packet, vid_packet, location_packet)
        self._caveats.append(record)

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def verify(
        self,
        root_key: TextOrBytes,
        check: Callable[[str], object],
        discharges: Iterable["Macaroon"] = (),
        policy: Optional["VerificationPolicy"] = None,
    ) -> None:
        """Verify this macaroon and its discharges.

        See :meth:`macaroon_auth.verification.Verifier.verify`.
        """
        from macaroon_auth.verification.verifier import Verifier

        Verifier(policy).verify(self, root_key, check, discharges)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """Encode to the binary v1 wire format."""
        from macaroon_auth.wire.binary import marshal_binary

        return marshal_binary(self)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Macaroon":
        """Decode a single macaroon from the binary v1 wire format."""
        from macaroon_auth.wire.binary import unmarshal_binary_exact

        return unmarshal_binary_exact(data)

    def serialize(self) -> str:
        """Encode as unpadded base64url of the binary format."""
        from macaroon_auth.wire.binary import encode_base64

        return encode_base64(self.to_bytes())

    @classmethod
    def deserialize(cls, text: str) -> "Macaroon":
        """Decode a macaroon produced by :meth:`serialize`."""
        from macaroon_auth.wire.binary import decode_base64

        return cls.from_bytes(decode_base64(text))

    def to_dict(self) -> dict[str, object]:
        """Serialize to the JSON object layout."""
        from macaroon_auth.wire.json_format import macaroon_to_dict

        return macaroon_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Macaroon":
        """Reconstruct a macaroon from :meth:`to_dict` output."""
        from macaroon_auth.wire.json_format import macaroon_from_dict

        return macaroon_from_dict(data)

    def to_json(self) -> str:
        """Serialize to a JSON string."""
        from macaroon_auth.wire.json_format import macaroon_to_json

        return macaroon_to_json(self)

    @classmethod
    def from_json(cls, text: str | bytes) -> "Macaroon":
        """Decode a macaroon from a JSON string."""
        from macaroon_auth.wire.json_format import macaroon_from_json

        return macaroon_from_json(text)

    def inspect(self) -> str:
        """Return a human-readable, line-oriented dump of the macaroon."""
        lines = [f"location {self.location}", f"identifier {self.id}"]
        for record in self._caveats:
            lines.append(f"cid {self._text(record.caveat_id)}")
            if isinstance(record, ThirdPartyCaveat):
                lines.append(f"vid {self.packet_data(record.verification_id).hex()}")
            if record.location:
                lines.append(f"cl {self._text(record.location)}")
        lines.append(f"signature {self.signature_hex}")
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Macaroon):
            return NotImplemented
        return bytes(self._data) == bytes(other._data) and self._sig == other._sig

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return (
            f"Macaroon(id={self.id!r}, location={self.location!r}, "
            f"caveats={len(self._caveats)}, signature={self.signature_hex[:16]}...)"
        )


__all__ = ["Macaroon", "TextOrBytes", "to_bytes"]
