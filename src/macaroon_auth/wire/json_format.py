"""JSON encoding of macaroons.

Schema
------
::

    {
      "caveats": [{"cid": "...", "vid": "<base64url>", "cl": "..."}, ...],
      "location": "...",
      "identifier": "...",
      "signature": "<64 lowercase hex digits>"
    }

``vid`` and ``cl`` are omitted when empty. ``vid`` is written as unpadded
base64url; both padded and unpadded forms are accepted when decoding.
Caveat order is significant: it is the order in which caveats were folded
into the signature. Unknown keys are ignored when decoding.

Decoding rebuilds the packet arena from the JSON fields, so a macaroon
decoded from JSON re-encodes to the same binary form as the original.
"""
from __future__ import annotations

import json
from typing import Iterable, Optional

from pydantic import BaseModel, ValidationError, field_validator

from macaroon_auth.core.caveat import CaveatRecord, FirstPartyCaveat, ThirdPartyCaveat
from macaroon_auth.core.macaroon import Macaroon
from macaroon_auth.crypto.keys import HASH_LEN
from macaroon_auth.errors import JSONFormatError, MacaroonError, PacketFormatError
from macaroon_auth.wire.binary import decode_base64, encode_base64
from macaroon_auth.wire.packet import (
    FIELD_CAVEAT_ID,
    FIELD_CAVEAT_LOCATION,
    FIELD_IDENTIFIER,
    FIELD_LOCATION,
    FIELD_VERIFICATION_ID,
    append_packet,
)

# ------------------------------------------------------------------
# Schema models
# ------------------------------------------------------------------


class CaveatModel(BaseModel):
    """One entry of the ``caveats`` array."""

    cid: str
    vid: str = ""
    cl: str = ""

    model_config = {"extra": "ignore"}

    @field_validator("vid")
    @classmethod
    def _vid_is_base64url(cls, value: str) -> str:
        if value:
            try:
                decode_base64(value)
            except PacketFormatError as exc:
                raise ValueError(f"vid is not base64url: {exc.reason}") from exc
        return value


class MacaroonModel(BaseModel):
    """A single macaroon in JSON form."""

    caveats: Optional[list[CaveatModel]] = None
    location: str = ""
    identifier: str
    signature: str

    model_config = {"extra": "ignore"}

    @field_validator("signature")
    @classmethod
    def _signature_is_hex(cls, value: str) -> str:
        try:
            raw = bytes.fromhex(value)
        except ValueError as exc:
            raise ValueError(f"signature is not hex: {exc}") from exc
        if len(raw) != HASH_LEN:
            raise ValueError(f"signature must be {HASH_LEN} bytes, got {len(raw)}")
        return value.lower()


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _utf8(macaroon: Macaroon, raw: bytes, what: str) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise JSONFormatError(
            f"{what} of macaroon {macaroon.id!r} is not valid UTF-8; use the binary encoding"
        ) from exc


# ------------------------------------------------------------------
# Encode
# ------------------------------------------------------------------


def macaroon_to_dict(macaroon: Macaroon) -> dict[str, object]:
    """Return the JSON object layout of *macaroon*."""
    caveats: list[dict[str, str]] = []
    for record in macaroon.records:
        entry = {"cid": _utf8(macaroon, macaroon.packet_data(record.caveat_id), "caveat id")}
        if isinstance(record, ThirdPartyCaveat):
            entry["vid"] = encode_base64(macaroon.packet_data(record.verification_id))
        if record.location is not None:
            location = _utf8(macaroon, macaroon.packet_data(record.location), "caveat location")
            if location:
                entry["cl"] = location
        caveats.append(entry)

    return {
        "caveats": caveats,
        "location": _utf8(macaroon, macaroon.location_bytes, "location"),
        "identifier": _utf8(macaroon, macaroon.id_bytes, "identifier"),
        "signature": macaroon.signature_hex,
    }


def macaroon_to_json(macaroon: Macaroon) -> str:
    """Serialize *macaroon* to a compact JSON string."""
    return json.dumps(macaroon_to_dict(macaroon), separators=(",", ":"))


# ------------------------------------------------------------------
# Decode
# ------------------------------------------------------------------


def _from_model(model: MacaroonModel) -> Macaroon:
    data = bytearray()
    location = append_packet(data, FIELD_LOCATION, model.location.encode("utf-8"))
    identifier = append_packet(data, FIELD_IDENTIFIER, model.identifier.encode("utf-8"))

    caveats: list[CaveatRecord] = []
    for entry in model.caveats or []:
        cid = append_packet(data, FIELD_CAVEAT_ID, entry.cid.encode("utf-8"))
        vid = (
            append_packet(data, FIELD_VERIFICATION_ID, decode_base64(entry.vid))
            if entry.vid
            else None
        )
        cl = (
            append_packet(data, FIELD_CAVEAT_LOCATION, entry.cl.encode("utf-8"))
            if entry.cl
            else None
        )
        if vid is None:
            caveats.append(FirstPartyCaveat(cid, cl))
        else:
            caveats.append(ThirdPartyCaveat(cid, vid, cl))

    return Macaroon(data, location, identifier, caveats, bytes.fromhex(model.signature))


def macaroon_from_dict(data: object) -> Macaroon:
    """Decode a macaroon from its JSON object layout.

    Raises
    ------
    JSONFormatError
        When *data* does not match the schema.
    PacketTooLargeError
        When a field does not fit in a packet.
    """
    try:
        model = MacaroonModel.model_validate(data)
    except ValidationError as exc:
        raise JSONFormatError(str(exc)) from exc
    return _from_model(model)


def _load(text: str | bytes) -> object:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise JSONFormatError(f"not valid JSON: {exc}") from exc


def macaroon_from_json(text: str | bytes) -> Macaroon:
    """Decode a macaroon from a JSON string."""
    return macaroon_from_dict(_load(text))


# ------------------------------------------------------------------
# Slices
# ------------------------------------------------------------------


def slice_to_json(macaroons: Iterable[Macaroon]) -> str:
    """Serialize a primary macaroon and its discharges as a JSON array."""
    return json.dumps([macaroon_to_dict(m) for m in macaroons], separators=(",", ":"))


def slice_from_json(text: str | bytes) -> list[Macaroon]:
    """Decode a JSON array of macaroons."""
    data = _load(text)
    if not isinstance(data, list):
        raise JSONFormatError(f"expected a JSON array, got {type(data).__name__}")
    macaroons: list[Macaroon] = []
    for index, item in enumerate(data):
        try:
            macaroons.append(macaroon_from_dict(item))
        except MacaroonError as exc:
            raise JSONFormatError(f"macaroon {index}: {exc}") from exc
    return macaroons


__all__ = [
    "CaveatModel",
    "MacaroonModel",
    "macaroon_from_dict",
    "macaroon_from_json",
    "macaroon_to_dict",
    "macaroon_to_json",
    "slice_from_json",
    "slice_to_json",
]
