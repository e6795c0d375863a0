"""Caveat records stored inside a macaroon.

Internally a caveat is one of two variants whose fields are packet views
into the owning macaroon's arena:

- :class:`FirstPartyCaveat`: a condition checked by the verifier itself.
- :class:`ThirdPartyCaveat`: a condition proven by a discharge macaroon;
  carries the encrypted caveat key (the verification id).

Callers only ever see :class:`Caveat`, an immutable ``(id, location)``
snapshot. The verification id is not exposed.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from macaroon_auth.wire.packet import Packet


@dataclass(frozen=True)
class FirstPartyCaveat:
    """A first-party caveat: condition only, optional location hint."""

    caveat_id: Packet
    location: Optional[Packet] = None


@dataclass(frozen=True)
class ThirdPartyCaveat:
    """A third-party caveat: identifier, encrypted key, optional location."""

    caveat_id: Packet
    verification_id: Packet
    location: Optional[Packet] = None


CaveatRecord = Union[FirstPartyCaveat, ThirdPartyCaveat]


@dataclass(frozen=True)
class Caveat:
    """Read-only view of a caveat as exposed by :attr:`Macaroon.caveats`.

    Parameters
    ----------
    id:
        The caveat identifier (the condition for first-party caveats).
    location:
        Location hint of the discharging service; empty for first-party
        caveats.
    is_third_party:
        True when a discharge macaroon is needed to satisfy the caveat.
    """

    id: str
    location: str = ""
    is_third_party: bool = False


__all__ = ["Caveat", "CaveatRecord", "FirstPartyCaveat", "ThirdPartyCaveat"]
