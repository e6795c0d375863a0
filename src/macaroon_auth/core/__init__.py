"""Macaroon core — minting, caveats, binding and cloning.

Quick start
-----------
::

    from macaroon_auth.core import Macaroon

    m = Macaroon.new(b"root key", "key-id", "https://service.example/")
    m.add_first_party_caveat("account = 3735928559")
    print(m.signature_hex)
"""
from __future__ import annotations

from macaroon_auth.core.caveat import Caveat, CaveatRecord, FirstPartyCaveat, ThirdPartyCaveat
from macaroon_auth.core.macaroon import Macaroon

__all__ = [
    "Caveat",
    "CaveatRecord",
    "FirstPartyCaveat",
    "Macaroon",
    "ThirdPartyCaveat",
]
