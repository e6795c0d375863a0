"""Cryptographic primitives for macaroon signatures and caveat keys."""
from __future__ import annotations

from macaroon_auth.crypto.keys import (
    HASH_LEN,
    ZERO_KEY,
    bind_for_request,
    keyed_hash,
    keyed_hash2,
    make_key,
)
from macaroon_auth.crypto.secretbox import NONCE_LEN, TAG_LEN, decrypt, encrypt

__all__ = [
    "HASH_LEN",
    "NONCE_LEN",
    "TAG_LEN",
    "ZERO_KEY",
    "bind_for_request",
    "decrypt",
    "encrypt",
    "keyed_hash",
    "keyed_hash2",
    "make_key",
]
