"""Keyed hashing primitives used to fold macaroon signatures.

All macaroon signatures are HMAC-SHA256 chains. The helpers here must match
the reference construction byte for byte; a different folding order does
not fail loudly, it just produces signatures nobody else can verify.
"""
from __future__ import annotations

import hashlib
import hmac

HASH_LEN: int = 32

# Key used to derive a fixed-size HMAC key from an arbitrary root key.
KEY_GENERATOR: bytes = b"macaroons-key-generator"

# Key of the final binding step that ties a discharge to its primary macaroon.
ZERO_KEY: bytes = bytes(HASH_LEN)


def keyed_hash(key: bytes, text: bytes) -> bytes:
    """Return HMAC-SHA256(*key*, *text*)."""
    return hmac.new(key, text, hashlib.sha256).digest()


def keyed_hash2(key: bytes, d1: bytes, d2: bytes) -> bytes:
    """Fold two byte strings into a single keyed hash.

    When *d1* is empty this is ``keyed_hash(key, d2)``; otherwise both
    inputs are hashed separately and the concatenation is hashed again.
    """
    if not d1:
        return keyed_hash(key, d2)
    return keyed_hash(key, keyed_hash(key, d1) + keyed_hash(key, d2))


def make_key(variable_key: bytes) -> bytes:
    """Derive a 32-byte key from a root key of any length."""
    return keyed_hash(KEY_GENERATOR, variable_key)


def bind_for_request(root_sig: bytes, discharge_sig: bytes) -> bytes:
    """Bind *discharge_sig* to the primary macaroon signature *root_sig*.

    A signature bound to itself is left unchanged, which is what makes the
    same final check work for the primary macaroon and its discharges.
    """
    if hmac.compare_digest(root_sig, discharge_sig):
        return root_sig
    return keyed_hash2(ZERO_KEY, root_sig, discharge_sig)


__all__ = [
    "HASH_LEN",
    "KEY_GENERATOR",
    "ZERO_KEY",
    "bind_for_request",
    "keyed_hash",
    "keyed_hash2",
    "make_key",
]
