"""Authenticated encryption of third-party caveat root keys.

A third-party caveat carries its root key encrypted under the signature of
the macaroon at the point the caveat was added. The construction is NaCl
``secretbox`` (XSalsa20-Poly1305) with a random 24-byte nonce prepended to
the ciphertext, as provided by PyNaCl.
"""
from __future__ import annotations

from typing import Callable, Optional

import nacl.exceptions
import nacl.secret
import nacl.utils

from macaroon_auth.crypto.keys import HASH_LEN
from macaroon_auth.errors import CryptoError

NONCE_LEN: int = nacl.secret.SecretBox.NONCE_SIZE
TAG_LEN: int = nacl.secret.SecretBox.MACBYTES

RandomSource = Callable[[int], bytes]


def encrypt(key: bytes, plaintext: bytes, rand: Optional[RandomSource] = None) -> bytes:
    """Encrypt a 32-byte *plaintext* under *key*.

    Parameters
    ----------
    key:
        32-byte encryption key (the current macaroon signature).
    plaintext:
        32-byte caveat root key.
    rand:
        Callable returning *n* random bytes. Defaults to
        :func:`nacl.utils.random`.

    Returns
    -------
    bytes
        ``nonce || ciphertext``.

    Raises
    ------
    CryptoError
        When the random source returns fewer bytes than requested.
    """
    if len(plaintext) != HASH_LEN:
        raise ValueError(f"plaintext must be {HASH_LEN} bytes, got {len(plaintext)}")

    nonce = (rand or nacl.utils.random)(NONCE_LEN)
    if len(nonce) != NONCE_LEN:
        raise CryptoError(
            f"cannot generate random bytes: wanted {NONCE_LEN}, got {len(nonce)}"
        )

    box = nacl.secret.SecretBox(key)
    return bytes(box.encrypt(plaintext, bytes(nonce)))


def decrypt(key: bytes, ciphertext: bytes) -> bytes:
    """Decrypt ``nonce || ciphertext`` produced by :func:`encrypt`.

    Raises
    ------
    CryptoError
        When the input is too short, authentication fails, or the payload
        is not exactly 32 bytes.
    """
    if len(ciphertext) < NONCE_LEN + TAG_LEN:
        raise CryptoError("message too short")

    box = nacl.secret.SecretBox(key)
    try:
        plaintext = box.decrypt(ciphertext)
    except nacl.exceptions.CryptoError as exc:
        raise CryptoError("decryption failure") from exc

    if len(plaintext) != HASH_LEN:
        raise CryptoError(f"decrypted key has unexpected length {len(plaintext)}")
    return plaintext


__all__ = ["NONCE_LEN", "RandomSource", "TAG_LEN", "decrypt", "encrypt"]
