#!/usr/bin/env python3
"""Example: Quickstart

Demonstrates minting a macaroon, attenuating it with first-party
caveats and verifying it against the root key.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install macaroon-auth
"""
from __future__ import annotations

import macaroon_auth
from macaroon_auth import CaveatCheckError, Macaroon


def main() -> None:
    print(f"macaroon-auth version: {macaroon_auth.__version__}")

    root_key = b"this is our super secret key; only we should know it"

    # Step 1: Mint a macaroon
    m = Macaroon.new(root_key, "we used our secret key", "http://mybank/")
    print(f"Minted: id={m.id!r} location={m.location!r}")
    print(f"  Signature: {m.signature_hex}")

    # Step 2: Restrict it with a first-party caveat
    m.add_first_party_caveat("account = 3735928559")
    print(f"After caveat signature: {m.signature_hex}")

    # Step 3: Serialize for transport
    token = m.serialize()
    print(f"\nSerialized token: {token[:40]}...")
    print(m.inspect())

    # Step 4: Verify with a check that accepts the condition
    received = Macaroon.deserialize(token)
    received.verify(root_key, check=lambda cond: cond == "account = 3735928559")
    print("\nVerification with matching check: OK")

    # Step 5: Verification fails when the condition is not satisfied
    try:
        received.verify(root_key, check=lambda cond: cond == "account = 0")
    except CaveatCheckError as error:
        print(f"Verification with wrong check failed: {error}")

    print("\nQuickstart complete.")


if __name__ == "__main__":
    main()
