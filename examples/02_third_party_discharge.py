#!/usr/bin/env python3
"""Example: Third-Party Caveats and Discharges

Demonstrates delegating an authorization decision to another service
with a third-party caveat, minting and binding the discharge macaroon,
and sending the pair as a JSON slice.

Usage:
    python examples/02_third_party_discharge.py

Requirements:
    pip install macaroon-auth
"""
from __future__ import annotations

import macaroon_auth
from macaroon_auth import (
    DischargeNotFoundError,
    Macaroon,
    VerificationPolicy,
    Verifier,
    slice_from_json,
    slice_to_json,
)


def main() -> None:
    print(f"macaroon-auth version: {macaroon_auth.__version__}")

    service_key = b"this is a super secret key"
    shared_key = b"secret shared with the auth service"

    # Step 1: The target service mints a macaroon with a third-party caveat
    primary = Macaroon.new(service_key, "keyid", "https://service.example/")
    primary.add_first_party_caveat("op = read")
    primary.add_third_party_caveat(shared_key, "user=alice", "https://auth.example/")
    print(f"Primary caveats: {[c.id for c in primary.caveats]}")

    # Step 2: The auth service mints the discharge for the caveat id
    discharge = Macaroon.new(shared_key, "user=alice", "https://auth.example/")
    discharge.add_first_party_caveat("time < 2030-01-01")

    # Step 3: The client binds the discharge to the primary macaroon
    discharge.bind(primary.signature)

    # Step 4: Send both macaroons as one JSON document
    wire = slice_to_json([primary, discharge])
    print(f"\nJSON slice: {len(wire)} characters")

    # Step 5: The target service verifies the request
    received, *discharges = slice_from_json(wire)
    allowed = {"op = read", "time < 2030-01-01"}
    verifier = Verifier(VerificationPolicy(match_discharge_location=True))
    verifier.verify(received, service_key, allowed.__contains__, discharges)
    print("Verification with bound discharge: OK")

    # Step 6: Without the discharge, verification fails
    try:
        verifier.verify(received, service_key, allowed.__contains__)
    except DischargeNotFoundError as error:
        print(f"Verification without discharge failed: {error}")

    print("\nThird-party example complete.")


if __name__ == "__main__":
    main()
