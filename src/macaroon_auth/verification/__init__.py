"""Macaroon verification engine and its configuration."""
from __future__ import annotations

from macaroon_auth.verification.policy import VerificationPolicy
from macaroon_auth.verification.verifier import CheckFunc, Verifier

__all__ = ["CheckFunc", "VerificationPolicy", "Verifier"]
