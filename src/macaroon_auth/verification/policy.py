"""VerificationPolicy — tunable knobs for macaroon verification.

Defaults reproduce the reference protocol exactly. Deployments that want
stricter matching can opt in per verifier.
"""
from __future__ import annotations

from pydantic import BaseModel


class VerificationPolicy(BaseModel):
    """Configurable verification policy.

    Parameters
    ----------
    match_discharge_location:
        When True, a discharge macaroon only satisfies a third-party caveat
        if its location equals the caveat's location hint. The default
        matches on identifier alone; locations are advisory.
    """

    match_discharge_location: bool = False

    model_config = {"frozen": True}
