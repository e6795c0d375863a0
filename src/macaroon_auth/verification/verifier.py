"""Verifier — recursive verification of a macaroon and its discharges.

Algorithm
---------
Verification recomputes every signature from scratch; the stored signature
is only trusted in the final comparison.

1. Start from ``keyed_hash(key, id)``, where *key* is the derived root key
   for the primary macaroon and the decrypted caveat key for a discharge.
2. Fold each caveat in stored order. First-party conditions go to the
   caller's ``check``. Third-party caveats decrypt their caveat key with the
   running signature, then verify the discharge macaroon whose identifier
   matches the caveat identifier, recursively.
3. Bind the result to the primary macaroon's signature and compare it in
   constant time with the stored signature.
4. Finally, every supplied discharge must have been used exactly once.

The per-discharge usage counters live in a :class:`_VerificationContext`
created for each call, so concurrent calls never share state.
"""
from __future__ import annotations

import hmac
import logging
from typing import Callable, Iterable, Optional

from macaroon_auth.core.caveat import FirstPartyCaveat, ThirdPartyCaveat
from macaroon_auth.core.macaroon import Macaroon, TextOrBytes, to_bytes
from macaroon_auth.crypto.keys import bind_for_request, keyed_hash, keyed_hash2, make_key
from macaroon_auth.crypto.secretbox import decrypt
from macaroon_auth.errors import (
    CaveatCheckError,
    CryptoError,
    DischargeNotFoundError,
    DischargeReusedError,
    DischargeUnusedError,
    SignatureMismatchError,
)
from macaroon_auth.verification.policy import VerificationPolicy

logger = logging.getLogger(__name__)

CheckFunc = Callable[[str], object]


class _VerificationContext:
    """State scoped to a single :meth:`Verifier.verify` call."""

    def __init__(self, check: CheckFunc, discharges: list[Macaroon], root_sig: bytes) -> None:
        self.check = check
        self.discharges = discharges
        self.used = [0] * len(discharges)
        self.root_sig = root_sig


class Verifier:
    """Verifies macaroons against a root key and a pool of discharges.

    Parameters
    ----------
    policy:
        Verification policy; defaults to :class:`VerificationPolicy()`.

    Examples
    --------
    >>> from macaroon_auth import Macaroon
    >>> m = Macaroon.new(b"secret", "key-1", "")
    >>> m.add_first_party_caveat("op = read")
    >>> Verifier().verify(m, b"secret", check=lambda c: c == "op = read")
    """

    def __init__(self, policy: Optional[VerificationPolicy] = None) -> None:
        self.policy = policy or VerificationPolicy()

    def verify(
        self,
        macaroon: Macaroon,
        root_key: TextOrBytes,
        check: CheckFunc,
        discharges: Iterable[Macaroon] = (),
    ) -> None:
        """Verify *macaroon* and every macaroon in *discharges*.

        Parameters
        ----------
        macaroon:
            The primary macaroon.
        root_key:
            Root key the primary macaroon was minted with.
        check:
            Called with the condition of each first-party caveat, in order.
            Returning ``False`` or raising rejects the caveat; any other
            return value accepts it.
        discharges:
            Discharge macaroons, already bound to *macaroon*. Each must be
            used by exactly one third-party caveat.

        Raises
        ------
        CaveatCheckError
            When *check* rejects a first-party caveat.
        CryptoError
            When a third-party caveat key cannot be decrypted.
        DischargeNotFoundError
            When no discharge matches a third-party caveat.
        DischargeReusedError
            When one discharge would satisfy two caveats.
        DischargeUnusedError
            When a discharge satisfies no caveat.
        SignatureMismatchError
            When any recomputed signature differs from the stored one.
        """
        ctx = _VerificationContext(check, list(discharges), macaroon.signature)
        derived_key = make_key(to_bytes(root_key, "root_key"))
        self._verify(macaroon, derived_key, ctx)

        for discharge, count in zip(ctx.discharges, ctx.used):
            if count == 0:
                raise DischargeUnusedError(discharge.id)
            if count > 1:
                raise DischargeReusedError(discharge.id)

        logger.info(
            "Verified macaroon %r with %d discharge(s)", macaroon.id, len(ctx.discharges)
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _verify(self, macaroon: Macaroon, key: bytes, ctx: _VerificationContext) -> None:
        sig = keyed_hash(key, macaroon.id_bytes)

        for index, record in enumerate(macaroon.records):
            cid = macaroon.packet_data(record.caveat_id)

            if isinstance(record, FirstPartyCaveat):
                self._check_condition(cid, ctx.check)
                sig = keyed_hash2(sig, b"", cid)

            elif isinstance(record, ThirdPartyCaveat):
                vid = macaroon.packet_data(record.verification_id)
                try:
                    caveat_key = decrypt(sig, vid)
                except CryptoError as exc:
                    raise CryptoError(
                        f"failed to decrypt caveat {index} of macaroon {macaroon.id!r}: "
                        f"{exc.reason}"
                    ) from exc

                location = macaroon.packet_data(record.location) if record.location else b""
                discharge_index = self._find_discharge(cid, location, ctx)
                discharge = ctx.discharges[discharge_index]
                # Counted before recursing so that a discharge cycle cannot
                # recurse forever.
                ctx.used[discharge_index] += 1
                if ctx.used[discharge_index] > 1:
                    raise DischargeReusedError(discharge.id)

                logger.debug("Caveat %d of %r discharged by %r", index, macaroon.id, discharge.id)
                self._verify(discharge, caveat_key, ctx)
                sig = keyed_hash2(sig, vid, cid)

            else:
                raise TypeError(f"unknown caveat record {record!r}")

        bound = bind_for_request(ctx.root_sig, sig)
        if not hmac.compare_digest(bound, macaroon.signature):
            raise SignatureMismatchError(macaroon.id)

    def _find_discharge(self, cid: bytes, location: bytes, ctx: _VerificationContext) -> int:
        for index, discharge in enumerate(ctx.discharges):
            if discharge.id_bytes != cid:
                continue
            if self.policy.match_discharge_location and discharge.location_bytes != location:
                continue
            return index
        raise DischargeNotFoundError(cid.decode("utf-8", errors="replace"))

    @staticmethod
    def _check_condition(cid: bytes, check: CheckFunc) -> None:
        try:
            condition = cid.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CaveatCheckError(repr(cid), "condition is not valid UTF-8") from exc

        try:
            result = check(condition)
        except CaveatCheckError:
            raise
        except Exception as exc:
            raise CaveatCheckError(condition, str(exc)) from exc

        if result is False:
            raise CaveatCheckError(condition, "rejected by check")
        logger.debug("First-party caveat %r satisfied", condition)


__all__ = ["CheckFunc", "Verifier"]
