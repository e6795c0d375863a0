"""Tests for macaroon_auth.verification — recursive macaroon verification."""
from __future__ import annotations

import pytest

from macaroon_auth import Macaroon, VerificationPolicy, Verifier
from macaroon_auth.errors import (
    CaveatCheckError,
    CryptoError,
    DischargeNotFoundError,
    DischargeReusedError,
    DischargeUnusedError,
    MacaroonError,
    SignatureMismatchError,
    VerificationError,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ROOT_KEY: bytes = b"this is a super secret key"
DISCHARGE_KEY: bytes = b"shared with the auth service"
AUTH_LOCATION: str = "https://auth.example/"


def accept_all(condition: str) -> bool:
    return True


def allow(*conditions: str):  # type: ignore[no-untyped-def]
    allowed = set(conditions)
    return lambda condition: condition in allowed


def make_primary() -> Macaroon:
    m = Macaroon.new(ROOT_KEY, "keyid", "https://service.example/")
    m.add_first_party_caveat("time < 2030-01-01")
    m.add_third_party_caveat(DISCHARGE_KEY, "user=alice", AUTH_LOCATION)
    return m


def make_discharge(primary: Macaroon, location: str = "", bind: bool = True) -> Macaroon:
    d = Macaroon.new(DISCHARGE_KEY, "user=alice", location)
    if bind:
        d.bind(primary.signature)
    return d


# ---------------------------------------------------------------------------
# First-party caveats
# ---------------------------------------------------------------------------


class TestFirstParty:
    def test_no_caveats(self) -> None:
        Macaroon.new(ROOT_KEY, "keyid", "").verify(ROOT_KEY, accept_all)

    def test_accepted_condition(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("time < 2030-01-01")
        m.verify(ROOT_KEY, allow("time < 2030-01-01"))

    def test_rejected_condition_returning_false(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("time < 2030-01-01")
        with pytest.raises(CaveatCheckError) as exc_info:
            m.verify(ROOT_KEY, allow("something else"))
        assert exc_info.value.condition == "time < 2030-01-01"

    def test_rejected_condition_raising(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("time < 2000-01-01")

        def check(condition: str) -> None:
            raise ValueError("token expired")

        with pytest.raises(CaveatCheckError) as exc_info:
            m.verify(ROOT_KEY, check)
        assert exc_info.value.reason == "token expired"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_check_returning_none_accepts(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("anything")
        m.verify(ROOT_KEY, lambda condition: None)

    def test_caveat_check_error_from_check_propagates_unchanged(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("op = write")
        original = CaveatCheckError("op = write", "read only")

        def check(condition: str) -> None:
            raise original

        with pytest.raises(CaveatCheckError) as exc_info:
            m.verify(ROOT_KEY, check)
        assert exc_info.value is original

    def test_check_sees_conditions_in_order(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        for condition in ("a", "b", "c"):
            m.add_first_party_caveat(condition)
        seen: list[str] = []
        m.verify(ROOT_KEY, lambda condition: seen.append(condition))
        assert seen == ["a", "b", "c"]

    def test_stops_at_first_rejection(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("a")
        m.add_first_party_caveat("b")
        seen: list[str] = []

        def check(condition: str) -> bool:
            seen.append(condition)
            return False

        with pytest.raises(CaveatCheckError):
            m.verify(ROOT_KEY, check)
        assert seen == ["a"]

    def test_wrong_root_key(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        with pytest.raises(SignatureMismatchError):
            m.verify(b"not the root key", accept_all)

    def test_attenuated_copy_still_verifies(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        restricted = m.clone()
        restricted.add_first_party_caveat("op = read")
        m.verify(ROOT_KEY, accept_all)
        restricted.verify(ROOT_KEY, allow("op = read"))


# ---------------------------------------------------------------------------
# Third-party caveats
# ---------------------------------------------------------------------------


class TestThirdParty:
    def test_bound_discharge_verifies(self) -> None:
        m = make_primary()
        d = make_discharge(m)
        m.verify(ROOT_KEY, allow("time < 2030-01-01"), [d])

    def test_unbound_discharge_fails(self) -> None:
        m = make_primary()
        d = make_discharge(m, bind=False)
        with pytest.raises(SignatureMismatchError) as exc_info:
            m.verify(ROOT_KEY, accept_all, [d])
        assert exc_info.value.macaroon_id == "user=alice"

    def test_discharge_bound_to_other_primary_fails(self) -> None:
        m = make_primary()
        other = make_primary()
        d = make_discharge(other)
        with pytest.raises(SignatureMismatchError):
            m.verify(ROOT_KEY, accept_all, [d])

    def test_discharge_with_wrong_key_fails(self) -> None:
        m = make_primary()
        d = Macaroon.new(b"some other key", "user=alice", "")
        d.bind(m.signature)
        with pytest.raises(SignatureMismatchError):
            m.verify(ROOT_KEY, accept_all, [d])

    def test_missing_discharge(self) -> None:
        m = make_primary()
        with pytest.raises(DischargeNotFoundError) as exc_info:
            m.verify(ROOT_KEY, accept_all)
        assert exc_info.value.caveat_id == "user=alice"

    def test_discharge_with_other_id(self) -> None:
        m = make_primary()
        d = Macaroon.new(DISCHARGE_KEY, "user=bob", "")
        d.bind(m.signature)
        with pytest.raises(DischargeNotFoundError):
            m.verify(ROOT_KEY, accept_all, [d])

    def test_extra_discharge_is_rejected(self) -> None:
        m = make_primary()
        d = make_discharge(m)
        extra = Macaroon.new(b"unrelated", "unrelated", "")
        extra.bind(m.signature)
        with pytest.raises(DischargeUnusedError) as exc_info:
            m.verify(ROOT_KEY, accept_all, [d, extra])
        assert exc_info.value.discharge_id == "unrelated"

    def test_same_discharge_for_two_caveats_is_reused(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_third_party_caveat(DISCHARGE_KEY, "user=alice", AUTH_LOCATION)
        m.add_third_party_caveat(DISCHARGE_KEY, "user=alice", AUTH_LOCATION)
        d = make_discharge(m)
        with pytest.raises(DischargeReusedError) as exc_info:
            m.verify(ROOT_KEY, accept_all, [d])
        assert exc_info.value.discharge_id == "user=alice"

    def test_discharge_first_party_caveats_are_checked(self) -> None:
        m = make_primary()
        d = Macaroon.new(DISCHARGE_KEY, "user=alice", "")
        d.add_first_party_caveat("ip = 10.0.0.1")
        d.bind(m.signature)
        m.verify(ROOT_KEY, allow("time < 2030-01-01", "ip = 10.0.0.1"), [d])
        with pytest.raises(CaveatCheckError) as exc_info:
            m.verify(ROOT_KEY, allow("time < 2030-01-01"), [d])
        assert exc_info.value.condition == "ip = 10.0.0.1"

    def test_nested_discharge(self) -> None:
        m = make_primary()
        d = Macaroon.new(DISCHARGE_KEY, "user=alice", "")
        d.add_third_party_caveat(b"mfa key", "mfa=ok", "https://mfa.example/")
        e = Macaroon.new(b"mfa key", "mfa=ok", "")
        d.bind(m.signature)
        # Every discharge is bound to the primary macaroon, not its parent.
        e.bind(m.signature)
        m.verify(ROOT_KEY, accept_all, [e, d])

    def test_nested_discharge_bound_to_parent_fails(self) -> None:
        m = make_primary()
        d = Macaroon.new(DISCHARGE_KEY, "user=alice", "")
        d.add_third_party_caveat(b"mfa key", "mfa=ok", "https://mfa.example/")
        e = Macaroon.new(b"mfa key", "mfa=ok", "")
        e.bind(d.signature)
        d.bind(m.signature)
        with pytest.raises(SignatureMismatchError):
            m.verify(ROOT_KEY, accept_all, [d, e])

    def test_discharge_cycle_terminates(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_third_party_caveat(b"loop key", "loop", "")
        d = Macaroon.new(b"loop key", "loop", "")
        d.add_third_party_caveat(b"loop key", "loop", "")
        d.bind(m.signature)
        with pytest.raises(DischargeReusedError):
            m.verify(ROOT_KEY, accept_all, [d])

    def test_repeated_verification_is_independent(self) -> None:
        m = make_primary()
        d = make_discharge(m)
        verifier = Verifier()
        verifier.verify(m, ROOT_KEY, accept_all, [d])
        verifier.verify(m, ROOT_KEY, accept_all, [d])


# ---------------------------------------------------------------------------
# Discharge location matching
# ---------------------------------------------------------------------------


class TestDischargeLocation:
    def test_location_is_advisory_by_default(self) -> None:
        m = make_primary()
        d = make_discharge(m, location="https://somewhere-else.example/")
        m.verify(ROOT_KEY, accept_all, [d])

    def test_policy_requires_matching_location(self) -> None:
        m = make_primary()
        d = make_discharge(m, location="https://somewhere-else.example/")
        policy = VerificationPolicy(match_discharge_location=True)
        with pytest.raises(DischargeNotFoundError):
            m.verify(ROOT_KEY, accept_all, [d], policy=policy)

    def test_policy_accepts_matching_location(self) -> None:
        m = make_primary()
        d = make_discharge(m, location=AUTH_LOCATION)
        Verifier(VerificationPolicy(match_discharge_location=True)).verify(
            m, ROOT_KEY, accept_all, [d]
        )

    def test_policy_skips_mismatched_candidate(self) -> None:
        m = make_primary()
        wrong = make_discharge(m, location="https://somewhere-else.example/")
        right = make_discharge(m, location=AUTH_LOCATION)
        policy = VerificationPolicy(match_discharge_location=True)
        # The mismatched candidate is never used, so it is reported unused.
        with pytest.raises(DischargeUnusedError):
            m.verify(ROOT_KEY, accept_all, [wrong, right], policy=policy)
        m.verify(ROOT_KEY, accept_all, [right], policy=policy)


# ---------------------------------------------------------------------------
# Tamper detection
# ---------------------------------------------------------------------------


class TestTamperDetection:
    def _flip(self, data: bytes, index: int) -> bytes:
        tampered = bytearray(data)
        tampered[index] ^= 0x01
        return bytes(tampered)

    def test_tampered_caveat_id(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("account = 3735928559")
        data = m.to_bytes()
        tampered = Macaroon.from_bytes(self._flip(data, data.index(b"3735928559")))
        with pytest.raises(SignatureMismatchError):
            tampered.verify(ROOT_KEY, accept_all)

    def test_tampered_signature(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("account = 3735928559")
        tampered = Macaroon.from_bytes(self._flip(m.to_bytes(), -2))
        with pytest.raises(SignatureMismatchError):
            tampered.verify(ROOT_KEY, accept_all)

    def test_tampered_verification_id(self) -> None:
        m = make_primary()
        d = make_discharge(m)
        data = m.to_bytes()
        vid_start = data.index(b"vid ") + len(b"vid ")
        tampered = Macaroon.from_bytes(self._flip(data, vid_start + 30))
        with pytest.raises(CryptoError):
            tampered.verify(ROOT_KEY, accept_all, [d])

    def test_reordered_caveats(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("one")
        m.add_first_party_caveat("two")
        data = m.to_dict()
        data["caveats"] = list(reversed(data["caveats"]))  # type: ignore[arg-type]
        with pytest.raises(SignatureMismatchError):
            Macaroon.from_dict(data).verify(ROOT_KEY, accept_all)

    def test_dropped_caveat(self) -> None:
        m = Macaroon.new(ROOT_KEY, "keyid", "")
        m.add_first_party_caveat("one")
        m.add_first_party_caveat("two")
        data = m.to_dict()
        data["caveats"] = data["caveats"][:1]  # type: ignore[index]
        with pytest.raises(SignatureMismatchError):
            Macaroon.from_dict(data).verify(ROOT_KEY, accept_all)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class TestErrorHierarchy:
    @pytest.mark.parametrize(
        "error_cls",
        [
            CaveatCheckError,
            DischargeNotFoundError,
            DischargeReusedError,
            DischargeUnusedError,
            SignatureMismatchError,
        ],
    )
    def test_verification_errors_share_base(self, error_cls: type) -> None:
        assert issubclass(error_cls, VerificationError)
        assert issubclass(error_cls, MacaroonError)

    def test_crypto_error_is_macaroon_error(self) -> None:
        assert issubclass(CryptoError, MacaroonError)
