"""Token codec tests — issue/verify, expiry boundary, tamper resistance."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from tasktrack.auth.jwt import TokenCodec, TokenError, TokenExpired, TokenInvalid

from conftest import TEST_SECRET

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
TTL = timedelta(hours=3)


def _fixed(moment: datetime):
    return lambda: moment


def _issued_at_t0(subject: str = "alice") -> str:
    return TokenCodec(TEST_SECRET, clock=_fixed(T0)).issue(subject, TTL)


# ═══════════════════════════════════════════════════════════
# Round trip
# ═══════════════════════════════════════════════════════════


def test_issue_then_verify_returns_subject(codec):
    token = codec.issue("alice", timedelta(minutes=5))
    assert codec.verify(token) == "alice"


def test_claims_carry_subject_and_times():
    token = _issued_at_t0()
    claims = jwt.decode(token, options={"verify_signature": False})
    assert claims["sub"] == "alice"
    assert claims["iat"] == int(T0.timestamp())
    assert claims["exp"] == int((T0 + TTL).timestamp())


def test_subject_is_case_sensitive(codec):
    assert codec.verify(codec.issue("Alice", TTL)) == "Alice"


def test_empty_secret_is_rejected():
    with pytest.raises(ValueError):
        TokenCodec("")


def test_repr_hides_secret(codec):
    assert TEST_SECRET not in repr(codec)


@pytest.mark.parametrize(
    "ttl",
    [timedelta(0), timedelta(milliseconds=500), timedelta(seconds=-30)],
)
def test_sub_second_ttl_is_rejected(codec, ttl):
    with pytest.raises(ValueError):
        codec.issue("alice", ttl)


def test_one_second_ttl_is_the_minimum():
    token = TokenCodec(TEST_SECRET, clock=_fixed(T0)).issue("alice", timedelta(seconds=1))
    claims = jwt.decode(token, options={"verify_signature": False})
    assert claims["exp"] == claims["iat"] + 1


# ═══════════════════════════════════════════════════════════
# Expiry
# ═══════════════════════════════════════════════════════════


def test_valid_just_before_expiry():
    token = _issued_at_t0()
    verifier = TokenCodec(TEST_SECRET, clock=_fixed(T0 + TTL - timedelta(seconds=1)))
    assert verifier.verify(token) == "alice"


def test_valid_at_exact_expiry():
    token = _issued_at_t0()
    verifier = TokenCodec(TEST_SECRET, clock=_fixed(T0 + TTL))
    assert verifier.verify(token) == "alice"


def test_expired_just_after_expiry():
    token = _issued_at_t0()
    verifier = TokenCodec(TEST_SECRET, clock=_fixed(T0 + TTL + timedelta(seconds=1)))
    with pytest.raises(TokenExpired):
        verifier.verify(token)


def test_expired_is_a_token_error():
    token = _issued_at_t0()
    verifier = TokenCodec(TEST_SECRET, clock=_fixed(T0 + timedelta(days=30)))
    with pytest.raises(TokenError):
        verifier.verify(token)


# ═══════════════════════════════════════════════════════════
# Tampering and forgery
# ═══════════════════════════════════════════════════════════


def test_every_single_character_tamper_is_invalid():
    """Changing any one character of header, payload or signature fails."""
    token = _issued_at_t0()
    verifier = TokenCodec(TEST_SECRET, clock=_fixed(T0))
    for i, ch in enumerate(token):
        if ch == ".":
            continue
        replacement = "A" if ch != "A" else "B"
        tampered = token[:i] + replacement + token[i + 1:]
        with pytest.raises(TokenInvalid):
            verifier.verify(tampered)


def test_last_signature_character_variants_are_invalid():
    """Characters that decode to the same bytes are still rejected."""
    token = _issued_at_t0()
    verifier = TokenCodec(TEST_SECRET, clock=_fixed(T0))
    alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
    for ch in alphabet:
        if ch == token[-1]:
            continue
        with pytest.raises(TokenInvalid):
            verifier.verify(token[:-1] + ch)


def test_swapped_payload_is_invalid():
    """Bob's payload under Alice's signature does not verify."""
    alice = _issued_at_t0("alice")
    bob = _issued_at_t0("bob")
    header, _, sig = alice.split(".")
    forged = ".".join([header, bob.split(".")[1], sig])
    with pytest.raises(TokenInvalid):
        TokenCodec(TEST_SECRET, clock=_fixed(T0)).verify(forged)


def test_wrong_secret_is_invalid(codec):
    other = TokenCodec("some-other-secret-0123456789-abcdefghij")
    with pytest.raises(TokenInvalid):
        codec.verify(other.issue("alice", TTL))


def test_unsigned_token_is_invalid(codec):
    now = int(datetime.now(timezone.utc).timestamp())
    token = jwt.encode(
        {"sub": "alice", "iat": now, "exp": now + 60}, "", algorithm="none"
    )
    with pytest.raises(TokenInvalid):
        codec.verify(token)


def test_other_algorithm_is_invalid(codec):
    token = TokenCodec(TEST_SECRET, algorithm="HS512").issue("alice", TTL)
    with pytest.raises(TokenInvalid):
        codec.verify(token)


def test_missing_expiry_claim_is_invalid(codec):
    now = int(datetime.now(timezone.utc).timestamp())
    token = jwt.encode({"sub": "alice", "iat": now}, TEST_SECRET, algorithm="HS256")
    with pytest.raises(TokenInvalid):
        codec.verify(token)


@pytest.mark.parametrize(
    "garbage",
    ["", "not-a-token", "a.b", "a.b.c.d", "!!!.@@@.###", "eyJ.eyJ.="],
)
def test_garbage_is_invalid(codec, garbage):
    with pytest.raises(TokenInvalid):
        codec.verify(garbage)
