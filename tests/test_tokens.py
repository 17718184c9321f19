"""Unit tests for auth/tokens.py -- session token issue, verify and refresh.

All tests drive the issuer with a FakeClock so expiry is exercised without
sleeping. Tokens that need an unusual shape (missing claims, wrong types,
alg=none) are built by hand from base64url JSON segments.
"""

import base64
import json
from datetime import timedelta, timezone

import pytest
from jose import jwt

from auth.errors import FatalError, SigningUnavailable, TokenError, TokenFailure
from auth.tokens import TokenIssuer

TEST_SECRET = "token-test-secret-0123456789abcdef"
T0 = 1_700_000_000
HOUR = 3600
_B64_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"


class FakeClock:
    def __init__(self, now: float = T0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(clock) -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, ttl=timedelta(hours=1), clock=clock)


def _segment(obj) -> str:
    raw = json.dumps(obj, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _signed(payload: dict, secret: str = TEST_SECRET, algorithm: str = "HS256") -> str:
    return jwt.encode(payload, secret, algorithm=algorithm)


def _payload(**overrides) -> dict:
    payload = {"sub": "7", "username": "alice", "email": "alice@example.com", "iat": T0, "exp": T0 + HOUR}
    payload.update(overrides)
    return payload


def _reason(issuer: TokenIssuer, token) -> TokenFailure:
    with pytest.raises(TokenError) as info:
        issuer.verify(token)
    return info.value.reason


# ---------------------------------------------------------------------------
# Issue / verify
# ---------------------------------------------------------------------------


def test_issue_then_verify_returns_same_identity(issuer):
    token = issuer.issue(42, "alice", "alice@example.com")
    claims = issuer.verify(token)

    assert claims.subject_id == 42
    assert claims.username == "alice"
    assert claims.email == "alice@example.com"
    assert claims.issued_at.timestamp() == T0
    assert claims.expires_at.timestamp() == T0 + HOUR
    assert claims.expires_at.tzinfo == timezone.utc
    assert claims.identity.user_id == 42


def test_wire_payload_shape(issuer):
    token = issuer.issue(42, "alice", "alice@example.com")

    assert jwt.get_unverified_header(token)["alg"] == "HS256"
    assert jwt.get_unverified_claims(token) == {
        "sub": "42",
        "username": "alice",
        "email": "alice@example.com",
        "iat": T0,
        "exp": T0 + HOUR,
    }


def test_issue_with_ttl_override(issuer):
    claims = issuer.verify(issuer.issue(1, "bob", "bob@example.com", ttl=timedelta(minutes=5)))
    assert claims.expires_at.timestamp() - claims.issued_at.timestamp() == 300


def test_expires_in_seconds_reflects_configured_ttl(issuer):
    assert issuer.expires_in_seconds == HOUR


def test_foreign_hs256_token_with_our_secret_verifies(issuer):
    claims = issuer.verify(_signed(_payload()))
    assert claims.subject_id == 7


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


def test_token_valid_up_to_and_including_exp(issuer, clock):
    token = issuer.issue(1, "alice", "alice@example.com")
    clock.advance(HOUR)
    assert issuer.verify(token).subject_id == 1


def test_token_expired_one_second_after_exp(issuer, clock):
    token = issuer.issue(1, "alice", "alice@example.com")
    clock.advance(HOUR + 1)
    assert _reason(issuer, token) is TokenFailure.expired


def test_leeway_extends_acceptance_window(clock):
    issuer = TokenIssuer(TEST_SECRET, ttl=timedelta(hours=1), leeway_seconds=30, clock=clock)
    token = issuer.issue(1, "alice", "alice@example.com")

    clock.advance(HOUR + 30)
    assert issuer.verify(token).subject_id == 1
    clock.advance(1)
    assert _reason(issuer, token) is TokenFailure.expired


def test_expired_token_with_bad_signature_reports_signature(issuer, clock):
    token = _signed(_payload(), secret="some-other-secret-0123456789abcdef")
    clock.advance(10 * HOUR)
    assert _reason(issuer, token) is TokenFailure.invalid_signature


# ---------------------------------------------------------------------------
# Signature and algorithm
# ---------------------------------------------------------------------------


def test_token_from_other_secret_rejected(issuer, clock):
    other = TokenIssuer("another-secret-key-0123456789abcdef", ttl=timedelta(hours=1), clock=clock)
    token = other.issue(1, "alice", "alice@example.com")
    assert _reason(issuer, token) is TokenFailure.invalid_signature


def test_hs512_token_rejected(issuer):
    assert _reason(issuer, _signed(_payload(), algorithm="HS512")) is TokenFailure.invalid_signature


def test_alg_none_token_rejected(issuer):
    token = f"{_segment({'alg': 'none', 'typ': 'JWT'})}.{_segment(_payload())}."
    assert _reason(issuer, token) is TokenFailure.invalid_signature


def _low_and_high_bit_flips(char: str) -> set[str]:
    idx = _B64_ALPHABET.index(char)
    return {_B64_ALPHABET[idx ^ flip] for flip in (1, 2, 3, 32)}


def test_any_single_character_change_is_rejected(issuer):
    token = issuer.issue(42, "alice", "alice@example.com")
    for idx, char in enumerate(token):
        if char == ".":
            continue
        for replacement in _low_and_high_bit_flips(char):
            tampered = token[:idx] + replacement + token[idx + 1 :]
            assert _reason(issuer, tampered) in (TokenFailure.malformed, TokenFailure.invalid_signature), (
                idx,
                replacement,
            )


def test_last_character_of_every_segment_has_one_spelling(issuer):
    token = issuer.issue(42, "alice", "alice@example.com")
    last_positions = [i - 1 for i, c in enumerate(token) if c == "."] + [len(token) - 1]
    for idx in last_positions:
        for replacement in _B64_ALPHABET:
            if replacement == token[idx]:
                continue
            tampered = token[:idx] + replacement + token[idx + 1 :]
            assert _reason(issuer, tampered) in (TokenFailure.malformed, TokenFailure.invalid_signature), (
                idx,
                replacement,
            )


def test_signature_with_unused_bits_set_is_malformed(issuer):
    header, payload, signature = issuer.issue(42, "alice", "alice@example.com").split(".")
    # 32 signature bytes take 43 characters; the last one carries 2 unused bits.
    twin = signature[:-1] + _B64_ALPHABET[_B64_ALPHABET.index(signature[-1]) ^ 1]
    assert _reason(issuer, f"{header}.{payload}.{twin}") is TokenFailure.malformed


@pytest.mark.parametrize("suffix", ["=", "+", "/", " ", "é", "\n"])
def test_characters_outside_base64url_are_malformed(issuer, suffix):
    assert _reason(issuer, issuer.issue(42, "alice", "alice@example.com") + suffix) is TokenFailure.malformed


# ---------------------------------------------------------------------------
# Malformed
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "not.a.token", None, 12345])
def test_structurally_broken_tokens(issuer, token):
    assert _reason(issuer, token) is TokenFailure.malformed


def test_non_object_payload_is_malformed(issuer):
    token = f"{_segment({'alg': 'HS256', 'typ': 'JWT'})}.{_segment([1, 2, 3])}.c2ln"
    assert _reason(issuer, token) is TokenFailure.malformed


@pytest.mark.parametrize("claim", ["sub", "username", "email", "iat", "exp"])
def test_missing_claim_is_malformed(issuer, claim):
    payload = _payload()
    del payload[claim]
    with pytest.raises(TokenError) as info:
        issuer.verify(_signed(payload))
    assert info.value.reason is TokenFailure.malformed
    assert claim in info.value.detail


@pytest.mark.parametrize(
    "overrides",
    [
        {"sub": 7},
        {"sub": "seven"},
        {"sub": "-7"},
        {"username": 5},
        {"email": None},
        {"iat": "1700000000"},
        {"exp": True},
        {"exp": 1700003600.5},
        {"exp": T0},
        {"exp": T0 - 1},
    ],
)
def test_ill_typed_claims_are_malformed(issuer, overrides):
    assert _reason(issuer, _signed(_payload(**overrides))) is TokenFailure.malformed


def test_ill_typed_claims_with_bad_signature_still_malformed(issuer):
    token = _signed(_payload(sub=7), secret="some-other-secret-0123456789abcdef")
    assert _reason(issuer, token) is TokenFailure.malformed


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------


def test_refresh_preserves_identity_and_moves_window(issuer, clock):
    original = issuer.verify(issuer.issue(42, "alice", "alice@example.com"))
    clock.advance(600)

    refreshed = issuer.verify(issuer.refresh(original))

    assert refreshed.identity == original.identity
    assert refreshed.issued_at.timestamp() == T0 + 600
    assert refreshed.expires_at.timestamp() == T0 + 600 + HOUR


def test_refresh_in_same_second_still_extends_expiry(issuer):
    original = issuer.verify(issuer.issue(42, "alice", "alice@example.com"))
    refreshed = issuer.verify(issuer.refresh(original))
    assert refreshed.expires_at > original.expires_at


def test_refresh_keeps_later_expiry_of_long_lived_token(issuer):
    original = issuer.verify(issuer.issue(42, "alice", "alice@example.com", ttl=timedelta(hours=5)))
    refreshed = issuer.verify(issuer.refresh(original))
    assert refreshed.expires_at.timestamp() == T0 + 5 * HOUR + 1


def test_refreshed_token_survives_original_expiry(issuer, clock):
    token = issuer.issue(42, "alice", "alice@example.com")
    clock.advance(HOUR - 1)
    fresh = issuer.refresh(issuer.verify(token))
    clock.advance(2)

    assert _reason(issuer, token) is TokenFailure.expired
    assert issuer.verify(fresh).subject_id == 42


# ---------------------------------------------------------------------------
# Configuration and fatal errors
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-5), timedelta(milliseconds=500)])
def test_non_positive_ttl_rejected(ttl):
    with pytest.raises(ValueError):
        TokenIssuer(TEST_SECRET, ttl=ttl)


def test_non_positive_ttl_override_rejected(issuer):
    with pytest.raises(ValueError):
        issuer.issue(1, "alice", "alice@example.com", ttl=timedelta(0))


def test_empty_secret_rejected():
    with pytest.raises(ValueError):
        TokenIssuer("", ttl=timedelta(hours=1))


def test_negative_leeway_rejected():
    with pytest.raises(ValueError):
        TokenIssuer(TEST_SECRET, ttl=timedelta(hours=1), leeway_seconds=-1)


def test_signing_failure_is_fatal(issuer, monkeypatch):
    def broken_encode(*args, **kwargs):
        raise TypeError("key unusable")

    monkeypatch.setattr(jwt, "encode", broken_encode)
    with pytest.raises(SigningUnavailable) as info:
        issuer.issue(1, "alice", "alice@example.com")
    assert isinstance(info.value, FatalError)
