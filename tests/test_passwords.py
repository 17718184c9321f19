"""Unit tests for auth/passwords.py -- bcrypt hashing and verification.

Covers:
- hash is salted, never the plaintext, and carries the configured work factor
- verify(p, hash(p)) succeeds; any other password fails with CredentialError
- malformed stored hashes fail as a mismatch, not a crash
- verify_dummy always fails with the same generic error
- passwords beyond bcrypt's 72-byte input limit hash and verify consistently
- entropy/salt failure surfaces as HashingUnavailable
- work factor bounds
"""

import bcrypt
import pytest

from auth.errors import CredentialError, FatalError, HashingUnavailable
from auth.passwords import PasswordHasher


def test_hash_is_not_plaintext_and_is_salted(hasher):
    first = hasher.hash("Secret123")
    second = hasher.hash("Secret123")
    assert first != "Secret123"
    assert first != second
    assert first.startswith("$2b$04$")


@pytest.mark.parametrize("password", ["Secret123", "Pässwörd9", "x" * 8, "Emoji🙂Pass1"])
def test_verify_roundtrip(hasher, password):
    assert hasher.verify(password, hasher.hash(password)) is None


@pytest.mark.parametrize("other", ["Secret124", "secret123", "Secret123 ", ""])
def test_verify_rejects_other_passwords(hasher, other):
    stored = hasher.hash("Secret123")
    with pytest.raises(CredentialError) as info:
        hasher.verify(other, stored)
    assert str(info.value) == "Invalid email or password."


@pytest.mark.parametrize("stored", ["", "not-a-hash", "$2b$04$tooshort"])
def test_verify_malformed_hash_is_a_mismatch(hasher, stored):
    with pytest.raises(CredentialError):
        hasher.verify("Secret123", stored)


def test_verify_dummy_always_fails_generically(hasher):
    with pytest.raises(CredentialError) as info:
        hasher.verify_dummy("wishlist_timing_dummy")
    assert str(info.value) == CredentialError.MESSAGE


def test_long_passwords_use_first_72_bytes(hasher):
    long_password = "Aa1" + "z" * 100
    stored = hasher.hash(long_password)
    assert hasher.verify(long_password, stored) is None
    # Beyond byte 72 bcrypt sees nothing; the cut is explicit and symmetric.
    assert hasher.verify(long_password[:72] + "different-tail", stored) is None


def test_work_factor_is_explicit():
    assert PasswordHasher(rounds=5).hash("Secret123").startswith("$2b$05$")


@pytest.mark.parametrize("rounds", [3, 32, 0, -1])
def test_work_factor_out_of_range(rounds):
    with pytest.raises(ValueError):
        PasswordHasher(rounds=rounds)


def test_entropy_failure_is_fatal(hasher, monkeypatch):
    def broken_gensalt(*args, **kwargs):
        raise OSError("entropy source unavailable")

    monkeypatch.setattr(bcrypt, "gensalt", broken_gensalt)
    with pytest.raises(HashingUnavailable) as info:
        hasher.hash("Secret123")
    assert isinstance(info.value, FatalError)
    assert isinstance(info.value.__cause__, OSError)
