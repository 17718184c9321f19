"""
auth/passwords.py -- One-way password hashing and verification.

bcrypt is used directly rather than through passlib: passlib's wrap-bug
detection feeds bcrypt a password longer than 72 bytes, which bcrypt 4.x+
rejects outright. Direct usage has no compatibility shim to break.

bcrypt only reads the first 72 bytes of its input, and recent releases raise
instead of truncating. The cut is therefore made here, explicitly and
identically on hash and verify, so long passwords keep working across bcrypt
versions.

The work factor is an explicit constructor argument (no module-level config),
so tests can run with the minimum cost while production runs with 12.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import CredentialError, HashingUnavailable

logger = logging.getLogger("wishlist.auth")

_BCRYPT_MAX_BYTES = 72
MIN_ROUNDS = 4
MAX_ROUNDS = 31


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted, adaptive password hashing with a fixed work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        stored = hasher.hash("Secret123")
        hasher.verify("Secret123", stored)   # returns None
        hasher.verify("wrong", stored)       # raises CredentialError
    """

    def __init__(self, rounds: int = 12) -> None:
        if not MIN_ROUNDS <= rounds <= MAX_ROUNDS:
            raise ValueError(f"bcrypt rounds must be between {MIN_ROUNDS} and {MAX_ROUNDS}, got {rounds}")
        self.rounds = rounds
        # Timing equalization hash, computed once so the first login attempt is
        # not measurably slower than later ones. Same cost as real hashes.
        self._dummy_hash = self.hash("wishlist_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password.

        Raises HashingUnavailable if the salt cannot be generated (entropy
        source failure) or bcrypt itself errors out.
        """
        try:
            salt = bcrypt.gensalt(rounds=self.rounds)
            return bcrypt.hashpw(_encode(plain), salt).decode("utf-8")
        except (OSError, ValueError) as exc:
            logger.critical("Password hashing failed: %s", type(exc).__name__)
            raise HashingUnavailable("password hashing is unavailable") from exc

    def verify(self, plain: str, hashed: str) -> None:
        """Return None if plain matches hashed, raise CredentialError otherwise.

        bcrypt.checkpw compares digests in constant time. A stored value that
        is not a bcrypt hash at all is treated as a mismatch, not a crash.
        """
        try:
            matched = bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except ValueError:
            matched = False
        if not matched:
            raise CredentialError()

    def verify_dummy(self, plain: str) -> None:
        """Spend one verification's worth of CPU without a real user.

        Called when a login names an unknown account so the response time
        matches the wrong-password path. Always raises CredentialError.
        """
        bcrypt.checkpw(_encode(plain), self._dummy_hash.encode("utf-8"))
        raise CredentialError()
