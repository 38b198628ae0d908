"""Password hashing utilities.

Uses bcrypt for password hashing. bcrypt generates a random salt per hash,
embeds salt and work factor in the output ("$2b$12$..."), and is slow on
purpose. The default work factor (rounds=12) takes ~100ms per hash on
modern hardware; tests lower it to 4. The methods are synchronous and
CPU-bound: async callers run them in a worker thread.

Nothing in this module logs: neither the plaintext nor the digest.
"""

import bcrypt

# bcrypt only looks at the first 72 bytes of input.
_BCRYPT_MAX_BYTES = 72


class PasswordHashError(Exception):
    """Raised when the hashing backend is unusable (a deployment defect)."""


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Salted one-way hashing with a configurable bcrypt work factor."""

    def __init__(self, rounds: int = 12):
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self.rounds = rounds
        # dummy_verify only ever verifies against this.
        self._dummy_hash = self.hash("tasktrack-timing-equaliser")

    def hash(self, password: str) -> str:
        """Hash a password with a fresh salt."""
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(_encode(password), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Check a password against a stored hash.

        A malformed or foreign hash verifies as False rather than raising,
        so a corrupt row looks exactly like a wrong password.
        """
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, password: str) -> None:
        """Spend one verification against a fixed hash.

        Used when there is no stored hash to check (unknown username) so the
        request costs the same as a wrong-password attempt.
        """
        self.verify(password, self._dummy_hash)

    def self_check(self) -> None:
        """Round-trip a sample value; raise PasswordHashError if bcrypt misbehaves."""
        try:
            sample = self.hash("tasktrack-self-check")
        except (ValueError, TypeError) as e:
            raise PasswordHashError(f"bcrypt unavailable: {e}") from e
        if not self.verify("tasktrack-self-check", sample) or self.verify(
            "tasktrack-self-check!", sample
        ):
            raise PasswordHashError("bcrypt round-trip check failed")
