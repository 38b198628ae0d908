"""JWT token creation and verification.

JWT (JSON Web Token) provides stateless authentication: the token carries
the username (sub), issue time (iat) and expiry (exp), and an HMAC over
those claims made with the server's secret. Nothing is stored server-side;
a token is valid exactly as long as its signature checks out and its
expiry has not passed.

The codec gets its secret at construction. It never reads global settings,
so each app instance (and each test) can hold its own key.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from jwt.utils import base64url_decode, base64url_encode

Clock = Callable[[], datetime]

_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


class TokenError(Exception):
    """Raised when token verification fails."""


class TokenInvalid(TokenError):
    """Malformed token, bad signature, or missing claims."""


class TokenExpired(TokenError):
    """Signature is valid but the token is past its expiry."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_canonical(token: str) -> bool:
    """True if every segment is strict, unpadded base64url.

    base64 decoders ignore the spare low bits of the last character, so two
    different strings can decode to the same signature bytes. Requiring the
    segment to re-encode to itself closes that gap: any single-character
    change to a token makes it invalid.
    """
    parts = token.split(".")
    if len(parts) != 3:
        return False
    for part in parts:
        if not _SEGMENT.match(part):
            return False
        try:
            if base64url_encode(base64url_decode(part)).decode("ascii") != part:
                return False
        except ValueError:
            return False
    return True


class TokenCodec:
    """Issues and verifies signed, self-contained identity tokens."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        clock: Optional[Clock] = None,
    ):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        self._secret = secret
        self.algorithm = algorithm
        self._clock = clock or _utcnow

    def __repr__(self) -> str:
        return f"<TokenCodec algorithm={self.algorithm}>"

    def issue(self, subject: str, ttl: timedelta) -> str:
        """Create a token for subject that expires ttl from now.

        Token times are whole seconds, so ttl must be at least one second.
        """
        if ttl < timedelta(seconds=1):
            raise ValueError("Token ttl must be at least one second")
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": subject,
            "iat": issued_at,
            "exp": issued_at + int(ttl.total_seconds()),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> str:
        """Verify a token and return its subject.

        Raises TokenInvalid for anything that is not a well-formed token
        signed with our key, and TokenExpired once now > exp.
        """
        if not token or not _is_canonical(token):
            raise TokenInvalid("Malformed token")

        try:
            # Expiry is checked below against the injected clock.
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "require": ["sub", "iat", "exp"],
                },
            )
        except jwt.InvalidTokenError as e:
            raise TokenInvalid(f"Invalid token: {e}") from e

        subject = payload["sub"]
        expires_at = payload["exp"]
        if not isinstance(subject, str) or not subject:
            raise TokenInvalid("Invalid token: bad subject")
        if isinstance(expires_at, bool) or not isinstance(expires_at, int):
            raise TokenInvalid("Invalid token: bad expiry")

        if self._clock().timestamp() > expires_at:
            raise TokenExpired("Token has expired")
        return subject
