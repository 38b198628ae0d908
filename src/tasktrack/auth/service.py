"""Registration and login.

register() creates an account; authenticate() turns a correct
username/password pair into a signed bearer token. Login failures are
deliberately uniform: an unknown username and a wrong password raise the
same AuthenticationFailure with the same message, and both paths spend one
bcrypt verification so response timing does not tell them apart either.
bcrypt work runs in a worker thread to keep the event loop free.
Which check failed is recorded in the log only.
"""

import asyncio
from datetime import timedelta

import structlog

from tasktrack.auth.jwt import TokenCodec
from tasktrack.auth.password import PasswordHasher
from tasktrack.auth.users import (
    CredentialStore,
    DuplicateIdentity,
    IdentityResolver,
)
from tasktrack.db.models import User

logger = structlog.get_logger()

INVALID_CREDENTIALS = "Invalid username or password"


class AuthenticationFailure(Exception):
    """Raised for any failed login, whatever the underlying reason."""

    def __init__(self):
        super().__init__(INVALID_CREDENTIALS)


class AuthService:
    """Business logic for accounts and token issuance."""

    def __init__(
        self,
        store: CredentialStore,
        resolver: IdentityResolver,
        hasher: PasswordHasher,
        codec: TokenCodec,
        token_ttl: timedelta,
    ):
        self.store = store
        self.resolver = resolver
        self.hasher = hasher
        self.codec = codec
        self.token_ttl = token_ttl

    async def register(self, username: str, password: str) -> User:
        """Create a new account.

        The lookup is a fast path for the common case; the store's unique
        constraint still rejects a concurrent registration that slips past it.
        """
        if await self.store.find_by_username(username) is not None:
            logger.info("auth.register_rejected", username=username)
            raise DuplicateIdentity(username)

        user = User(
            username=username,
            password_hash=await asyncio.to_thread(self.hasher.hash, password),
        )
        user = await self.store.save(user)
        logger.info("auth.registered", username=username)
        return user

    async def authenticate(self, username: str, password: str) -> str:
        """Verify credentials and return a fresh token."""
        profile = await self.resolver.load_profile(username)

        if profile is None:
            await asyncio.to_thread(self.hasher.dummy_verify, password)
            logger.info("auth.login_failed", username=username, reason="unknown_user")
            raise AuthenticationFailure()

        if not await asyncio.to_thread(
            self.hasher.verify, password, profile.password_hash
        ):
            logger.info("auth.login_failed", username=username, reason="bad_password")
            raise AuthenticationFailure()

        token = self.codec.issue(profile.username, self.token_ttl)
        logger.info("auth.login_succeeded", username=username)
        return token
