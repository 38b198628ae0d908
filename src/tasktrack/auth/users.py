"""Credential storage and identity lookup.

CredentialStore persists username + bcrypt hash pairs. IdentityResolver is
the read side used during login and on every authenticated request: it
answers "does this username exist, and what is its stored hash?".

Username uniqueness is the database's job (UNIQUE constraint on
users.username). The store translates a constraint violation into
DuplicateIdentity, which makes concurrent registrations of one name
first-writer-wins without any application-level locking.
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.db.models import User

logger = structlog.get_logger()


class DuplicateIdentity(Exception):
    """Raised when a username is already owned by another record."""

    def __init__(self, username: str):
        super().__init__(f"Username already taken: {username}")
        self.username = username


@dataclass(frozen=True)
class AuthProfile:
    """The authentication-relevant slice of a user record."""

    username: str
    password_hash: str = field(repr=False)


class CredentialStore:
    """Reads and writes User rows."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_username(self, username: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalars().first()

    async def save(self, user: User) -> User:
        """Insert or update a user and commit.

        Raises DuplicateIdentity if the username belongs to a different
        row; the existing row is left untouched.
        """
        self.db.add(user)
        try:
            await self.db.flush()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info("users.duplicate_rejected", username=user.username)
            raise DuplicateIdentity(user.username) from e
        return user


class IdentityResolver:
    """Loads authentication profiles by username."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_profile(self, username: str) -> Optional[AuthProfile]:
        result = await self.db.execute(
            select(User.username, User.password_hash).where(User.username == username)
        )
        row = result.first()
        if row is None:
            return None
        return AuthProfile(username=row.username, password_hash=row.password_hash)

    async def exists(self, username: str) -> bool:
        result = await self.db.execute(
            select(User.id).where(User.username == username).limit(1)
        )
        return result.first() is not None
