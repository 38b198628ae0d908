"""FastAPI auth dependencies — the request identity guard.

Protected paths are guarded twice over. BearerAuthMiddleware runs before
routing, so a request without a valid token is answered 401 before FastAPI
reads or parses its body. The dependencies below are the typed accessors
handlers use, and the soft-auth path for public routes. Per request:

1. Pull a bearer token from the Authorization header. None present:
   public routes proceed anonymously, protected routes get 401.
2. Verify the token with the app's TokenCodec. Invalid or expired: 401.
3. Confirm the subject still names a registered user (tokens outlive
   deleted accounts otherwise). Unknown: 401.
4. Bind the username as RequestIdentity on request.state and in the log
   context, and hand it to the handler.

Every rejection is the same bare 401 "Unauthorized"; the specific reason
only goes to the log.
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.jwt import TokenCodec, TokenExpired, TokenInvalid
from tasktrack.auth.users import IdentityResolver
from tasktrack.db.engine import get_db

logger = structlog.get_logger()

UNAUTHORIZED_DETAIL = "Unauthorized"
UNAUTHORIZED_HEADERS = {"WWW-Authenticate": "Bearer"}


@dataclass(frozen=True)
class RequestIdentity:
    """The verified caller of one in-flight request.

    Created by the guard and passed explicitly to everything downstream.
    Never stored, never shared between requests.
    """

    username: str


class IdentityRejected(Exception):
    """A bearer token was presented but does not identify a live user."""

    def __init__(self, reason: str, error: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.error = error


def unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail=UNAUTHORIZED_DETAIL,
        headers=dict(UNAUTHORIZED_HEADERS),
    )


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an 'Authorization: Bearer <token>' value.

    Any other scheme, or an empty credential, counts as no token at all.
    """
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credentials.strip() or None


async def resolve_bearer(
    codec: TokenCodec,
    db: AsyncSession,
    authorization: Optional[str],
) -> Optional[RequestIdentity]:
    """Turn an Authorization header into a RequestIdentity.

    Returns None when no bearer token was sent; raises IdentityRejected when
    one was sent and is expired, invalid, or names an unknown user.
    """
    token = extract_bearer(authorization)
    if token is None:
        return None

    try:
        subject = codec.verify(token)
    except TokenExpired:
        raise IdentityRejected("expired")
    except TokenInvalid as e:
        raise IdentityRejected("invalid", str(e))

    if not await IdentityResolver(db).exists(subject):
        raise IdentityRejected("unknown_subject")
    return RequestIdentity(username=subject)


def log_rejection(reason: str, error: Optional[str] = None) -> None:
    if error:
        logger.info("auth.token_rejected", reason=reason, error=error)
    else:
        logger.info("auth.token_rejected", reason=reason)


def bind_identity(request: Request, identity: RequestIdentity) -> None:
    request.state.identity = identity
    structlog.contextvars.bind_contextvars(username=identity.username)


async def get_identity_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> Optional[RequestIdentity]:
    """Resolve the caller if a bearer token was sent (soft auth).

    Used directly by public routes that behave differently for signed-in
    users. A token that is present but bad is still rejected. On protected
    paths the middleware has already done the work.
    """
    identity = getattr(request.state, "identity", None)
    if isinstance(identity, RequestIdentity):
        return identity

    request.state.identity = None
    try:
        identity = await resolve_bearer(
            request.app.state.token_codec, db, authorization
        )
    except IdentityRejected as e:
        log_rejection(e.reason, e.error)
        raise unauthorized()

    if identity is not None:
        bind_identity(request, identity)
    return identity


async def get_current_identity(
    identity: Optional[RequestIdentity] = Depends(get_identity_optional),
) -> RequestIdentity:
    """Require an authenticated caller (hard auth) — 401 if none."""
    if identity is None:
        log_rejection("missing")
        raise unauthorized()
    return identity
