"""Auth API — registration, login, current identity.

- POST /register → create a new account (400 if the username is taken)
- POST /login → username/password → bearer token (uniform 401 on failure)
- GET /me → who the presented token belongs to

/register and /login are public; /me sits behind the identity guard.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.dependencies import RequestIdentity, get_current_identity
from tasktrack.auth.service import (
    INVALID_CREDENTIALS,
    AuthenticationFailure,
    AuthService,
)
from tasktrack.auth.users import CredentialStore, DuplicateIdentity, IdentityResolver
from tasktrack.db.engine import get_db
from tasktrack.schemas.auth import (
    Credentials,
    IdentityRead,
    RegisterResponse,
    TokenResponse,
)

router = APIRouter()


def _auth_svc(request: Request, db: AsyncSession = Depends(get_db)) -> AuthService:
    state = request.app.state
    return AuthService(
        store=CredentialStore(db),
        resolver=IdentityResolver(db),
        hasher=state.password_hasher,
        codec=state.token_codec,
        token_ttl=state.token_ttl,
    )


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=RegisterResponse)
async def register(body: Credentials, svc: AuthService = Depends(_auth_svc)):
    """Create a new user account."""
    try:
        user = await svc.register(body.username, body.password)
    except DuplicateIdentity:
        raise HTTPException(status_code=400, detail="Username is already taken")
    return RegisterResponse(username=user.username)


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=TokenResponse)
async def login(body: Credentials, svc: AuthService = Depends(_auth_svc)):
    """Login with username and password → bearer token."""
    try:
        token = await svc.authenticate(body.username, body.password)
    except AuthenticationFailure:
        raise HTTPException(
            status_code=401,
            detail=INVALID_CREDENTIALS,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return TokenResponse(
        token=f"Bearer {token}",
        expires_in=int(svc.token_ttl.total_seconds()),
    )


# ─── Current identity ───────────────────────────────────


@router.get("/me", response_model=IdentityRead)
async def get_me(identity: RequestIdentity = Depends(get_current_identity)):
    """Return the username bound to the presented token."""
    return IdentityRead(username=identity.username)
