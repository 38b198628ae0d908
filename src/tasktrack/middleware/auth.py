"""Bearer auth middleware — reject unauthenticated calls before routing.

FastAPI reads and validates a request body before it resolves any
Depends(), so a guard written only as a dependency answers a malformed body
with 422 even when no token was sent. This middleware runs first for the
protected path prefixes: it verifies the bearer token, resolves the user,
and either answers 401 on the spot or leaves the RequestIdentity on
request.state for the route dependencies to pick up.

Paths outside the protected prefixes pass straight through.
"""

from typing import Iterable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tasktrack.auth.dependencies import (
    UNAUTHORIZED_DETAIL,
    UNAUTHORIZED_HEADERS,
    IdentityRejected,
    bind_identity,
    log_rejection,
    resolve_bearer,
)


def _unauthorized_response() -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": UNAUTHORIZED_DETAIL},
        headers=dict(UNAUTHORIZED_HEADERS),
    )


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Require a valid bearer token on every path under protected_prefixes."""

    def __init__(self, app, protected_prefixes: Iterable[str]):
        super().__init__(app)
        self.protected_prefixes = tuple(p.rstrip("/") for p in protected_prefixes)

    def is_protected(self, path: str) -> bool:
        return any(
            path == prefix or path.startswith(prefix + "/")
            for prefix in self.protected_prefixes
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.method == "OPTIONS" or not self.is_protected(request.url.path):
            return await call_next(request)

        state = request.app.state
        async with state.session_factory() as db:
            try:
                identity = await resolve_bearer(
                    state.token_codec, db, request.headers.get("Authorization")
                )
            except IdentityRejected as e:
                log_rejection(e.reason, e.error)
                return _unauthorized_response()

        if identity is None:
            log_rejection("missing")
            return _unauthorized_response()

        bind_identity(request, identity)
        return await call_next(request)
