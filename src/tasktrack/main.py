"""FastAPI application factory.

App factory pattern — create_app() returns a configured FastAPI instance.
Everything configurable is read from the Settings passed in, exactly once,
here: the database engine and session factory, the TokenCodec and the
PasswordHasher are all hung on app.state for middleware and request
dependencies to use. A bad secret or a broken bcrypt install
stops the process at startup rather than failing individual requests.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tasktrack import __version__
from tasktrack.api import api_router
from tasktrack.auth.jwt import TokenCodec
from tasktrack.auth.password import PasswordHasher
from tasktrack.config import Settings, settings as default_settings
from tasktrack.db.engine import build_session_factory, engine_from_settings
from tasktrack.logging import configure_logging
from tasktrack.services.task_service import IdentityRequired

logger = structlog.get_logger()

# Paths that need a valid bearer token before the request is routed.
PROTECTED_PREFIXES = ("/api/v1/tasks", "/api/v1/me")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    cfg: Settings = app.state.settings
    configure_logging(cfg)

    app.state.password_hasher.self_check()
    logger.info(
        "tasktrack.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
        jwt_algorithm=cfg.jwt_algorithm,
        token_ttl_minutes=cfg.token_ttl_minutes,
    )

    yield

    logger.info("tasktrack.shutdown")

    # Close database engine
    await app.state.engine.dispose()


async def _identity_required_handler(request: Request, exc: IdentityRequired):
    logger.info("auth.identity_required", error=str(exc))
    return JSONResponse(
        status_code=401,
        content={"detail": "Unauthorized"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build and return the FastAPI application."""
    cfg = settings or default_settings

    app = FastAPI(
        title="tasktrack",
        description="Multi-tenant task tracker with owner-scoped storage",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = cfg

    # ── Database ─────────────────────────────────────────────
    app.state.engine = engine_from_settings(cfg)
    app.state.session_factory = build_session_factory(app.state.engine)

    # ── Auth components (secret injected here, nowhere else) ──
    app.state.token_codec = TokenCodec(cfg.jwt_secret, algorithm=cfg.jwt_algorithm)
    app.state.password_hasher = PasswordHasher(rounds=cfg.bcrypt_rounds)
    app.state.token_ttl = timedelta(minutes=cfg.token_ttl_minutes)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → BearerAuth → handler

    from tasktrack.middleware.auth import BearerAuthMiddleware
    from tasktrack.middleware.request_id import RequestIdMiddleware
    from tasktrack.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(BearerAuthMiddleware, protected_prefixes=PROTECTED_PREFIXES)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(IdentityRequired, _identity_required_handler)

    # Mount API routes
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: tasktrack.main:app)
app = create_app()
