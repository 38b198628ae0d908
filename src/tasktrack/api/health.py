"""Health and greeting endpoints (public).

/health verifies the server is running and the database is reachable.
/hello answers anonymously, or by name when a valid token is presented.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack import __version__
from tasktrack.auth.dependencies import RequestIdentity, get_identity_optional
from tasktrack.db.engine import get_db

router = APIRouter()


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Check server health and database connectivity."""
    checks = {"server": "ok", "version": __version__}

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"error: {e}"

    status = "healthy" if checks["database"] == "ok" else "degraded"
    return {"status": status, **checks}


@router.get("/hello", response_class=PlainTextResponse)
async def hello(identity: Optional[RequestIdentity] = Depends(get_identity_optional)):
    """Greet the caller by name if signed in."""
    if identity is None:
        return "Hello, World!"
    return f"Hello, {identity.username}!"
