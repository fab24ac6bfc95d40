"""Health and readiness endpoints.

  /health (liveness):
    "Is this process alive?"  Always 200 while the process can answer;
    ``status`` reports degraded dependencies without triggering a restart.

  /ready (readiness):
    "Can this instance take traffic?"  503 when the database is
    configured and unreachable.  Redis is reported but never blocks
    readiness: without it the cache, queue and rate limiter degrade,
    the ledger does not.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from academy.db.engine import engine, ping_database
from academy.db.redis import ping_redis, redis_pool

router = APIRouter(tags=["health"])


async def _checks() -> dict[str, str]:
    checks: dict[str, str] = {}
    if engine is None:
        checks["database"] = "not_configured"
    else:
        checks["database"] = "ok" if await ping_database() else "down"
    if redis_pool is None:
        checks["redis"] = "not_configured"
    else:
        checks["redis"] = "ok" if await ping_redis() else "degraded"
    return checks


@router.get("/health")
async def health() -> dict:
    checks = await _checks()
    overall = "ok" if all(v in ("ok", "not_configured") for v in checks.values()) else "degraded"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> JSONResponse:
    checks = await _checks()
    if checks["database"] == "down":
        return JSONResponse(status_code=503, content={"status": "not_ready", "checks": checks})
    return JSONResponse(status_code=200, content={"status": "ready", "checks": checks})
