"""Health and readiness endpoints.

  /health (liveness):  "is the process alive?"  Always 200 while the
                       event loop can answer; the body reports each
                       backing service as ok, degraded or not_configured.
  /ready (readiness):  "should the load balancer send traffic here?"
                       503 while PostgreSQL is configured but unreachable,
                       since every payment operation needs the store.
                       Redis is not critical: without it, webhook locks
                       fall back to the process.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status

from coursepay.db.engine import engine, ping_database
from coursepay.db.redis import ping_redis, redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_database() -> str:
    if engine is None:
        return "not_configured"
    try:
        await ping_database()
    except Exception:
        logger.exception("Database health check failed")
        return "degraded"
    return "ok"


async def _check_redis() -> str:
    if redis_pool is None:
        return "not_configured"
    try:
        await ping_redis()
    except Exception:
        logger.exception("Redis health check failed")
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "database": await _check_database(),
        "redis": await _check_redis(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
