"""
Health check endpoints: liveness, and readiness against Postgres and Redis.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from offerready.config import settings
from offerready.db.pool import db_health_check
from offerready.services.redis_client import fast_redis

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "offerready-api"}


@router.get("/readyz")
async def readyz():
    """Readiness: database pool and Redis must both answer."""
    checks = {}
    overall_ok = True

    # 1) Redis
    t0 = time.time()
    redis_ok = await fast_redis.ping()
    checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
    overall_ok = overall_ok and redis_ok

    # 2) Database pool
    t0 = time.time()
    db_health = await db_health_check()
    is_healthy = db_health.get("healthy", False)
    checks["database"] = {"ok": is_healthy, "latency_ms": round((time.time() - t0) * 1000, 1)}
    if "pool_stats" in db_health:
        checks["database"].update(db_health["pool_stats"])
    if not is_healthy:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")
    overall_ok = overall_ok and is_healthy

    # 3) Configuration
    config_issues = []
    if not settings.STRIPE_SECRET_KEY:
        config_issues.append("STRIPE_SECRET_KEY not set")
    if not (settings.STRIPE_PRICE_MONTHLY and settings.STRIPE_PRICE_ANNUAL):
        config_issues.append("Stripe prices not set")
    # Billing misconfiguration is reported but does not fail readiness
    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }

    body = {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
    return JSONResponse(status_code=200 if overall_ok else 503, content=body)
