"""Health check endpoints router for monitoring service availability."""

from typing import Any

from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from src.identity_broker.api.http.app_data import ApplicationDependencies
from src.identity_broker.core.storage import RedisCacheStore
from src.identity_broker.runtime.context import get_config

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health() -> dict[str, str]:
    """Liveness check; does not touch dependencies."""
    return {"status": "healthy", "service": "identity-broker"}


@router.get("/ready", response_model=None)
async def readiness(request: Request) -> dict[str, Any] | JSONResponse:
    """Readiness check across the service dependencies.

    Returns 200 if the database is reachable, 503 otherwise. Redis is
    reported but never fails readiness because the item cache falls back to
    memory. The identity provider's JWKS endpoint only fails readiness in
    production.
    """
    app_deps: ApplicationDependencies = request.app.state.app_dependencies
    config = get_config()

    checks: dict[str, Any] = {}
    all_healthy = True

    db_healthy = app_deps.database_service.health_check()
    checks["database"] = {
        "status": "healthy" if db_healthy else "unhealthy",
        "type": "sqlite" if config.database.is_sqlite else "postgresql",
    }
    if not db_healthy:
        all_healthy = False

    redis_healthy = await app_deps.redis_service.health_check()
    checks["cache"] = {
        "status": "healthy" if redis_healthy or not config.redis.enabled else "degraded",
        "type": "redis" if isinstance(app_deps.cache_store, RedisCacheStore) else "in-memory",
    }

    try:
        await app_deps.jwks_service.fetch_jwks(config.identity_provider.jwks_uri)
        checks["identity_provider"] = {
            "status": "healthy",
            "issuer": config.identity_provider.issuer,
        }
    except Exception as e:
        checks["identity_provider"] = {
            "status": "unhealthy",
            "issuer": config.identity_provider.issuer,
            "error": str(e),
        }
        if config.app.environment == "production":
            all_healthy = False

    response = {
        "status": "ready" if all_healthy else "not_ready",
        "environment": config.app.environment,
        "checks": checks,
    }

    if not all_healthy:
        return JSONResponse(status_code=503, content=response)

    return response
