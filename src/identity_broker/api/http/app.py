"""FastAPI application factory and setup."""

import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from src.identity_broker.api.http.app_data import ApplicationDependencies
from src.identity_broker.api.http.error_handlers import (
    register_exception_handlers,
    render_unexpected_error,
)
from src.identity_broker.api.http.routers.auth import router as auth_router
from src.identity_broker.api.http.routers.health import router as health_router
from src.identity_broker.api.http.routers.service.item import router as item_router
from src.identity_broker.api.utils.app_startup import configure_logging
from src.identity_broker.core.services import (
    AdminDirectoryClient,
    DbSessionService,
    JWKSCacheInMemory,
    JwksService,
    JwtVerificationService,
    RedisService,
    TokenBroker,
    create_identity_http_client,
)
from src.identity_broker.core.storage import build_cache_store
from src.identity_broker.runtime.context import get_config


# --- Security middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault(
            "Referrer-Policy", "strict-origin-when-cross-origin"
        )
        # HSTS only in prod
        if get_config().app.environment == "production":
            response.headers.setdefault(
                "Strict-Transport-Security",
                "max-age=31536000; includeSubDomains; preload",
            )
        return response


# --- Lifecycle hooks ---
async def startup(app: FastAPI) -> None:
    config = get_config()
    logger.info("Starting up application in {} environment", config.app.environment)

    database_service = DbSessionService()
    database_service.create_all()

    redis_service = RedisService()
    http_client = create_identity_http_client(config.identity_provider)
    token_broker = TokenBroker(http_client)
    jwks_service = JwksService(
        JWKSCacheInMemory(ttl_seconds=config.jwt.jwks_cache_ttl_seconds), http_client
    )

    app.state.app_dependencies = ApplicationDependencies(
        database_service=database_service,
        redis_service=redis_service,
        http_client=http_client,
        token_broker=token_broker,
        admin_directory=AdminDirectoryClient(token_broker, http_client),
        jwks_service=jwks_service,
        jwt_verify_service=JwtVerificationService(jwks_service),
        cache_store=await build_cache_store(redis_service),
    )

    # Surface an unreachable identity provider early
    try:
        await jwks_service.fetch_jwks(config.identity_provider.jwks_uri)
    except Exception as e:
        logger.error("JWKS prefetch failed for {}: {}", config.identity_provider.issuer, e)
        if config.app.environment == "production":
            raise


async def shutdown(app: FastAPI) -> None:
    logger.info("Shutting down application")
    app_dependencies: ApplicationDependencies = app.state.app_dependencies
    await app_dependencies.http_client.aclose()
    await app_dependencies.redis_service.close()
    app_dependencies.database_service.dispose()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await startup(app)
    try:
        yield
    finally:
        await shutdown(app)


# --- Request logging middleware ---
async def log_requests(request: Request, call_next):
    trace_header = get_config().app.trace_header
    trace_id = request.headers.get(trace_header) or uuid.uuid4().hex[:16]
    request.state.trace_id = trace_id
    request.state.trace_header = trace_header

    start = time.perf_counter()

    # Everything that logs within this block carries the trace id
    with logger.contextualize(
        trace_id=trace_id, method=request.method, path=request.url.path
    ):
        try:
            logger.info("request.start")
            response = await call_next(request)
        except Exception as exc:
            response = render_unexpected_error(request, exc)

        duration_ms = (time.perf_counter() - start) * 1000
        logger.bind(
            status_code=response.status_code,
            duration_ms=round(duration_ms, 1),
        ).info("request.end")

    response.headers.setdefault(trace_header, trace_id)
    return response


def create_app() -> FastAPI:
    config = get_config()
    is_production = config.app.environment == "production"

    app = FastAPI(
        title="Identity Broker",
        lifespan=lifespan,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
    )

    # --- CORS configuration ---
    if is_production and "*" in config.app.cors.origins:
        raise RuntimeError(
            "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
        )

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.app.cors.origins,
        allow_credentials=config.app.cors.allow_credentials,
        allow_methods=config.app.cors.allow_methods,
        allow_headers=config.app.cors.allow_headers,
    )
    app.middleware("http")(log_requests)

    register_exception_handlers(app)

    # --- Router registration ---
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(item_router)

    return app


app = create_app()

__all__ = ["app", "create_app", "startup", "shutdown"]


if __name__ == "__main__":
    import uvicorn

    main_config = get_config()
    uvicorn.run(
        app,
        host=main_config.app.host,
        port=main_config.app.port,
        access_log=False,  # We handle access logging in middleware
    )
