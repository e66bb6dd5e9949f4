"""FastAPI dependency implementations."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from fastapi import Depends, Request
from sqlmodel import Session

from src.identity_broker.api.http.app_data import ApplicationDependencies
from src.identity_broker.core.errors import InvalidTokenError
from src.identity_broker.core.models.identity import CanonicalIdentity
from src.identity_broker.core.outcome import log_and_continue
from src.identity_broker.core.services import (
    AdminDirectoryClient,
    ItemCacheService,
    JwtVerificationService,
    TokenBroker,
    UserSyncGate,
    UserSyncService,
    extract_identity,
)
from src.identity_broker.core.storage import CacheStore


def _app_deps(request: Request) -> ApplicationDependencies:
    return request.app.state.app_dependencies


def get_db_session(request: Request) -> Iterator[Session]:
    """Request-scoped database session."""
    session = _app_deps(request).database_service.get_session()
    try:
        yield session
    finally:
        session.close()


def get_token_broker(request: Request) -> TokenBroker:
    return _app_deps(request).token_broker


def get_admin_directory(request: Request) -> AdminDirectoryClient:
    return _app_deps(request).admin_directory


def get_jwt_verify_service(request: Request) -> JwtVerificationService:
    return _app_deps(request).jwt_verify_service


def get_cache_store(request: Request) -> CacheStore:
    return _app_deps(request).cache_store


def get_user_sync_service(db: Session = Depends(get_db_session)) -> UserSyncService:
    return UserSyncService(db)


def get_user_sync_gate(
    user_sync: UserSyncService = Depends(get_user_sync_service),
) -> UserSyncGate:
    return UserSyncGate(user_sync)


def get_item_cache_service(
    db: Session = Depends(get_db_session),
    cache: CacheStore = Depends(get_cache_store),
) -> ItemCacheService:
    return ItemCacheService(db, cache)


async def get_verified_claims(
    request: Request,
    jwt_verify: JwtVerificationService = Depends(get_jwt_verify_service),
) -> dict[str, Any]:
    """Verify the Bearer token on the request and return its claims."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise InvalidTokenError("Missing Bearer token")

    token = auth_header.split(" ", 1)[1].strip()
    return await jwt_verify.verify_jwt(token)


async def get_request_identity(
    request: Request,
    claims: dict[str, Any] = Depends(get_verified_claims),
    sync_gate: UserSyncGate = Depends(get_user_sync_gate),
) -> CanonicalIdentity:
    """Identity of the caller, with a local user guaranteed where sync applies.

    Reconciliation failures are logged and never block the request.
    """
    identity = extract_identity(claims)
    if sync_gate.applies_to(request.url.path):
        log_and_continue(
            sync_gate.run(identity), "user sync", subject_id=identity.subject_id
        )

    request.state.identity = identity
    return identity
