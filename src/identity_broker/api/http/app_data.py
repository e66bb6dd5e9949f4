from dataclasses import dataclass

import httpx

from src.identity_broker.core.services import (
    AdminDirectoryClient,
    DbSessionService,
    JwksService,
    JwtVerificationService,
    RedisService,
    TokenBroker,
)
from src.identity_broker.core.storage import CacheStore


@dataclass
class ApplicationDependencies:
    database_service: DbSessionService
    redis_service: RedisService
    http_client: httpx.AsyncClient
    token_broker: TokenBroker
    admin_directory: AdminDirectoryClient
    jwks_service: JwksService
    jwt_verify_service: JwtVerificationService
    cache_store: CacheStore
