"""Core services exports."""

from .database.db_session import DbSessionService
from .identity.claims import build_display_name, extract_identity
from .item.item_cache import ItemCacheService
from .jwt.jwks import JWKSCache, JWKSCacheInMemory, JwksService
from .jwt.jwt_verify import JwtVerificationService
from .oidc.admin_directory import AdminDirectoryClient
from .oidc.token_broker import TokenBroker, create_identity_http_client
from .redis_service import RedisService
from .user.sync_gate import UserSyncGate
from .user.user_sync import UserSyncService

__all__ = [
    # Infrastructure
    "DbSessionService",
    "RedisService",
    # JWT
    "JWKSCache",
    "JWKSCacheInMemory",
    "JwksService",
    "JwtVerificationService",
    # Identity provider
    "TokenBroker",
    "AdminDirectoryClient",
    "create_identity_http_client",
    # Identity and users
    "build_display_name",
    "extract_identity",
    "UserSyncService",
    "UserSyncGate",
    # Items
    "ItemCacheService",
]
