"""Typed view of the ``config:`` section of config.yaml."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit, urlunsplit

from loguru import logger
from pydantic import BaseModel, Field, computed_field
from sqlalchemy.engine import make_url


class CORSConfig(BaseModel):
    """Browser origins allowed to call the broker."""

    origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:3001"]
    )
    allow_credentials: bool = True
    allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )
    allow_headers: list[str] = Field(default=["*"])


class RedisConfig(BaseModel):
    """Redis server backing the item cache."""

    enabled: bool = Field(default=True, description="Back the item cache with Redis")
    url: str = Field(default="", description="redis:// URL; empty keeps the cache in memory")
    password: str | None = Field(
        default=None, description="Injected into url when it carries no credentials"
    )
    decode_responses: bool = Field(
        default=True, description="Decode Redis responses to strings"
    )
    max_connections: int = Field(default=20, description="Connection pool size")
    socket_timeout: float = Field(default=2.0, description="Socket timeout in seconds")
    socket_connect_timeout: float = Field(
        default=2.0, description="Socket connect timeout in seconds"
    )

    @computed_field
    @property
    def connection_string(self) -> str:
        """``url`` with ``password`` injected, unless the URL carries credentials."""
        parts = urlsplit(self.url)
        if not self.password or not parts.netloc or "@" in parts.netloc:
            return self.url
        return urlunsplit(parts._replace(netloc=f":{self.password}@{parts.netloc}"))

    @property
    def sanitized_connection_string(self) -> str:
        if not self.password:
            return self.connection_string
        return self.connection_string.replace(self.password, "***")


class IdentityProviderConfig(BaseModel):
    """Keycloak realm and client used for token brokering and user administration."""

    server_url: str = Field(
        default="http://localhost:8080", description="Identity provider base URL"
    )
    realm: str = Field(default="app", description="Realm holding application users")
    client_id: str = Field(
        default="identity-broker", description="Confidential client ID"
    )
    client_secret: str | None = Field(
        default=None, description="Confidential client secret"
    )
    redirect_uri: str = Field(
        default="http://localhost:3000/auth/callback",
        description="Redirect URI registered for the authorization code flow",
    )
    scopes: list[str] = Field(
        default_factory=lambda: ["openid", "email", "profile"],
        description="Scopes requested during interactive login",
    )
    google_idp_alias: str = Field(
        default="google", description="Alias of the brokered Google identity provider"
    )
    default_role: str = Field(
        default="user", description="Realm role granted to newly registered users"
    )
    connect_timeout_seconds: float = Field(
        default=5.0, description="Connect timeout for identity provider calls"
    )
    read_timeout_seconds: float = Field(
        default=10.0, description="Read timeout for identity provider calls"
    )
    cache_service_token: bool = Field(
        default=False, description="Reuse client-credentials tokens until near expiry"
    )
    token_skew_seconds: int = Field(
        default=30, description="Seconds subtracted from expires_in for cached tokens"
    )

    @property
    def realm_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/realms/{self.realm}"

    @property
    def admin_realm_url(self) -> str:
        return f"{self.server_url.rstrip('/')}/admin/realms/{self.realm}"

    @computed_field
    @property
    def issuer(self) -> str:
        """Issuer value expected in tokens minted by the realm."""
        return self.realm_url

    @computed_field
    @property
    def token_endpoint(self) -> str:
        return f"{self.realm_url}/protocol/openid-connect/token"

    @computed_field
    @property
    def logout_endpoint(self) -> str:
        return f"{self.realm_url}/protocol/openid-connect/logout"

    @computed_field
    @property
    def authorization_endpoint(self) -> str:
        return f"{self.realm_url}/protocol/openid-connect/auth"

    @computed_field
    @property
    def jwks_uri(self) -> str:
        return f"{self.realm_url}/protocol/openid-connect/certs"

    @computed_field
    @property
    def users_endpoint(self) -> str:
        return f"{self.admin_realm_url}/users"

    @computed_field
    @property
    def roles_endpoint(self) -> str:
        return f"{self.admin_realm_url}/roles"


class JWTConfig(BaseModel):
    """Bearer token validation configuration."""

    allowed_algorithms: list[str] = Field(
        default_factory=lambda: ["RS256", "RS512", "ES256", "ES384"],
        description="JWT algorithms allowed for token validation",
    )
    audiences: list[str] = Field(
        default_factory=list,
        description="Accepted audiences (empty = skip audience check)",
    )
    clock_skew: int = Field(default=60, description="Clock skew tolerance in seconds")
    jwks_cache_ttl_seconds: int = Field(
        default=3600, description="How long fetched JWKS documents are reused"
    )


class CacheConfig(BaseModel):
    """Item cache configuration."""

    namespace: str = Field(default="test", description="Prefix for every cache key")
    item_ttl_seconds: int = Field(
        default=600, description="TTL applied to cached items and item lists"
    )


class SyncConfig(BaseModel):
    """Per-request user reconciliation configuration."""

    enabled: bool = Field(default=True, description="Reconcile users on requests")
    excluded_path_prefixes: list[str] = Field(
        default_factory=lambda: [
            "/api/auth/",
            "/api/test/",
            "/health",
            "/docs",
            "/redoc",
            "/openapi.json",
        ],
        description="Request paths that never trigger reconciliation",
    )
    included_paths: list[str] = Field(
        default_factory=lambda: ["/api/auth/me"],
        description="Paths reconciled even though an excluded prefix matches",
    )


class LoggingConfig(BaseModel):
    """Loguru console and file sinks."""

    level: str = Field(default="INFO", description="Minimum level for every sink")
    format: Literal["json", "plain"] = Field(default="json", description="File sink format")
    file: str = Field(default="logs/app.log", description="File sink path; empty disables it")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class DatabaseConfig(BaseModel):
    """Store holding local users and items."""

    url: str = Field(
        default="sqlite:///./database.db",
        description="Database connection URL",
    )
    environment_mode: Literal["development", "production", "test"] = Field(
        default="development", description="Controls where the password is read from"
    )
    pool_size: int = Field(default=20, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum pool overflow")
    pool_timeout: int = Field(default=30, description="Pool timeout in seconds")
    pool_recycle: int = Field(default=1800, description="Pool recycle time in seconds")
    password_env_var: str | None = Field(
        default=None,
        description="Variable holding the password in production",
    )
    password_file: str | None = Field(
        default=None,
        description="Secret file holding the password in production",
    )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    def _production_password(self) -> str | None:
        if self.password_file:
            try:
                return Path(self.password_file).read_text().strip()
            except OSError as e:
                raise ValueError(
                    f"Cannot read database password file {self.password_file}"
                ) from e
        if self.password_env_var:
            secret = os.getenv(self.password_env_var)
            if not secret:
                raise ValueError(f"Environment variable {self.password_env_var} not set")
            return secret
        if self.is_sqlite:
            return None
        raise ValueError("Production databases need password_file or password_env_var")

    @property
    def password(self) -> str | None:
        """Password from the URL outside production, from a secret source in production."""
        if self.environment_mode == "production":
            return self._production_password()
        return make_url(self.url).password

    @property
    def connection_string(self) -> str:
        if self.is_sqlite:
            return self.url

        url = make_url(self.url)
        if url.password and self.environment_mode == "production":
            logger.warning("Database URL embeds a password in production")
        secret = self.password
        if secret and secret != url.password:
            url = url.set(password=secret)
        return url.render_as_string(hide_password=False)


class AppConfig(BaseModel):
    """HTTP server settings."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    host: str = Field(default="localhost", description="Application host")
    port: int = Field(default=8000, description="Application port")
    trace_header: str = Field(
        default="X-Trace-Id", description="Header carrying the request trace id"
    )
    cors: CORSConfig = Field(
        default_factory=CORSConfig, description="CORS configuration"
    )


class ConfigData(BaseModel):
    """Everything under the ``config:`` key of config.yaml."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig, description="Database configuration"
    )
    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    identity_provider: IdentityProviderConfig = Field(
        default_factory=IdentityProviderConfig,
        description="Identity provider configuration",
    )
    jwt: JWTConfig = Field(
        default_factory=JWTConfig, description="JWT validation configuration"
    )
    cache: CacheConfig = Field(
        default_factory=CacheConfig, description="Item cache configuration"
    )
    sync: SyncConfig = Field(
        default_factory=SyncConfig, description="User reconciliation configuration"
    )
