"""Signing-key retrieval for bearer token verification."""

from abc import ABC, abstractmethod
from typing import Any

import httpx
from cachetools import TTLCache
from loguru import logger

from src.identity_broker.core.errors import ServiceUnavailableError


class JWKSCache(ABC):
    @abstractmethod
    def get_jwks(self, jwks_uri: str) -> dict[str, Any]:
        """Return the cached JWKS for ``jwks_uri``, or an empty dict."""
        raise NotImplementedError

    @abstractmethod
    def set_jwks(self, jwks_uri: str, jwks: dict[str, Any]) -> None:
        raise NotImplementedError


class JWKSCacheInMemory(JWKSCache):
    def __init__(self, ttl_seconds: int = 3600) -> None:
        self._cache: TTLCache[str, dict[str, Any]] = TTLCache(maxsize=10, ttl=ttl_seconds)

    def get_jwks(self, jwks_uri: str) -> dict[str, Any]:
        return self._cache.get(jwks_uri, {})

    def set_jwks(self, jwks_uri: str, jwks: dict[str, Any]) -> None:
        self._cache[jwks_uri] = jwks


class JwksService:
    """Fetches and caches the identity provider's signing keys."""

    def __init__(self, cache: JWKSCache, http_client: httpx.AsyncClient) -> None:
        self._cache = cache
        self._http = http_client

    async def fetch_jwks(self, jwks_uri: str) -> dict[str, Any]:
        jwks = self._cache.get_jwks(jwks_uri)
        if jwks:
            return jwks

        try:
            resp = await self._http.get(jwks_uri)
            resp.raise_for_status()
            jwks = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Failed to fetch JWKS from {}: {}", jwks_uri, exc)
            raise ServiceUnavailableError("Unable to fetch signing keys") from exc

        self._cache.set_jwks(jwks_uri, jwks)
        return jwks
