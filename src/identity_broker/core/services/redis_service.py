"""Shared Redis client backing the item cache."""

import redis.asyncio as redis_async
from loguru import logger
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from src.identity_broker.runtime.config.config_data import ConfigData, RedisConfig
from src.identity_broker.runtime.context import get_config


def _connect(redis_config: RedisConfig) -> redis_async.Redis:
    logger.info("Connecting item cache to {}", redis_config.sanitized_connection_string)
    return redis_async.from_url(
        redis_config.connection_string,
        encoding="utf-8",
        decode_responses=redis_config.decode_responses,
        max_connections=redis_config.max_connections,
        socket_timeout=redis_config.socket_timeout,
        socket_connect_timeout=redis_config.socket_connect_timeout,
        socket_keepalive=True,
        health_check_interval=30,
        retry=Retry(ExponentialBackoff(base=1, cap=10), retries=3),
        client_name="identity_broker",
    )


class RedisService:
    """Owns the Redis client used by the item cache.

    ``get_client`` returns ``None`` when Redis is disabled, unconfigured, or
    the client could not be built outside production; the cache then falls
    back to process memory.
    """

    def __init__(self, config: ConfigData | None = None):
        config = config or get_config()
        self._client: redis_async.Redis | None = None

        if not config.redis.enabled:
            logger.info("Redis disabled; item cache will stay in process")
            return
        if not config.redis.url:
            logger.warning("Redis enabled but no URL configured; item cache will stay in process")
            return

        try:
            self._client = _connect(config.redis)
        except Exception as e:
            logger.bind(error_type=type(e).__name__).error("Could not build Redis client: {}", e)
            if config.app.environment == "production":
                raise

    def get_client(self) -> redis_async.Redis | None:
        return self._client

    async def health_check(self) -> bool:
        """PING the server; False when there is no client or it does not answer."""
        if self._client is None:
            return False
        try:
            await self._client.ping()
        except Exception as e:
            logger.bind(error_type=type(e).__name__).warning("Redis ping failed: {}", e)
            return False
        return True

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        try:
            await client.aclose()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.bind(error_type=type(e).__name__).error("Error closing Redis: {}", e)
