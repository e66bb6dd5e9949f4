"""Cache-aside access to items.

Reads go cache, then store, then populate the cache. Writes commit to the
store first and only then invalidate, so a reader that misses can never
repopulate from uncommitted state. Cache failures are logged and treated as
misses or skipped invalidations; they never undo a committed write.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from loguru import logger
from pydantic import TypeAdapter, ValidationError
from sqlmodel import Session

from src.identity_broker.core.errors import NotFoundError, ValidationFailedError
from src.identity_broker.core.storage.cache_store import CacheStore
from src.identity_broker.entities.service.item import Item, ItemRepository
from src.identity_broker.runtime.config.config_data import CacheConfig
from src.identity_broker.runtime.context import get_config

T = TypeVar("T")

_ITEM = TypeAdapter(Item)
_ITEM_LIST = TypeAdapter(list[Item])


class ItemCacheService:
    def __init__(
        self,
        db_session: Session,
        cache: CacheStore,
        config: CacheConfig | None = None,
    ) -> None:
        self._db_session = db_session
        self._repo = ItemRepository(db_session)
        self._cache = cache
        self._config = config

    @property
    def config(self) -> CacheConfig:
        return self._config or get_config().cache

    @property
    def all_items_key(self) -> str:
        return f"{self.config.namespace}:items:all"

    def item_key(self, item_id: int) -> str:
        return f"{self.config.namespace}:item:{item_id}"

    async def _cached(self, key: str, adapter: TypeAdapter[T]) -> T | None:
        try:
            raw = await self._cache.get(key)
        except Exception as e:
            logger.warning("Cache read failed for {}: {}", key, e)
            return None
        if raw is None:
            return None
        try:
            return adapter.validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cache entry {}", key)
            return None

    async def _populate(self, key: str, value: object, adapter: TypeAdapter) -> None:
        try:
            await self._cache.set(
                key, adapter.dump_json(value).decode(), self.config.item_ttl_seconds
            )
        except Exception as e:
            logger.warning("Cache write failed for {}: {}", key, e)

    async def _invalidate(self, *keys: str) -> None:
        try:
            await self._cache.delete(*keys)
        except Exception as e:
            logger.warning("Cache invalidation failed for {}, stale until TTL: {}", keys, e)

    def _write(self, mutation: Callable[[], T]) -> T:
        try:
            result = mutation()
            self._db_session.commit()
        except Exception:
            self._db_session.rollback()
            raise
        return result

    @staticmethod
    def _validate_name(name: str | None) -> str:
        if name is None or not name.strip():
            raise ValidationFailedError.for_field("name", "Name must not be blank", name)
        return name.strip()

    async def get_all(self) -> list[Item]:
        cached = await self._cached(self.all_items_key, _ITEM_LIST)
        if cached is not None:
            logger.debug("Item list served from cache")
            return cached

        items = self._repo.list_all()
        await self._populate(self.all_items_key, items, _ITEM_LIST)
        return items

    async def get_by_id(self, item_id: int) -> Item:
        key = self.item_key(item_id)
        cached = await self._cached(key, _ITEM)
        if cached is not None:
            return cached

        item = self._repo.get(item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found", code="ITEM_NOT_FOUND")
        await self._populate(key, item, _ITEM)
        return item

    async def create(self, name: str, description: str | None = None) -> Item:
        item = Item(name=self._validate_name(name), description=description)
        created = self._write(lambda: self._repo.create(item))
        await self._invalidate(self.all_items_key)
        await self._populate(self.item_key(created.id), created, _ITEM)
        logger.info("Created item {}", created.id)
        return created

    async def update(
        self, item_id: int, name: str, description: str | None = None
    ) -> Item:
        clean_name = self._validate_name(name)
        existing = self._repo.get(item_id)
        if existing is None:
            raise NotFoundError(f"Item {item_id} not found", code="ITEM_NOT_FOUND")

        changed = existing.model_copy(update={"name": clean_name, "description": description})
        updated = self._write(lambda: self._repo.update(changed))
        await self._invalidate(self.all_items_key, self.item_key(item_id))
        logger.info("Updated item {}", item_id)
        return updated

    async def delete(self, item_id: int) -> None:
        if not self._write(lambda: self._repo.delete(item_id)):
            raise NotFoundError(f"Item {item_id} not found", code="ITEM_NOT_FOUND")
        await self._invalidate(self.all_items_key, self.item_key(item_id))
        logger.info("Deleted item {}", item_id)

    async def clear_cache(self) -> int:
        """Drop the list entry and every per-item entry; returns keys removed."""
        try:
            await self._cache.delete(self.all_items_key)
            removed = await self._cache.delete_pattern(f"{self.config.namespace}:item:*")
        except Exception as e:
            logger.warning("Item cache clear failed: {}", e)
            return 0
        logger.info("Cleared item cache ({} item entries)", removed)
        return removed
