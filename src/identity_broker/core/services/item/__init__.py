from .item_cache import ItemCacheService

__all__ = ["ItemCacheService"]
