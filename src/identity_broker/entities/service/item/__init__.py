"""Entity package: Item."""

from .entity import Item
from .repository import ItemRepository
from .table import ItemTable

__all__ = ["Item", "ItemRepository", "ItemTable"]
