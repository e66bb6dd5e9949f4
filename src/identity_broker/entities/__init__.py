"""Entities organized by business concept.

Each entity package colocates its domain model (entity.py), its database
model (table.py) and its data-access layer (repository.py).
"""

from .core.user import User, UserRepository, UserTable
from .service.item import Item, ItemRepository, ItemTable

__all__ = [
    "User",
    "UserTable",
    "UserRepository",
    "Item",
    "ItemTable",
    "ItemRepository",
]
