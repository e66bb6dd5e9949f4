"""Entity: Item."""

from typing import Any

from pydantic import Field

from src.identity_broker.entities.core._base import Entity


class Item(Entity):
    """Item served through the read-through cache.

    Instances are also the cached representation, serialized as JSON.
    """

    name: str = Field(description="Display name, never blank")
    description: str | None = Field(default=None, description="Free-form description")

    def __eq__(self, other: Any) -> bool:
        """Compare items by business attributes, ignoring timestamps."""
        if not isinstance(other, Item):
            return False

        return (
            self.id == other.id
            and self.name == other.name
            and self.description == other.description
        )

    def __hash__(self) -> int:
        return hash((self.id, self.name, self.description))
