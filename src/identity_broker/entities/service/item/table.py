"""Item database table model."""

from sqlmodel import Field

from src.identity_broker.entities.core._base import EntityTable


class ItemTable(EntityTable, table=True):
    """Database persistence model for items."""

    __tablename__ = "items"

    name: str = Field(nullable=False)
    description: str | None = None
