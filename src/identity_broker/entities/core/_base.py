from datetime import UTC, datetime

from pydantic import BaseModel
from pydantic import Field as PydanticField
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(UTC)


class Entity(BaseModel):
    """Base entity class with a database-assigned integer identifier."""

    id: int | None = PydanticField(
        default=None, description="Identifier assigned by the primary store"
    )

    created_at: datetime = PydanticField(default_factory=utc_now)
    updated_at: datetime = PydanticField(default_factory=utc_now)


class EntityTable(SQLModel, table=False):
    """Base table with an autoincrement primary key and audit timestamps.

    ``updated_at`` is written explicitly by repositories so that timestamp-only
    writes can leave it untouched.
    """

    id: int | None = Field(default=None, primary_key=True)

    created_at: datetime = Field(default_factory=utc_now, nullable=False)
    updated_at: datetime = Field(default_factory=utc_now, nullable=False)
