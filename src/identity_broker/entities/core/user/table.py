"""User database table model."""

from datetime import datetime

from sqlmodel import Field

from src.identity_broker.entities.core._base import EntityTable, utc_now


class UserTable(EntityTable, table=True):
    """Database persistence model for users.

    The unique index on ``subject_id`` is what keeps concurrent first sightings
    of the same subject from producing two rows.
    """

    __tablename__ = "users"

    subject_id: str = Field(unique=True, index=True, nullable=False)
    username: str = Field(index=True)
    email: str | None = Field(default=None, index=True)
    display_name: str
    is_active: bool = Field(default=True)
    last_synced_at: datetime = Field(default_factory=utc_now, nullable=False)
