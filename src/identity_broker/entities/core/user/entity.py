"""User domain entity."""

from datetime import datetime
from typing import Any

from pydantic import Field

from src.identity_broker.entities.core._base import Entity, utc_now


class User(Entity):
    """Local mirror of an identity-provider account.

    ``id`` is the value every local foreign key points at; ``subject_id`` ties
    the row back to the provider's identity space and is unique.
    """

    subject_id: str = Field(description="Provider subject identifier")
    username: str = Field(description="Provider username")
    email: str | None = Field(default=None, description="User's email address")
    display_name: str = Field(description="Name shown in the UI")
    is_active: bool = Field(default=True, description="Deactivated users stay in place")
    last_synced_at: datetime = Field(default_factory=utc_now)

    def __eq__(self, other: Any) -> bool:
        """Compare users by identity attributes, ignoring timestamps."""
        if not isinstance(other, User):
            return False

        return (
            self.id == other.id
            and self.subject_id == other.subject_id
            and self.username == other.username
            and self.email == other.email
            and self.display_name == other.display_name
            and self.is_active == other.is_active
        )

    def __hash__(self) -> int:
        return hash((self.id, self.subject_id))
