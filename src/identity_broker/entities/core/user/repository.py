"""User repository."""

from datetime import datetime

from sqlmodel import Session, select

from src.identity_broker.entities.core._base import utc_now
from src.identity_broker.entities.core.user.entity import User
from src.identity_broker.entities.core.user.table import UserTable


class UserRepository:
    """Data-access layer for users.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @staticmethod
    def _to_entity(row: UserTable) -> User:
        return User.model_validate(row, from_attributes=True)

    def _first(self, statement) -> User | None:
        row = self._session.exec(statement).first()
        if row is None:
            return None
        return self._to_entity(row)

    def get(self, user_id: int) -> User | None:
        row = self._session.get(UserTable, user_id)
        if row is None:
            return None
        return self._to_entity(row)

    def find_by_subject_id(self, subject_id: str) -> User | None:
        return self._first(select(UserTable).where(UserTable.subject_id == subject_id))

    def exists_by_subject_id(self, subject_id: str) -> bool:
        statement = select(UserTable.id).where(UserTable.subject_id == subject_id)
        return self._session.exec(statement).first() is not None

    def list_all(self) -> list[User]:
        rows = self._session.exec(select(UserTable).order_by(UserTable.id)).all()
        return [self._to_entity(row) for row in rows]

    def create(self, user: User) -> User:
        """Insert a new row; raises ``IntegrityError`` if the subject already exists."""
        row = UserTable(**user.model_dump(exclude={"id"}))
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return self._to_entity(row)

    def update(self, user: User) -> User:
        row = self._session.get(UserTable, user.id)
        if row is None:
            raise ValueError(f"User {user.id} not found")

        row.username = user.username
        row.email = user.email
        row.display_name = user.display_name
        row.is_active = user.is_active
        row.last_synced_at = user.last_synced_at
        row.updated_at = utc_now()
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return self._to_entity(row)

    def touch_last_synced(self, user_id: int, synced_at: datetime | None = None) -> User:
        """Write only ``last_synced_at``; identity fields and ``updated_at`` stay put."""
        row = self._session.get(UserTable, user_id)
        if row is None:
            raise ValueError(f"User {user_id} not found")

        row.last_synced_at = synced_at or utc_now()
        self._session.add(row)
        self._session.flush()
        self._session.refresh(row)
        return self._to_entity(row)

    def deactivate(self, user_id: int) -> bool:
        row = self._session.get(UserTable, user_id)
        if row is None:
            return False

        row.is_active = False
        row.updated_at = utc_now()
        self._session.add(row)
        self._session.flush()
        return True
