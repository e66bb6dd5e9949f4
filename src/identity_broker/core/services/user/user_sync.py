"""Reconcile provider-asserted identity into the local ``users`` table."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from src.identity_broker.core.models.identity import CanonicalIdentity
from src.identity_broker.entities.core._base import utc_now
from src.identity_broker.entities.core.user import User, UserRepository

SYNCED_FIELDS = ("username", "email", "display_name")


def diff_identity_fields(
    user: User, incoming: Mapping[str, Any]
) -> tuple[User, dict[str, Any]]:
    """Compare the provider-owned fields of ``user`` against ``incoming``.

    Returns:
        The user with incoming values applied, and the fields that differed
    """
    changed = {
        field: incoming[field]
        for field in SYNCED_FIELDS
        if field in incoming and getattr(user, field) != incoming[field]
    }
    return user.model_copy(update=changed), changed


class UserSyncService:
    """Create-or-update of local users keyed by provider subject id.

    Exactly one row exists per subject: the unique index settles concurrent
    first sightings, and the losing insert continues on the update path.
    Every call commits, and the returned user always comes from the store.
    """

    def __init__(self, db_session: Session) -> None:
        self._db_session = db_session
        self._user_repo = UserRepository(db_session)

    def sync_user(
        self,
        subject_id: str,
        username: str,
        email: str | None,
        display_name: str,
    ) -> User:
        incoming = {"username": username, "email": email, "display_name": display_name}
        try:
            existing = self._user_repo.find_by_subject_id(subject_id)
            if existing is None:
                created = self._insert(subject_id, incoming)
                if created is not None:
                    return created
                existing = self._user_repo.find_by_subject_id(subject_id)
                if existing is None:
                    raise RuntimeError(
                        f"User {subject_id} vanished after a conflicting insert"
                    )
            return self._reconcile(existing, incoming)
        except Exception as e:
            logger.error(f"Error during user sync for subject {subject_id}: {e}")
            self._db_session.rollback()
            raise

    def _insert(self, subject_id: str, incoming: dict[str, Any]) -> User | None:
        """Insert a new user, or return None if another writer got there first."""
        now = utc_now()
        try:
            user = self._user_repo.create(
                User(
                    subject_id=subject_id,
                    is_active=True,
                    created_at=now,
                    updated_at=now,
                    last_synced_at=now,
                    **incoming,
                )
            )
            self._db_session.commit()
        except IntegrityError:
            self._db_session.rollback()
            logger.info("Concurrent insert for subject {}, updating instead", subject_id)
            return None

        logger.info("Created local user {} for subject {}", user.id, subject_id)
        return user

    def _reconcile(self, existing: User, incoming: dict[str, Any]) -> User:
        updated, changed = diff_identity_fields(existing, incoming)
        now = utc_now()
        if changed:
            user = self._user_repo.update(updated.model_copy(update={"last_synced_at": now}))
            logger.info(
                "Updated local user {} fields {}", existing.id, sorted(changed)
            )
        else:
            user = self._user_repo.touch_last_synced(existing.id, now)
        self._db_session.commit()
        return user

    def sync_from_identity(self, identity: CanonicalIdentity) -> User:
        return self.sync_user(
            identity.subject_id,
            identity.username,
            identity.email,
            identity.display_name,
        )

    def exists(self, subject_id: str) -> bool:
        return self._user_repo.exists_by_subject_id(subject_id)

    def get_by_subject_id(self, subject_id: str) -> User | None:
        return self._user_repo.find_by_subject_id(subject_id)

    def get_by_id(self, user_id: int) -> User | None:
        return self._user_repo.get(user_id)

    def deactivate(self, subject_id: str) -> bool:
        user = self._user_repo.find_by_subject_id(subject_id)
        if user is None:
            return False
        self._user_repo.deactivate(user.id)
        self._db_session.commit()
        logger.info("Deactivated local user {}", user.id)
        return True
