"""Unit tests for reconciling provider identity into local users."""

import threading
from unittest.mock import patch

import pytest
from sqlmodel import Session, SQLModel, create_engine

from src.identity_broker.core.models.identity import CanonicalIdentity
from src.identity_broker.core.services import UserSyncService
from src.identity_broker.core.services.user.user_sync import diff_identity_fields
from src.identity_broker.entities.core.user import User, UserRepository


def _sync_ada(service: UserSyncService, **overrides) -> User:
    fields = {
        "username": "ada",
        "email": "ada@example.com",
        "display_name": "Ada Lovelace",
        **overrides,
    }
    return service.sync_user("kc-ada", **fields)


class TestDiffIdentityFields:
    def test_no_change(self):
        user = User(subject_id="s", username="ada", email=None, display_name="Ada")

        updated, changed = diff_identity_fields(
            user, {"username": "ada", "email": None, "display_name": "Ada"}
        )

        assert changed == {}
        assert updated == user

    def test_reports_only_changed_fields(self):
        user = User(subject_id="s", username="ada", email=None, display_name="Ada")

        updated, changed = diff_identity_fields(
            user, {"username": "ada", "email": "ada@example.com", "display_name": "Ada"}
        )

        assert changed == {"email": "ada@example.com"}
        assert updated.email == "ada@example.com"
        assert user.email is None

    def test_null_to_null_is_equal(self):
        user = User(subject_id="s", username="ada", email=None, display_name="Ada")

        _, changed = diff_identity_fields(user, {"email": None})

        assert changed == {}


class TestSyncUser:
    def test_creates_user_on_first_sighting(self, user_sync_service, session: Session):
        user = _sync_ada(user_sync_service)

        assert user.id is not None
        assert user.subject_id == "kc-ada"
        assert user.username == "ada"
        assert user.is_active is True
        assert UserRepository(session).find_by_subject_id("kc-ada") == user

    def test_unchanged_identity_only_touches_sync_time(self, user_sync_service):
        first = _sync_ada(user_sync_service)
        second = _sync_ada(user_sync_service)

        assert second.id == first.id
        assert second == first
        assert second.updated_at == first.updated_at
        assert second.last_synced_at >= first.last_synced_at

    def test_drift_is_written_back(self, user_sync_service):
        first = _sync_ada(user_sync_service)
        second = _sync_ada(
            user_sync_service, email="countess@example.com", display_name="Countess"
        )

        assert second.id == first.id
        assert second.email == "countess@example.com"
        assert second.display_name == "Countess"
        assert second.updated_at >= first.updated_at

    def test_email_can_be_cleared(self, user_sync_service):
        _sync_ada(user_sync_service)

        user = _sync_ada(user_sync_service, email=None)

        assert user.email is None

    def test_repeated_syncs_keep_one_row(self, user_sync_service, session: Session):
        ids = {_sync_ada(user_sync_service).id for _ in range(5)}

        assert len(ids) == 1
        assert len(UserRepository(session).list_all()) == 1

    def test_distinct_subjects_get_distinct_rows(self, user_sync_service, session):
        ada = _sync_ada(user_sync_service)
        bob = user_sync_service.sync_user("kc-bob", "bob", None, "Bob")

        assert ada.id != bob.id
        assert len(UserRepository(session).list_all()) == 2

    def test_losing_a_concurrent_insert_falls_back_to_update(
        self, session: Session
    ):
        # Another request created the user between our lookup and our insert
        winner = _sync_ada(UserSyncService(session))
        service = UserSyncService(session)
        real_find = service._user_repo.find_by_subject_id

        with patch.object(
            service._user_repo,
            "find_by_subject_id",
            side_effect=[None, real_find("kc-ada")],
        ):
            user = _sync_ada(service, display_name="Ada, Countess of Lovelace")

        assert user.id == winner.id
        assert user.display_name == "Ada, Countess of Lovelace"
        assert len(UserRepository(session).list_all()) == 1

    def test_store_failure_propagates(self, user_sync_service):
        with patch.object(
            user_sync_service._user_repo,
            "find_by_subject_id",
            side_effect=RuntimeError("database down"),
        ):
            with pytest.raises(RuntimeError, match="database down"):
                _sync_ada(user_sync_service)


class TestLookups:
    def test_sync_from_identity(self, user_sync_service):
        identity = CanonicalIdentity(
            subject_id="kc-ada",
            username="ada",
            email="ada@example.com",
            display_name="Ada Lovelace",
            roles=frozenset({"user"}),
        )

        user = user_sync_service.sync_from_identity(identity)

        assert user.subject_id == "kc-ada"
        assert user.display_name == "Ada Lovelace"
        assert user_sync_service.exists("kc-ada")
        assert user_sync_service.get_by_subject_id("kc-ada") == user
        assert user_sync_service.get_by_id(user.id) == user

    def test_unknown_subject(self, user_sync_service):
        assert not user_sync_service.exists("kc-nobody")
        assert user_sync_service.get_by_subject_id("kc-nobody") is None

    def test_deactivate(self, user_sync_service):
        user = _sync_ada(user_sync_service)

        assert user_sync_service.deactivate("kc-ada") is True
        assert user_sync_service.get_by_id(user.id).is_active is False
        assert user_sync_service.deactivate("kc-nobody") is False


class TestConcurrentSync:
    WRITERS = 8

    @pytest.fixture
    def file_engine(self, tmp_path):
        # Each writer needs its own connection, so the database lives on disk
        engine = create_engine(
            f"sqlite:///{tmp_path / 'race.db'}",
            connect_args={"check_same_thread": False, "timeout": 20},
        )
        from src.identity_broker.entities import ItemTable, UserTable  # noqa: F401

        SQLModel.metadata.create_all(engine)
        yield engine
        engine.dispose()

    def test_simultaneous_first_sightings_create_one_row(self, file_engine):
        barrier = threading.Barrier(self.WRITERS)
        lock = threading.Lock()
        ids: list[int] = []
        errors: list[Exception] = []

        def sync():
            with Session(file_engine, expire_on_commit=False) as db:
                barrier.wait()
                try:
                    user = UserSyncService(db).sync_user(
                        "kc-race", "race", "race@example.com", "Race Condition"
                    )
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                else:
                    with lock:
                        ids.append(user.id)

        threads = [threading.Thread(target=sync) for _ in range(self.WRITERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        assert errors == []
        assert len(ids) == self.WRITERS
        assert len(set(ids)) == 1
        with Session(file_engine) as db:
            assert len(UserRepository(db).list_all()) == 1
