"""Unit tests for the user and item entity packages."""

import pytest
from sqlalchemy.exc import IntegrityError

from src.identity_broker.entities import Item, ItemRepository, User, UserRepository


def _user(subject_id: str = "kc-ada", **overrides) -> User:
    fields = {
        "subject_id": subject_id,
        "username": "ada",
        "email": "ada@example.com",
        "display_name": "Ada Lovelace",
        **overrides,
    }
    return User(**fields)


class TestUserRepository:
    def test_create_and_find(self, session):
        repo = UserRepository(session)

        created = repo.create(_user())
        session.commit()

        assert created.id is not None
        assert repo.get(created.id) == created
        assert repo.find_by_subject_id("kc-ada") == created
        assert repo.exists_by_subject_id("kc-ada")
        assert not repo.exists_by_subject_id("kc-bob")

    def test_subject_id_is_unique(self, session):
        repo = UserRepository(session)
        repo.create(_user())
        session.commit()

        with pytest.raises(IntegrityError):
            repo.create(_user(username="ada2"))
        session.rollback()

        assert len(repo.list_all()) == 1

    def test_update_writes_identity_fields(self, session):
        repo = UserRepository(session)
        created = repo.create(_user())
        session.commit()

        updated = repo.update(created.model_copy(update={"display_name": "Countess"}))
        session.commit()

        assert updated.display_name == "Countess"
        assert updated.updated_at >= created.updated_at

    def test_touch_leaves_updated_at(self, session):
        repo = UserRepository(session)
        created = repo.create(_user())
        session.commit()

        touched = repo.touch_last_synced(created.id)
        session.commit()

        assert touched.updated_at == created.updated_at
        assert touched.last_synced_at >= created.last_synced_at

    def test_missing_user(self, session):
        repo = UserRepository(session)

        assert repo.get(404) is None
        assert repo.deactivate(404) is False
        with pytest.raises(ValueError):
            repo.update(_user(id=404))
        with pytest.raises(ValueError):
            repo.touch_last_synced(404)

    def test_user_equality_ignores_timestamps(self):
        first = _user(id=1)
        second = first.model_copy(update={"updated_at": first.updated_at.replace(year=2000)})

        assert first == second
        assert hash(first) == hash(second)


class TestItemRepository:
    def test_crud(self, session):
        repo = ItemRepository(session)

        created = repo.create(Item(name="alpha", description="first"))
        session.commit()
        assert repo.exists(created.id)
        assert repo.list_all() == [created]

        updated = repo.update(created.model_copy(update={"name": "beta"}))
        session.commit()
        assert repo.get(created.id).name == "beta"
        assert updated.name == "beta"

        assert repo.delete(created.id) is True
        session.commit()
        assert repo.get(created.id) is None
        assert repo.delete(created.id) is False

    def test_update_missing(self, session):
        with pytest.raises(ValueError):
            ItemRepository(session).update(Item(id=404, name="ghost"))
