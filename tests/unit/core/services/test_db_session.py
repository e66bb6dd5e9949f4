"""Unit tests for the database session service."""

from unittest.mock import patch

import pytest

from src.identity_broker.core.services import DbSessionService
from src.identity_broker.entities import Item, ItemRepository
from src.identity_broker.runtime.config.config_data import ConfigData, DatabaseConfig
from src.identity_broker.runtime.init_db import init_db


@pytest.fixture
def db_service(tmp_path):
    config = ConfigData(database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'broker.db'}"))
    service = DbSessionService(config)
    service.create_all()
    yield service
    service.dispose()


class TestDbSessionService:
    def test_health_check(self, db_service):
        assert db_service.health_check() is True

    def test_session_scope_commits(self, db_service):
        with db_service.session_scope() as db:
            ItemRepository(db).create(Item(name="alpha"))

        with db_service.session_scope() as db:
            assert [item.name for item in ItemRepository(db).list_all()] == ["alpha"]

    def test_session_scope_rolls_back_on_error(self, db_service):
        with pytest.raises(RuntimeError):
            with db_service.session_scope() as db:
                ItemRepository(db).create(Item(name="doomed"))
                raise RuntimeError("abort")

        with db_service.session_scope() as db:
            assert ItemRepository(db).list_all() == []


def test_init_db_creates_tables_and_disposes():
    with patch("src.identity_broker.runtime.init_db.DbSessionService") as service_cls:
        init_db()

    service_cls.return_value.create_all.assert_called_once_with()
    service_cls.return_value.dispose.assert_called_once_with()
