from __future__ import annotations

from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from tests.utils import oct_jwk

_HS_KEY = b"broker-test-secret-key-0123456789abcdef"
_KID = "broker-key"

__all__ = [
    "hs_key",
    "kid_for_jwt",
    "jwks_data",
    "session",
]


@pytest.fixture
def hs_key() -> bytes:
    return _HS_KEY


@pytest.fixture
def kid_for_jwt() -> str:
    return _KID


@pytest.fixture
def jwks_data(hs_key: bytes, kid_for_jwt: str) -> dict[str, Any]:
    """JWKS document holding the symmetric test key."""
    return {"keys": [oct_jwk(hs_key, kid_for_jwt)]}


@pytest.fixture
def session() -> Generator[Session]:
    """Create a fresh database session for testing."""
    # Each test gets its own in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Import models to register them with the metadata
    from src.identity_broker.entities import ItemTable, UserTable  # noqa: F401

    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        try:
            yield session
        finally:
            session.rollback()
            session.close()
            engine.dispose()
