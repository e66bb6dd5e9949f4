"""Engine and sessions for the local user and item store."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from loguru import logger
from sqlalchemy import text
from sqlmodel import Session, SQLModel, create_engine

from src.identity_broker.runtime.config.config_data import ConfigData
from src.identity_broker.runtime.context import get_config


def _engine_options(config: ConfigData) -> dict[str, Any]:
    db_config = config.database
    options: dict[str, Any] = {"pool_pre_ping": True, "echo": False}

    if db_config.is_sqlite:
        if config.app.environment == "production":
            logger.warning("SQLite in production; use PostgreSQL for concurrent writers")
        # Request handlers and startup run on different threads
        options["connect_args"] = {"check_same_thread": False, "timeout": 20}
        return options

    options.update(
        pool_size=db_config.pool_size,
        max_overflow=db_config.max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_recycle=db_config.pool_recycle,
    )
    if db_config.url.startswith("postgresql"):
        options["connect_args"] = {
            "application_name": f"identity_broker_{config.app.environment}",
            "connect_timeout": 30,
        }
    return options


class DbSessionService:
    """Owns the engine; hands out sessions for requests and scripts."""

    def __init__(self, config: ConfigData | None = None):
        config = config or get_config()
        options = _engine_options(config)
        self._engine = create_engine(config.database.connection_string, **options)
        logger.bind(pooled=not config.database.is_sqlite).info(
            "Database engine ready for {} environment", config.app.environment
        )

    @property
    def engine(self):
        return self._engine

    def create_all(self) -> None:
        """Create the users and items tables if they do not exist."""
        # Importing the tables registers them on SQLModel.metadata
        from src.identity_broker.entities import ItemTable, UserTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database tables ensured")

    def get_session(self) -> Session:
        # Callers keep reading entities after commit
        return Session(self._engine, expire_on_commit=False)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Commit on success, roll back and re-raise on failure."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception as e:
            db.rollback()
            logger.bind(error_type=type(e).__name__).error("Transaction rolled back: {}", e)
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        """Run ``SELECT 1``; False when the database cannot be reached."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception as e:
            logger.bind(error_type=type(e).__name__).error("Database health check failed: {}", e)
            return False
        return True

    def dispose(self) -> None:
        self._engine.dispose()
