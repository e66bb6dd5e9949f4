"""Database initialization script."""

from src.identity_broker.core.services.database.db_session import DbSessionService


def init_db() -> None:
    """Create all database tables."""
    db_service = DbSessionService()
    try:
        db_service.create_all()
    finally:
        db_service.dispose()


if __name__ == "__main__":
    init_db()
