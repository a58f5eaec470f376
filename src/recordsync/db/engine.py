"""SQLModel engine singleton and session dependency."""
from typing import Generator

from sqlmodel import Session, SQLModel, create_engine

from recordsync.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            connect_args={
                "check_same_thread": False,  # store calls run in the executor
                # a write blocked on the database lock gives up instead of committing late
                "timeout": settings.sync_timeout_seconds,
            },
        )
        # Import all models so metadata is populated before create_all
        from recordsync.models.record import LocalRecord  # noqa
        from recordsync.models.sync import SyncRun  # noqa
        SQLModel.metadata.create_all(_engine)
    return _engine


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a DB session."""
    with Session(get_engine()) as session:
        yield session
