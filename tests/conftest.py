"""Shared test fixtures."""
import os
from typing import Generator

# Keep the app's engine singleton off the working directory
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from recordsync.models.record import LocalRecord  # noqa: F401
from recordsync.models.sync import SyncRun  # noqa: F401
from recordsync.local.store import LocalStore

OWNER = "user-a"
OTHER_OWNER = "user-b"
T = 1_700_000_000_000  # epoch ms


class FakeRemoteStore:
    """In-memory stand-in for HttpRemoteStore with the same async surface."""

    def __init__(self):
        self.docs = {}  # (collection, key) -> record
        self.writes = []  # (collection, key) in write order
        self.fail_keys = set()
        self.leak_all_owners = False

    def add(self, collection: str, record: dict) -> None:
        self.docs[(collection, record["id"])] = dict(record)

    def get(self, collection: str, key: str):
        return self.docs.get((collection, key))

    async def fetch_by_owner(self, collection: str, owner_id: str):
        return [
            dict(rec)
            for (coll, _), rec in self.docs.items()
            if coll == collection
            and (self.leak_all_owners or rec.get("userId") == owner_id)
        ]

    async def write_one(self, collection: str, key: str, record) -> None:
        if key in self.fail_keys:
            raise RuntimeError(f"remote rejected {key}")
        self.writes.append((collection, key))
        self.docs[(collection, key)] = dict(record)


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="local_store")
def local_store_fixture(engine) -> LocalStore:
    return LocalStore(engine)


@pytest.fixture(name="remote_store")
def remote_store_fixture() -> FakeRemoteStore:
    return FakeRemoteStore()
