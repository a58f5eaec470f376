"""Tests for DB models."""
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from recordsync.models.record import LocalRecord
from recordsync.models.sync import SyncRun


class TestLocalRecord:
    def test_composite_key_allows_same_id_in_two_collections(self, test_session: Session):
        test_session.add(LocalRecord(collection="pyramids", record_id="1", owner_id="a", data="{}"))
        test_session.add(LocalRecord(collection="diagrams", record_id="1", owner_id="a", data="{}"))
        test_session.commit()
        assert len(test_session.exec(select(LocalRecord)).all()) == 2

    def test_duplicate_key_in_collection_rejected(self, engine):
        with Session(engine) as s:
            s.add(LocalRecord(collection="pyramids", record_id="1", owner_id="a", data="{}"))
            s.commit()
        with Session(engine) as s:
            s.add(LocalRecord(collection="pyramids", record_id="1", owner_id="a", data="{}"))
            with pytest.raises(IntegrityError):
                s.commit()

    def test_stored_at_defaults_to_now(self):
        before = datetime.utcnow()
        row = LocalRecord(collection="pyramids", record_id="1", owner_id="a", data="{}")
        assert row.stored_at >= before


class TestSyncRun:
    def test_defaults(self):
        run = SyncRun(owner_id="a")
        assert run.status == "running"
        assert run.pulled == 0
        assert run.pushed == 0
        assert run.failed == 0
        assert run.finished_at is None
        assert run.error_message is None

    def test_persists(self, test_session: Session):
        test_session.add(SyncRun(owner_id="a", status="success", pulled=2, pushed=1))
        test_session.commit()
        run = test_session.exec(select(SyncRun)).one()
        assert run.id is not None
        assert run.pulled == 2
