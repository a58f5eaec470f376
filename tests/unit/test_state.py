"""Tests for SyncState: bounded log, flags and snapshots."""
import logging
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest

from recordsync.sync.state import MAX_LOG_ENTRIES, SyncLogEntry, SyncState


class TestActivityLog:
    def test_starts_empty(self):
        state = SyncState()
        assert state.recent_logs() == ()
        assert not state.is_syncing
        assert state.last_sync_time is None

    def test_newest_first(self):
        state = SyncState()
        state.add_log("first")
        state.add_log("second", "success")
        messages = [e.message for e in state.recent_logs()]
        assert messages == ["second", "first"]

    def test_capped_at_max_entries(self):
        state = SyncState()
        for i in range(MAX_LOG_ENTRIES + 25):
            state.add_log(f"entry {i}")
        logs = state.recent_logs()
        assert len(logs) == MAX_LOG_ENTRIES == 100
        assert logs[0].message == f"entry {MAX_LOG_ENTRIES + 24}"
        assert logs[-1].message == "entry 25"

    def test_entry_fields(self):
        state = SyncState()
        entry = state.add_log("Sync failed", "error", detail={"collection": "pyramids"})
        assert isinstance(entry, SyncLogEntry)
        assert len(entry.id) == 9
        assert entry.level == "error"
        assert entry.detail == {"collection": "pyramids"}
        assert entry.timestamp.tzinfo is not None

    def test_ids_are_unique(self):
        state = SyncState()
        ids = {state.add_log("x").id for _ in range(50)}
        assert len(ids) == 50

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            SyncState().add_log("x", "debug")

    def test_clear_logs(self):
        state = SyncState()
        state.add_log("x")
        state.clear_logs()
        assert state.recent_logs() == ()

    def test_entries_are_immutable(self):
        entry = SyncState().add_log("x")
        with pytest.raises(FrozenInstanceError):
            entry.message = "y"

    def test_mirrored_to_python_logging(self, caplog):
        state = SyncState()
        with caplog.at_level(logging.INFO, logger="recordsync.sync.state"):
            state.add_log("Sync already in progress", "warning")
        assert any(
            r.levelno == logging.WARNING and r.getMessage() == "Sync already in progress"
            for r in caplog.records
        )


class TestSnapshotsAndSubscribers:
    def test_snapshot_is_detached(self):
        state = SyncState()
        state.add_log("one")
        snap = state.snapshot()
        state.add_log("two")
        state.set_syncing(True)
        assert [e.message for e in snap.logs] == ["one"]
        assert snap.is_syncing is False

    def test_subscriber_sees_each_change(self):
        state = SyncState()
        seen = []
        state.subscribe(seen.append)
        state.set_syncing(True)
        when = datetime(2025, 1, 1, tzinfo=timezone.utc)
        state.set_last_sync_time(when)
        state.add_log("done", "success")
        assert [s.is_syncing for s in seen] == [True, True, True]
        assert seen[-1].last_sync_time == when
        assert seen[-1].logs[0].message == "done"

    def test_unsubscribe(self):
        state = SyncState()
        seen = []
        unsubscribe = state.subscribe(seen.append)
        unsubscribe()
        state.add_log("x")
        assert seen == []

    def test_failing_subscriber_does_not_break_writer(self):
        state = SyncState()

        def boom(_snapshot):
            raise RuntimeError("ui gone")

        state.subscribe(boom)
        state.set_syncing(True)
        assert state.is_syncing
