"""
Process-wide sync state: in-progress flag, last sync time, activity log.

SyncState is owned by the SyncOrchestrator, which is its only writer. Every
other component (API routes, the CLI, UI callbacks) reads it through
immutable snapshots, so a reader never observes a half-applied update.

The activity log is a bounded buffer, newest entry first, capped at
MAX_LOG_ENTRIES. Entries are mirrored to the standard logging module.
"""
import logging
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_LOG_ENTRIES = 100
LOG_LEVELS = ("info", "success", "warning", "error")

_PY_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class SyncLogEntry:
    id: str
    timestamp: datetime
    message: str
    level: str = "info"
    detail: Optional[Any] = None


@dataclass(frozen=True)
class SyncStateSnapshot:
    is_syncing: bool
    last_sync_time: Optional[datetime]
    logs: Tuple[SyncLogEntry, ...]


Subscriber = Callable[[SyncStateSnapshot], None]


class SyncState:
    """Single-writer container for everything the UI shows about syncing."""

    def __init__(self, capacity: int = MAX_LOG_ENTRIES):
        self._syncing = False
        self._last_sync_time: Optional[datetime] = None
        self._logs: deque = deque(maxlen=capacity)
        self._subscribers: List[Subscriber] = []

    # ─── Reads ────────────────────────────────────────────────────────────────

    @property
    def is_syncing(self) -> bool:
        return self._syncing

    @property
    def last_sync_time(self) -> Optional[datetime]:
        return self._last_sync_time

    def recent_logs(self) -> Tuple[SyncLogEntry, ...]:
        """Logged entries, most recent first."""
        return tuple(self._logs)

    def snapshot(self) -> SyncStateSnapshot:
        return SyncStateSnapshot(
            is_syncing=self._syncing,
            last_sync_time=self._last_sync_time,
            logs=tuple(self._logs),
        )

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Call callback with a fresh snapshot after every change.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    # ─── Writes (orchestrator only) ───────────────────────────────────────────

    def set_syncing(self, syncing: bool) -> None:
        self._syncing = syncing
        self._publish()

    def set_last_sync_time(self, when: datetime) -> None:
        self._last_sync_time = when
        self._publish()

    def add_log(self, message: str, level: str = "info", detail: Any = None) -> SyncLogEntry:
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {level!r}")
        entry = SyncLogEntry(
            id=uuid.uuid4().hex[:9],
            timestamp=datetime.now(timezone.utc),
            message=message,
            level=level,
            detail=detail,
        )
        self._logs.appendleft(entry)
        logger.log(_PY_LEVELS[level], message)
        self._publish()
        return entry

    def clear_logs(self) -> None:
        self._logs.clear()
        self._publish()

    def _publish(self) -> None:
        if not self._subscribers:
            return
        snap = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snap)
            except Exception:
                logger.exception("Sync state subscriber failed")
