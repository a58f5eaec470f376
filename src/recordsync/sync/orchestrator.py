"""
SyncOrchestrator — runs a full reconciliation pass over every collection.

State machine per run:

    Idle --start_sync()--> Syncing --all collections visited--> Idle

  - A start while Syncing is rejected with a warning (never queued).
  - A start with no signed-in owner is rejected with an error before any I/O.
  - Collections are processed one at a time in configured order. A failure
    in one collection is logged as a warning and the next one still runs.
  - The in-progress flag is cleared in a finally block, so a run that fails
    everywhere still returns to Idle.

There is no retry. Passes are idempotent, so the next start_sync() is the
retry.

The orchestrator is the only writer of SyncState. It also records one
SyncRun audit row per accepted run when constructed with an engine.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlmodel import Session

from recordsync.models.sync import SyncRun
from recordsync.sync.collection import CollectionResult
from recordsync.sync.state import SyncState

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    """Aggregate outcome of one orchestration run."""

    owner_id: str
    results: List[CollectionResult] = field(default_factory=list)
    failed_collections: List[str] = field(default_factory=list)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @property
    def pulled(self) -> int:
        return sum(r.pulled for r in self.results)

    @property
    def pushed(self) -> int:
        return sum(r.pushed for r in self.results)

    @property
    def failed(self) -> int:
        return sum(len(r.failed_keys) + len(r.rejected_keys) for r in self.results)

    @property
    def ok(self) -> bool:
        return (
            self.error is None
            and not self.failed_collections
            and all(r.ok for r in self.results)
        )

    @property
    def status(self) -> str:
        if self.ok:
            return "success"
        if self.error is not None or not self.results:
            return "error"
        return "partial"


class SyncOrchestrator:
    """Drives CollectionSynchronizer across all configured collections."""

    def __init__(
        self,
        synchronizer,
        collections: Sequence[str],
        owner_provider: Callable[[], Optional[str]],
        state: Optional[SyncState] = None,
        engine=None,
    ):
        """
        Args:
            synchronizer: CollectionSynchronizer (or AsyncMock in tests).
            collections: Collection names, reconciled in this order.
            owner_provider: Returns the signed-in owner id, or None.
            state: SyncState to publish to. A fresh one is created if omitted.
            engine: Optional SQLAlchemy engine for SyncRun audit rows.
        """
        self.synchronizer = synchronizer
        self.collections = list(collections)
        self.owner_provider = owner_provider
        self.state = state or SyncState()
        self.engine = engine

    # ─── Read interface ───────────────────────────────────────────────────────

    def is_syncing(self) -> bool:
        return self.state.is_syncing

    def last_sync_time(self) -> Optional[datetime]:
        return self.state.last_sync_time

    def recent_logs(self):
        return self.state.recent_logs()

    def clear_logs(self) -> None:
        self.state.clear_logs()

    def subscribe(self, callback):
        return self.state.subscribe(callback)

    # ─── Run ──────────────────────────────────────────────────────────────────

    async def start_sync(self) -> Optional[SyncSummary]:
        """
        Reconcile every configured collection for the signed-in owner.

        Never raises: every failure ends up in the activity log.

        Returns:
            The run's SyncSummary, or None if the run was rejected.
        """
        if self.state.is_syncing:
            self.state.add_log("Sync already in progress", "warning")
            return None

        owner_id = self._current_owner()
        if not owner_id:
            self.state.add_log("Cannot sync: No user logged in", "error")
            return None

        self.state.set_syncing(True)
        summary = SyncSummary(owner_id=owner_id)
        run_id = self._open_run(owner_id)
        try:
            self.state.add_log("Starting sync with server...", "info")

            for name in self.collections:
                try:
                    result = await self.synchronizer.sync_collection(name, owner_id)
                except Exception as exc:
                    summary.failed_collections.append(name)
                    self.state.add_log(
                        f"Failed to sync {name}: {exc}",
                        "warning",
                        detail={"collection": name},
                    )
                    continue
                summary.results.append(result)
                self._log_collection(result)

            summary.completed_at = datetime.now(timezone.utc)
            if summary.ok:
                self.state.set_last_sync_time(summary.completed_at)
                self.state.add_log(
                    f"Sync completed. Pulled: {summary.pulled}, Pushed: {summary.pushed}",
                    "success",
                )
            else:
                self.state.add_log(
                    f"Sync completed with errors. Pulled: {summary.pulled}, "
                    f"Pushed: {summary.pushed}",
                    "warning",
                    detail={
                        "failed_collections": list(summary.failed_collections),
                        "failed_records": summary.failed,
                    },
                )

        except Exception as exc:
            summary.error = str(exc) or type(exc).__name__
            self.state.add_log(f"Sync failed: {summary.error}", "error")
        finally:
            self.state.set_syncing(False)

        self._close_run(run_id, summary)
        return summary

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _current_owner(self) -> Optional[str]:
        try:
            return self.owner_provider()
        except Exception:
            logger.exception("Owner lookup failed")
            return None

    def _log_collection(self, result: CollectionResult) -> None:
        name = result.collection
        if result.pulled or result.pushed:
            self.state.add_log(
                f"Synced {name}: Pulled {result.pulled}, Pushed {result.pushed}",
                "success",
            )
        if result.pull_error:
            self.state.add_log(
                f"{name}: failed to store pulled records: {result.pull_error}",
                "warning",
                detail={"collection": name},
            )
        if result.failed_keys:
            self.state.add_log(
                f"{name}: {len(result.failed_keys)} record(s) failed to push",
                "warning",
                detail={"collection": name, "failed_keys": list(result.failed_keys)},
            )
        if result.rejected_keys:
            self.state.add_log(
                f"{name}: {len(result.rejected_keys)} record(s) belong to another local owner",
                "warning",
                detail={"collection": name, "rejected_keys": list(result.rejected_keys)},
            )

    def _open_run(self, owner_id: str) -> Optional[int]:
        """Insert a running SyncRun row. Audit failures never stop a sync."""
        if self.engine is None:
            return None
        try:
            run = SyncRun(owner_id=owner_id, started_at=datetime.utcnow(), status="running")
            with Session(self.engine) as s:
                s.add(run)
                s.commit()
                s.refresh(run)
                return run.id
        except Exception:
            logger.exception("Could not record sync run start")
            return None

    def _close_run(self, run_id: Optional[int], summary: SyncSummary) -> None:
        if self.engine is None or run_id is None:
            return
        try:
            with Session(self.engine) as s:
                run = s.get(SyncRun, run_id)
                run.status = summary.status
                run.finished_at = datetime.utcnow()
                run.pulled = summary.pulled
                run.pushed = summary.pushed
                run.failed = summary.failed
                if summary.error:
                    run.error_message = summary.error
                elif summary.failed_collections:
                    run.error_message = "Failed collections: " + ", ".join(
                        summary.failed_collections
                    )
                s.add(run)
                s.commit()
        except Exception:
            logger.exception("Could not record sync run result")


_orchestrator: Optional[SyncOrchestrator] = None


def build_orchestrator(settings, engine) -> SyncOrchestrator:
    """Wire a SyncOrchestrator against the SQLite store and the HTTP remote."""
    from recordsync.local.store import LocalStore
    from recordsync.remote.client import HttpRemoteStore
    from recordsync.sync.collection import CollectionSynchronizer

    local = LocalStore(
        engine,
        key_field=settings.record_key_field,
        owner_field=settings.record_owner_field,
    )
    remote = HttpRemoteStore(
        settings.remote_base_url,
        api_token=settings.remote_api_token,
        timeout=settings.sync_timeout_seconds,
        key_field=settings.record_key_field,
        owner_field=settings.record_owner_field,
    )
    synchronizer = CollectionSynchronizer(
        local,
        remote,
        timeout=settings.sync_timeout_seconds,
        push_concurrency=settings.sync_push_concurrency,
        key_field=settings.record_key_field,
        owner_field=settings.record_owner_field,
    )
    return SyncOrchestrator(
        synchronizer,
        collections=settings.sync_collections,
        owner_provider=lambda: settings.owner_id or None,
        engine=engine,
    )


def get_orchestrator() -> SyncOrchestrator:
    """Return the process-wide orchestrator, creating it on first call."""
    global _orchestrator
    if _orchestrator is None:
        from recordsync.config import get_settings
        from recordsync.db.engine import get_engine
        _orchestrator = build_orchestrator(get_settings(), get_engine())
    return _orchestrator
