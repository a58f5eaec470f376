"""Sync trigger, status and activity log routes."""
from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel
from sqlmodel import Session, select

from recordsync.db.engine import get_session
from recordsync.models.sync import SyncRun
from recordsync.sync.orchestrator import SyncOrchestrator, get_orchestrator

router = APIRouter()


class SyncTriggerResponse(BaseModel):
    message: str
    accepted: bool


class SyncLogEntryResponse(BaseModel):
    id: str
    timestamp: datetime
    message: str
    level: str
    detail: Optional[Any] = None


class SyncStatusResponse(BaseModel):
    is_syncing: bool
    last_sync_time: Optional[datetime]
    last_run_status: str
    last_run_started_at: Optional[datetime]
    last_run_finished_at: Optional[datetime]
    pulled: Optional[int]
    pushed: Optional[int]
    failed: Optional[int]
    error_message: Optional[str]


async def _do_sync(orchestrator: SyncOrchestrator) -> None:
    """Background task: run one full pass. start_sync() logs its own failures."""
    await orchestrator.start_sync()


@router.post("/trigger", response_model=SyncTriggerResponse)
async def trigger_sync(
    background_tasks: BackgroundTasks,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """
    Request a sync in the background and return immediately.

    accepted only reflects the in-progress flag at request time. Two triggers
    arriving together can both report accepted; the orchestrator runs one
    and logs "Sync already in progress" for the other, so the activity log
    is the authority on what actually ran.
    """
    accepted = not orchestrator.is_syncing()
    background_tasks.add_task(_do_sync, orchestrator)
    message = "Sync requested" if accepted else "Sync already in progress"
    return SyncTriggerResponse(message=message, accepted=accepted)


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(
    session: Session = Depends(get_session),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Return the live sync flag plus the most recent recorded run."""
    run = session.exec(
        select(SyncRun).order_by(SyncRun.started_at.desc())
    ).first()
    return SyncStatusResponse(
        is_syncing=orchestrator.is_syncing(),
        last_sync_time=orchestrator.last_sync_time(),
        last_run_status=run.status if run else "never_run",
        last_run_started_at=run.started_at if run else None,
        last_run_finished_at=run.finished_at if run else None,
        pulled=run.pulled if run else None,
        pushed=run.pushed if run else None,
        failed=run.failed if run else None,
        error_message=run.error_message if run else None,
    )


@router.get("/logs", response_model=List[SyncLogEntryResponse])
def sync_logs(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    """Recent activity log entries, newest first."""
    return [
        SyncLogEntryResponse(
            id=entry.id,
            timestamp=entry.timestamp,
            message=entry.message,
            level=entry.level,
            detail=entry.detail,
        )
        for entry in orchestrator.recent_logs()
    ]


@router.delete("/logs")
def clear_sync_logs(orchestrator: SyncOrchestrator = Depends(get_orchestrator)):
    orchestrator.clear_logs()
    return {"message": "Logs cleared"}
