"""Sync audit log model."""
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel


class SyncRun(SQLModel, table=True):
    """Records each orchestration run for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(default="", index=True)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    status: str = "running"  # "running", "success", "partial", "error"
    pulled: int = 0
    pushed: int = 0
    failed: int = 0
    error_message: Optional[str] = None
