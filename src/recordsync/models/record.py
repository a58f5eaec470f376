"""Local record model: one row per (collection, record id)."""
from datetime import datetime

from sqlmodel import Field, SQLModel


class LocalRecord(SQLModel, table=True):
    """
    A schema-free record held by the local store.

    The record body is kept as JSON text; only the key, the collection and
    the owner are promoted to columns so the store can be scanned by owner.
    """

    collection: str = Field(primary_key=True)
    record_id: str = Field(primary_key=True)
    owner_id: str = Field(index=True)
    data: str  # JSON object, already sanitized
    stored_at: datetime = Field(default_factory=datetime.utcnow)
