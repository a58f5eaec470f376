"""
Local record store backed by SQLite via SQLModel.

SQLModel sessions are synchronous; every public method runs the session work
in the thread pool executor so it doesn't block the asyncio event loop and
so callers can bound it with asyncio.wait_for().

Records are stored as sanitized JSON in LocalRecord.data. The key and owner
are copied out of the record body into columns on every write.
"""
import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlmodel import Session, select

from recordsync.models.record import LocalRecord
from recordsync.sync.serialization import dumps, to_plain

logger = logging.getLogger(__name__)


class LocalStore:
    """Per-collection access to locally held records."""

    def __init__(self, engine, key_field: str = "id", owner_field: str = "userId"):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
            key_field: Record field holding the key unique within a collection.
            owner_field: Record field holding the owner identifier.
        """
        self.engine = engine
        self.key_field = key_field
        self.owner_field = owner_field

    async def _run(self, fn, *args, **kwargs):
        """Run a blocking session call in the thread pool."""
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, lambda: fn(*args, **kwargs))

    # ─── Sync contract ────────────────────────────────────────────────────────

    async def fetch_by_owner(self, collection: str, owner_id: str) -> List[Dict[str, Any]]:
        """Return every record in collection that belongs to owner_id."""
        return await self._run(self._fetch_by_owner, collection, owner_id)

    async def bulk_upsert(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> List[str]:
        """
        Insert or replace records in a single transaction.

        A record whose key already exists under a different owner is skipped:
        ownership never changes once a record has been stored.

        The write runs on a worker thread. A caller that stops waiting (for
        example through asyncio.wait_for) does not cancel it, so the
        transaction may still commit after the caller has given up.

        Returns:
            Keys of the records that were skipped. Empty when all were written.

        Raises:
            ValueError: if a record lacks its key or owner field. Nothing
                from the batch is written in that case.
        """
        return await self._run(self._bulk_upsert, collection, list(records))

    # ─── Application access ───────────────────────────────────────────────────

    async def put(self, collection: str, record: Mapping[str, Any]) -> None:
        await self.bulk_upsert(collection, [record])

    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        return await self._run(self._get, collection, record_id)

    # ─── Internal helpers ─────────────────────────────────────────────────────

    def _fetch_by_owner(self, collection: str, owner_id: str) -> List[Dict[str, Any]]:
        with Session(self.engine) as s:
            rows = s.exec(
                select(LocalRecord)
                .where(LocalRecord.collection == collection)
                .where(LocalRecord.owner_id == owner_id)
                .order_by(LocalRecord.record_id)
            ).all()
            return [json.loads(row.data) for row in rows]

    def _get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        with Session(self.engine) as s:
            row = s.get(LocalRecord, (collection, str(record_id)))
            return json.loads(row.data) if row else None

    def _bulk_upsert(self, collection: str, records: List[Mapping[str, Any]]) -> List[str]:
        skipped: List[str] = []
        with Session(self.engine) as s:
            for record in records:
                plain = to_plain(record)
                record_id = plain.get(self.key_field)
                owner_id = plain.get(self.owner_field)
                if record_id is None or owner_id is None:
                    raise ValueError(
                        f"{collection}: record is missing "
                        f"{self.key_field!r} or {self.owner_field!r}"
                    )

                existing = s.get(LocalRecord, (collection, str(record_id)))
                if existing is None:
                    s.add(LocalRecord(
                        collection=collection,
                        record_id=str(record_id),
                        owner_id=str(owner_id),
                        data=dumps(plain),
                    ))
                elif existing.owner_id != str(owner_id):
                    logger.warning(
                        "Refusing to reassign %s/%s from owner %s to %s",
                        collection, record_id, existing.owner_id, owner_id,
                    )
                    skipped.append(str(record_id))
                else:
                    existing.data = dumps(plain)
                    existing.stored_at = datetime.utcnow()
                    s.add(existing)
            s.commit()
        return skipped
