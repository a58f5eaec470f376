"""
CollectionSynchronizer — reconciles one collection for one owner.

Flow for a single collection:
  1. Fetch the owner's records from both sides concurrently
  2. Index each side by record key (records of other owners are dropped)
  3. Walk the union of keys and ask reconcile() what to do with each
  4. Write every PULL in one bulk upsert to the local store
  5. Write every PUSH as an individual point write to the remote store

A fetch failure on either side raises CollectionFetchError and ends the
pass for this collection. A failed bulk upsert is recorded on the result
and the push phase still runs. Pulled records the local store refuses
(the key already belongs to another owner) are reported as rejected_keys
and are not counted as pulled. A failed point write only marks its key as
failed; the remaining pushes continue.

Idempotency: both sides converge after one pass, so a second pass with no
intervening writes pulls and pushes nothing.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from recordsync.sync.reconciler import CLOCK_SKEW_TOLERANCE_MS, SyncAction, reconcile
from recordsync.sync.serialization import to_plain

logger = logging.getLogger(__name__)


class CollectionFetchError(RuntimeError):
    """Raised when one side of a collection could not be read."""

    def __init__(self, collection: str, side: str, cause: BaseException):
        self.collection = collection
        self.side = side
        reason = str(cause) or type(cause).__name__
        super().__init__(f"Failed to fetch {side} {collection}: {reason}")


@dataclass
class CollectionResult:
    """Outcome of one reconciliation pass over a collection."""

    collection: str
    pulled: int = 0
    pushed: int = 0
    failed_keys: List[str] = field(default_factory=list)
    rejected_keys: List[str] = field(default_factory=list)
    pull_error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.pull_error is None and not self.failed_keys and not self.rejected_keys


class CollectionSynchronizer:
    """Runs reconciliation passes between a local and a remote store."""

    def __init__(
        self,
        local,
        remote,
        *,
        timeout: float = 30.0,
        push_concurrency: int = 4,
        key_field: str = "id",
        owner_field: str = "userId",
        tolerance_ms: float = CLOCK_SKEW_TOLERANCE_MS,
    ):
        """
        Args:
            local: LocalStore instance (or AsyncMock in tests).
            remote: HttpRemoteStore instance (or AsyncMock in tests).
            timeout: Seconds allowed for each fetch, bulk upsert and point write.
            push_concurrency: Maximum point writes in flight at once.
            key_field: Record field holding the record key.
            owner_field: Record field holding the owner identifier.
            tolerance_ms: Clock skew window passed to reconcile().
        """
        self.local = local
        self.remote = remote
        self.timeout = timeout
        self.push_concurrency = max(1, push_concurrency)
        self.key_field = key_field
        self.owner_field = owner_field
        self.tolerance_ms = tolerance_ms

    async def sync_collection(self, collection: str, owner_id: str) -> CollectionResult:
        """
        Reconcile every record owner_id holds in collection on either side.

        Returns:
            CollectionResult with pulled/pushed counts and any failures.

        Raises:
            CollectionFetchError: if either side could not be read.
        """
        remote_items, local_items = await self._fetch_both(collection, owner_id)
        remote_map = self._index(collection, "remote", remote_items, owner_id)
        local_map = self._index(collection, "local", local_items, owner_id)

        to_pull: List[Dict[str, Any]] = []
        to_push: List[Tuple[str, Mapping[str, Any]]] = []
        for key in sorted(remote_map.keys() | local_map.keys()):
            action = reconcile(local_map.get(key), remote_map.get(key), self.tolerance_ms)
            if action is SyncAction.PULL:
                to_pull.append(to_plain(remote_map[key]))
            elif action is SyncAction.PUSH:
                to_push.append((key, local_map[key]))

        result = CollectionResult(collection=collection)

        if to_pull:
            try:
                skipped = await asyncio.wait_for(
                    self.local.bulk_upsert(collection, to_pull), self.timeout
                )
                # keys held locally under another owner are never written
                result.rejected_keys = sorted(str(key) for key in skipped or ())
                result.pulled = len(to_pull) - len(result.rejected_keys)
            except Exception as exc:
                result.pull_error = str(exc) or type(exc).__name__
                logger.warning(
                    "Bulk upsert of %d %s record(s) failed: %s",
                    len(to_pull), collection, result.pull_error,
                )

        if to_push:
            await self._push_all(collection, to_push, result)

        return result

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _fetch_both(self, collection: str, owner_id: str):
        """Read both sides concurrently; raise the first failure, remote first."""
        remote_items, local_items = await asyncio.gather(
            self._fetch(self.remote, collection, owner_id),
            self._fetch(self.local, collection, owner_id),
            return_exceptions=True,
        )
        for side, outcome in (("remote", remote_items), ("local", local_items)):
            if isinstance(outcome, BaseException):
                raise CollectionFetchError(collection, side, outcome) from outcome
        return remote_items, local_items

    async def _fetch(self, store, collection: str, owner_id: str) -> List[Dict[str, Any]]:
        return await asyncio.wait_for(
            store.fetch_by_owner(collection, owner_id), self.timeout
        )

    def _index(
        self,
        collection: str,
        side: str,
        items: List[Mapping[str, Any]],
        owner_id: str,
    ) -> Dict[str, Mapping[str, Any]]:
        """Map record key → record, keeping only keyed records of owner_id."""
        records: Dict[str, Mapping[str, Any]] = {}
        for item in items:
            key = item.get(self.key_field)
            if key is None:
                logger.warning("Skipping %s %s record without %r", side, collection, self.key_field)
                continue
            owner = item.get(self.owner_field)
            if owner is None or str(owner) != owner_id:
                logger.warning(
                    "Skipping %s %s/%s: owned by %r, not %r",
                    side, collection, key, owner, owner_id,
                )
                continue
            records[str(key)] = item
        return records

    async def _push_all(
        self,
        collection: str,
        to_push: List[Tuple[str, Mapping[str, Any]]],
        result: CollectionResult,
    ) -> None:
        semaphore = asyncio.Semaphore(self.push_concurrency)

        async def push_one(key: str, record: Mapping[str, Any]) -> bool:
            async with semaphore:
                try:
                    await asyncio.wait_for(
                        self.remote.write_one(collection, key, record), self.timeout
                    )
                except Exception as exc:
                    logger.debug("Push of %s/%s failed: %s", collection, key, exc)
                    return False
                return True

        outcomes = await asyncio.gather(*(push_one(key, rec) for key, rec in to_push))
        for (key, _), succeeded in zip(to_push, outcomes):
            if succeeded:
                result.pushed += 1
            else:
                result.failed_keys.append(key)
