"""Per-record last-write-wins decision."""
from enum import Enum
from typing import Any, Mapping, Optional

from recordsync.sync.timestamps import extract_timestamp

# Two timestamps closer than this are treated as the same write.
CLOCK_SKEW_TOLERANCE_MS = 1000


class SyncAction(str, Enum):
    PULL = "pull"  # copy remote → local
    PUSH = "push"  # copy local → remote
    IN_SYNC = "in_sync"
    SKIP = "skip"  # neither side holds the key


def reconcile(
    local: Optional[Mapping[str, Any]],
    remote: Optional[Mapping[str, Any]],
    tolerance_ms: float = CLOCK_SKEW_TOLERANCE_MS,
) -> SyncAction:
    """
    Decide what to do with one record given both versions.

    A missing side always receives the present one. When both sides exist,
    the strictly newer one wins only if it leads by more than tolerance_ms;
    anything inside the window is left alone so two clients syncing at the
    same moment with slightly different clocks do not overwrite each other
    back and forth.

    Records without any recognizable timestamp compare as 0, so two such
    versions are always IN_SYNC even if their contents differ.
    """
    if remote is None and local is None:
        return SyncAction.SKIP
    if local is None:
        return SyncAction.PULL
    if remote is None:
        return SyncAction.PUSH

    remote_time = extract_timestamp(remote)
    local_time = extract_timestamp(local)

    if remote_time > local_time + tolerance_ms:
        return SyncAction.PULL
    if local_time > remote_time + tolerance_ms:
        return SyncAction.PUSH
    return SyncAction.IN_SYNC
