"""Local record routes, scoped to the signed-in owner."""
from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException

from recordsync.config import get_settings
from recordsync.db.engine import get_engine
from recordsync.local.store import LocalStore

router = APIRouter()


def get_local_store() -> LocalStore:
    settings = get_settings()
    return LocalStore(
        get_engine(),
        key_field=settings.record_key_field,
        owner_field=settings.record_owner_field,
    )


def get_current_owner() -> str:
    owner_id = get_settings().owner_id
    if not owner_id:
        raise HTTPException(status_code=401, detail="No user logged in")
    return owner_id


def _check_collection(collection: str) -> None:
    if collection not in get_settings().sync_collections:
        raise HTTPException(status_code=404, detail="Unknown collection")


@router.get("/{collection}", response_model=List[Dict[str, Any]])
async def list_records(
    collection: str,
    store: LocalStore = Depends(get_local_store),
    owner_id: str = Depends(get_current_owner),
):
    """List the owner's local records in a collection."""
    _check_collection(collection)
    return await store.fetch_by_owner(collection, owner_id)


@router.get("/{collection}/{record_id}", response_model=Dict[str, Any])
async def get_record(
    collection: str,
    record_id: str,
    store: LocalStore = Depends(get_local_store),
    owner_id: str = Depends(get_current_owner),
):
    _check_collection(collection)
    record = await store.get(collection, record_id)
    if not record or str(record.get(store.owner_field)) != owner_id:
        raise HTTPException(status_code=404, detail="Record not found")
    return record


@router.put("/{collection}/{record_id}", response_model=Dict[str, Any])
async def put_record(
    collection: str,
    record_id: str,
    body: Dict[str, Any] = Body(...),
    store: LocalStore = Depends(get_local_store),
    owner_id: str = Depends(get_current_owner),
):
    """
    Write a record locally. It reaches the remote store on the next sync.

    The key and owner are taken from the URL and the session, and
    lastModified is stamped with the current time so the write wins the
    next comparison.
    """
    _check_collection(collection)
    existing = await store.get(collection, record_id)
    if existing and str(existing.get(store.owner_field)) != owner_id:
        raise HTTPException(status_code=409, detail="Record belongs to another owner")

    record = {
        **body,
        store.key_field: record_id,
        store.owner_field: owner_id,
        "lastModified": datetime.now(timezone.utc).isoformat(),
    }
    await store.put(collection, record)
    return record
