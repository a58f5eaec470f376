"""
Async client for the remote document store.

The remote side is an HTTP document API organised as collections of JSON
documents, each addressed by its record key:

    GET /collections/{collection}/records?ownerField=userId&ownerId=...
        → [ {...}, ... ]   or   {"records": [ {...}, ... ]}
    PUT /collections/{collection}/records/{key}
        body: the full record

Remote writes are point writes; there is no batch endpoint.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from recordsync.sync.serialization import to_plain

logger = logging.getLogger(__name__)


class RemoteStoreError(RuntimeError):
    """Raised when the remote store answers with an error or cannot be reached."""


class HttpRemoteStore:
    """
    Thin async wrapper over the remote document API.

    Owns one httpx.AsyncClient; close it with aclose() or use the store as an
    async context manager.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        timeout: float = 30.0,
        key_field: str = "id",
        owner_field: str = "userId",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Root of the document API, e.g. "https://host/api".
            api_token: Bearer token sent with every request (omitted if empty).
            timeout: Per-request timeout in seconds.
            key_field: Record field that carries the document key.
            owner_field: Record field the server filters ownership on.
            transport: Optional httpx transport (httpx.MockTransport in tests).
        """
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self.key_field = key_field
        self.owner_field = owner_field
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpRemoteStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_by_owner(self, collection: str, owner_id: str) -> List[Dict[str, Any]]:
        """Return every document in collection whose owner field equals owner_id."""
        payload = await self._request(
            "GET",
            self._records_path(collection),
            params={"ownerField": self.owner_field, "ownerId": owner_id},
        )
        items = payload.get("records", []) if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise RemoteStoreError(
                f"{collection}: unexpected response shape {type(items).__name__}"
            )

        records = []
        for item in items:
            if not isinstance(item, dict):
                continue
            # Document ids may come back outside the body; fold them in
            if self.key_field not in item and "_id" in item:
                item = {**item, self.key_field: item["_id"]}
            records.append(item)
        return records

    async def write_one(self, collection: str, key: str, record: Mapping[str, Any]) -> None:
        """Create or overwrite the document stored under key."""
        body = to_plain(record)
        body[self.key_field] = key
        await self._request(
            "PUT",
            f"{self._records_path(collection)}/{quote(str(key), safe='')}",
            json=body,
        )

    # ─── Internal helpers ─────────────────────────────────────────────────────

    @staticmethod
    def _records_path(collection: str) -> str:
        return f"/collections/{quote(collection, safe='')}/records"

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteStoreError(
                f"{method} {path} failed with HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {path} failed: {exc}") from exc

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"{method} {path} returned invalid JSON") from exc
