"""HTTP remote store speaking to a REST document API."""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from ..errors import RemoteDeleteError, RemoteFetchError, RemoteWriteError
from ..records import CollectionName, RemoteDocument, SyncRecord
from .base import RemoteStore

logger = logging.getLogger(__name__)


class HttpRemoteStore(RemoteStore):
    """Remote store for one collection of a REST document service.

    Endpoints (relative to `base_url`):
    - GET    /collections/{name}/documents?owner_id=...
    - PUT    /collections/{name}/documents/{id}
    - DELETE /collections/{name}/documents/{id}

    No retries happen here: failures surface to the pipelines, which
    record them per item and retry on the next push cycle.
    """

    def __init__(
        self,
        collection: CollectionName,
        base_url: str,
        api_token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the HTTP remote store.

        Args:
            collection: Collection this store serves.
            base_url: Base URL of the document API.
            api_token: Optional bearer token sent with every request.
            timeout: Request timeout in seconds.
            client: Shared AsyncClient. Created lazily when omitted.
        """
        self._collection = collection
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def collection(self) -> CollectionName:
        return self._collection

    @property
    def _path(self) -> str:
        return f"/collections/{self._collection.value}/documents"

    def _document_path(self, record_id: str) -> str:
        # Ids are opaque: "/", "?", "#" and ".." must stay inside one segment
        segment = quote(record_id, safe="")
        if segment in (".", ".."):
            # Bare dot segments would be collapsed by URL normalization
            segment = segment.replace(".", "%2E")
        return f"{self._path}/{segment}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {}
            if self.api_token:
                headers["Authorization"] = f"Bearer {self.api_token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_all_for_owner(self, owner_id: str) -> list[RemoteDocument]:
        try:
            client = await self._get_client()
            response = await client.get(self._path, params={"owner_id": owner_id})
            response.raise_for_status()
            data: dict[str, Any] = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise RemoteFetchError(
                f"Failed to fetch {self._collection.value}: {e}",
                collection=self._collection.value,
            ) from e

        documents = [
            RemoteDocument(id=str(item["id"]), document=item.get("document", {}))
            for item in data.get("documents", [])
        ]
        logger.debug(
            f"Fetched {len(documents)} {self._collection.value} documents "
            f"for {owner_id}"
        )
        return documents

    async def upsert_one(self, record: SyncRecord) -> None:
        try:
            client = await self._get_client()
            response = await client.put(
                self._document_path(record.id), json=record.to_document()
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteWriteError(
                f"HTTP {e.response.status_code}: {e.response.text}",
                collection=self._collection.value,
                record_id=record.id,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteWriteError(
                f"Request failed: {e}",
                collection=self._collection.value,
                record_id=record.id,
            ) from e

    async def delete_one(self, record_id: str) -> None:
        try:
            client = await self._get_client()
            response = await client.delete(self._document_path(record_id))
            # Already gone remotely is what the tombstone asks for
            if response.status_code == 404:
                return
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteDeleteError(
                f"HTTP {e.response.status_code}: {e.response.text}",
                collection=self._collection.value,
                record_id=record_id,
            ) from e
        except httpx.HTTPError as e:
            raise RemoteDeleteError(
                f"Request failed: {e}",
                collection=self._collection.value,
                record_id=record_id,
            ) from e


class NoDeleteHttpRemoteStore(HttpRemoteStore):
    """HTTP store for singleton collections that are never deleted remotely."""

    delete_one = RemoteStore.delete_one
