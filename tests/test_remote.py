"""Tests for remote stores and the collection registry."""

import json

import httpx
import pytest

from orcasync.errors import RemoteDeleteError, RemoteFetchError, RemoteWriteError
from orcasync.records import CollectionName, SyncRecord
from orcasync.remote import (
    HttpRemoteStore,
    InMemoryRemoteStore,
    NoDeleteHttpRemoteStore,
    RemoteStore,
)
from orcasync.sync import build_registry
from orcasync.sync.registry import capabilities_for


BASE_URL = "http://remote.test"


def make_record(record_id="c1", collection=CollectionName.CLIENTS, **payload):
    return SyncRecord(
        collection=collection,
        id=record_id,
        owner_id="user-1",
        payload=payload,
    )


def http_store(handler, collection=CollectionName.CLIENTS, cls=HttpRemoteStore):
    """Build an HTTP store whose requests are answered by `handler`."""
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler),
        base_url=BASE_URL,
    )
    return cls(collection=collection, base_url=BASE_URL, client=client)


class TestInMemoryRemoteStore:
    """Tests for the dictionary-backed remote."""

    @pytest.mark.asyncio
    async def test_fetch_filters_by_owner(self):
        """Test that only the owner's documents are returned."""
        remote = InMemoryRemoteStore(
            CollectionName.ITEMS,
            documents={
                "b": {"id": "b", "owner_id": "user-1"},
                "a": {"id": "a", "owner_id": "user-1"},
                "x": {"id": "x", "owner_id": "user-2"},
            },
        )

        docs = await remote.fetch_all_for_owner("user-1")

        assert [d.id for d in docs] == ["a", "b"]
        assert remote.calls == [("fetch", "user-1")]

    @pytest.mark.asyncio
    async def test_fetch_returns_copies(self):
        """Test that callers can't mutate the remote through results."""
        remote = InMemoryRemoteStore(
            CollectionName.ITEMS,
            documents={"a": {"id": "a", "owner_id": "user-1", "tags": []}},
        )

        docs = await remote.fetch_all_for_owner("user-1")
        docs[0].document["tags"].append("changed")

        assert remote.documents["a"]["tags"] == []

    @pytest.mark.asyncio
    async def test_upsert_stores_document(self):
        """Test that upserts store the payload with identity fields."""
        remote = InMemoryRemoteStore(CollectionName.CLIENTS)

        await remote.upsert_one(make_record(name="Alice"))

        assert remote.documents["c1"] == {"name": "Alice", "id": "c1", "owner_id": "user-1"}

    @pytest.mark.asyncio
    async def test_injected_failures(self):
        """Test the failure switches."""
        remote = InMemoryRemoteStore(CollectionName.CLIENTS)
        remote.fail_upsert_ids.add("c1")
        remote.fail_delete_ids.add("c1")
        remote.fail_fetch = True

        with pytest.raises(RemoteWriteError):
            await remote.upsert_one(make_record())
        with pytest.raises(RemoteDeleteError):
            await remote.delete_one("c1")
        with pytest.raises(RemoteFetchError):
            await remote.fetch_all_for_owner("user-1")

    @pytest.mark.asyncio
    async def test_without_delete(self):
        """Test a store configured without remote deletion."""
        remote = InMemoryRemoteStore(CollectionName.ORGANIZATION, allow_delete=False)

        assert not remote.supports_delete
        with pytest.raises(NotImplementedError):
            await remote.delete_one("org")


class TestHttpRemoteStore:
    """Tests for the REST remote store."""

    @pytest.mark.asyncio
    async def test_fetch(self):
        """Test fetching an owner's snapshot."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200,
                json={"documents": [{"id": "c1", "document": {"name": "Alice"}}]},
            )

        store = http_store(handler)
        docs = await store.fetch_all_for_owner("user-1")

        assert [(d.id, d.document) for d in docs] == [("c1", {"name": "Alice"})]
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/collections/clients/documents"
        assert seen[0].url.params["owner_id"] == "user-1"

    @pytest.mark.asyncio
    async def test_fetch_http_error(self):
        """Test that failed fetches raise RemoteFetchError."""
        store = http_store(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(RemoteFetchError) as exc_info:
            await store.fetch_all_for_owner("user-1")

        assert exc_info.value.collection == "clients"

    @pytest.mark.asyncio
    async def test_fetch_invalid_json(self):
        """Test that a malformed body raises RemoteFetchError."""
        store = http_store(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(RemoteFetchError):
            await store.fetch_all_for_owner("user-1")

    @pytest.mark.asyncio
    async def test_fetch_transport_error(self):
        """Test that network failures raise RemoteFetchError."""
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        store = http_store(handler)

        with pytest.raises(RemoteFetchError):
            await store.fetch_all_for_owner("user-1")

    @pytest.mark.asyncio
    async def test_upsert(self):
        """Test that upserts PUT the document body."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        store = http_store(handler, collection=CollectionName.ITEMS)
        await store.upsert_one(make_record("i1", CollectionName.ITEMS, price=5))

        assert seen[0].method == "PUT"
        assert seen[0].url.path == "/collections/items/documents/i1"
        assert json.loads(seen[0].content) == {
            "price": 5,
            "id": "i1",
            "owner_id": "user-1",
        }

    @pytest.mark.asyncio
    async def test_upsert_rejected(self):
        """Test that a rejected write raises RemoteWriteError."""
        store = http_store(lambda request: httpx.Response(403, text="forbidden"))

        with pytest.raises(RemoteWriteError) as exc_info:
            await store.upsert_one(make_record())

        assert "HTTP 403" in str(exc_info.value)
        assert exc_info.value.record_id == "c1"

    @pytest.mark.asyncio
    async def test_delete(self):
        """Test that deletes hit the document URL."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        store = http_store(handler)
        await store.delete_one("c1")

        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/collections/clients/documents/c1"

    @pytest.mark.asyncio
    async def test_delete_encodes_id(self):
        """Test that query and fragment characters stay in the id segment."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        store = http_store(handler)
        await store.delete_one("c1?x=1")
        await store.delete_one("c1#frag")

        assert seen[0].url.raw_path == b"/collections/clients/documents/c1%3Fx%3D1"
        assert seen[0].url.params.get("x") is None
        assert seen[1].url.raw_path == b"/collections/clients/documents/c1%23frag"

    @pytest.mark.asyncio
    async def test_upsert_encodes_id(self):
        """Test that slashes and dot segments can't escape the collection."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={})

        store = http_store(handler)
        await store.upsert_one(make_record("../items/i9"))

        assert seen[0].url.raw_path == b"/collections/clients/documents/..%2Fitems%2Fi9"
        assert json.loads(seen[0].content)["id"] == "../items/i9"

    @pytest.mark.asyncio
    async def test_dot_ids_stay_in_collection(self):
        """Test that ids made only of dots aren't collapsed as path segments."""
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        store = http_store(handler)
        await store.delete_one("..")
        await store.delete_one(".")

        assert seen[0].url.raw_path == b"/collections/clients/documents/%2E%2E"
        assert seen[1].url.raw_path == b"/collections/clients/documents/%2E"

    @pytest.mark.asyncio
    async def test_delete_missing_is_success(self):
        """Test that deleting an already-deleted document succeeds."""
        store = http_store(lambda request: httpx.Response(404))

        await store.delete_one("c1")

    @pytest.mark.asyncio
    async def test_delete_failure(self):
        """Test that a failed delete raises RemoteDeleteError."""
        store = http_store(lambda request: httpx.Response(500, text="oops"))

        with pytest.raises(RemoteDeleteError):
            await store.delete_one("c1")

    def test_supports_delete(self):
        """Test delete capability detection."""
        store = HttpRemoteStore(CollectionName.CLIENTS, BASE_URL)
        org = NoDeleteHttpRemoteStore(CollectionName.ORGANIZATION, BASE_URL)

        assert store.supports_delete
        assert not org.supports_delete

    @pytest.mark.asyncio
    async def test_no_delete_store_raises(self):
        """Test that singleton stores refuse deletes."""
        store = http_store(
            lambda request: httpx.Response(204),
            collection=CollectionName.ORGANIZATION,
            cls=NoDeleteHttpRemoteStore,
        )

        with pytest.raises(NotImplementedError):
            await store.delete_one("org")

    @pytest.mark.asyncio
    async def test_lazy_client_sends_token(self):
        """Test that an owned client carries the bearer token."""
        store = HttpRemoteStore(CollectionName.CLIENTS, BASE_URL + "/", api_token="secret")

        client = await store._get_client()

        assert client.headers["Authorization"] == "Bearer secret"
        assert str(client.base_url).rstrip("/") == BASE_URL

        await store.close()
        assert store._client is None


class TestRegistry:
    """Tests for the collection capability registry."""

    def test_build_from_list(self):
        """Test that every collection gets capabilities."""
        remotes = [InMemoryRemoteStore(c) for c in CollectionName]

        registry = build_registry(remotes)

        assert set(registry) == set(CollectionName)
        for name, caps in registry.items():
            assert caps.collection == name
            assert caps.delete is not None

    def test_missing_collection(self):
        """Test that an incomplete registry is rejected."""
        remotes = [InMemoryRemoteStore(CollectionName.CLIENTS)]

        with pytest.raises(ValueError, match="organization"):
            build_registry(remotes)

    def test_mismatched_mapping(self):
        """Test that a store registered under the wrong name is rejected."""
        remotes = {c: InMemoryRemoteStore(c) for c in CollectionName}
        remotes[CollectionName.ITEMS] = InMemoryRemoteStore(CollectionName.CLIENTS)

        with pytest.raises(ValueError):
            build_registry(remotes)

    def test_delete_capability_absent(self):
        """Test that stores without deletes have no delete capability."""
        caps = capabilities_for(
            InMemoryRemoteStore(CollectionName.ORGANIZATION, allow_delete=False)
        )

        assert caps.delete is None

    def test_abstract_store_requires_methods(self):
        """Test that RemoteStore can't be instantiated directly."""
        with pytest.raises(TypeError):
            RemoteStore()
