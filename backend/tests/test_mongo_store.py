"""Tests for the MongoDB document store (flowengine/store/mongo.py).

The pymongo client is replaced by a small in-process fake with the same
call shapes: client[db][coll].insert_one/find, client.admin.command, close.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from types import SimpleNamespace

import pytest
from bson import Binary, Decimal128, ObjectId, Regex, Timestamp
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from flowengine.errors import StoreError
from flowengine.store import DocumentStore, ManagedDocumentStore
from flowengine.store.mongo import MongoDocumentStore, to_json_compatible


# ---------------------------------------------------------------------------
# Fake client
# ---------------------------------------------------------------------------


class FakeCollection:

    def __init__(self):
        self.docs = []
        self.error = None
        self.find_calls = []

    async def insert_one(self, document):
        if self.error:
            raise self.error
        document.setdefault("_id", ObjectId())
        self.docs.append(document)
        return SimpleNamespace(inserted_id=document["_id"])

    def find(self, filter, limit=0):
        self.find_calls.append((filter, limit))
        return self._cursor(limit)

    async def _cursor(self, limit):
        if self.error:
            raise self.error
        for doc in self.docs if limit == 0 else self.docs[:limit]:
            yield doc


class FakeDatabase:

    def __init__(self, client, name):
        self.client = client
        self.name = name

    def __getitem__(self, collection):
        return self.client.collections[(self.name, collection)]


class FakeClient:

    def __init__(self, ping_error=None):
        self.collections = defaultdict(FakeCollection)
        self.commands = []
        self.ping_error = ping_error
        self.closed = False
        self.admin = SimpleNamespace(command=self._command)

    async def _command(self, name):
        self.commands.append(name)
        if self.ping_error:
            raise self.ping_error
        return {"ok": 1.0}

    async def close(self):
        self.closed = True

    def __getitem__(self, database):
        return FakeDatabase(self, database)


def _store(client=None):
    client = client or FakeClient()
    return MongoDocumentStore("mongodb://fake:27017", client=client), client


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_connect_pings_once(self):
        store, client = _store()
        await store.connect()
        assert client.commands == ["ping"]

    @pytest.mark.asyncio
    async def test_connect_failure_is_store_error(self):
        store, _ = _store(FakeClient(ping_error=ServerSelectionTimeoutError("no servers available")))
        with pytest.raises(StoreError, match="failed to ping MongoDB: no servers available"):
            await store.connect()

    @pytest.mark.asyncio
    async def test_close(self):
        store, client = _store()
        await store.close()
        assert client.closed

    def test_conforms_to_protocols(self):
        store, _ = _store()
        assert isinstance(store, DocumentStore)
        assert isinstance(store, ManagedDocumentStore)


# ---------------------------------------------------------------------------
# insert_one
# ---------------------------------------------------------------------------


class TestInsertOne:

    @pytest.mark.asyncio
    async def test_inserted_id_is_string(self):
        store, client = _store()
        result = await store.insert_one("app", "users", {"name": "Ada"})

        stored = client.collections[("app", "users")].docs[0]
        assert isinstance(stored["_id"], ObjectId)
        assert result == {"insertedId": str(stored["_id"])}

    @pytest.mark.asyncio
    async def test_caller_document_is_not_mutated(self):
        store, _ = _store()
        document = {"name": "Ada"}
        await store.insert_one("app", "users", document)
        assert document == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_driver_error_is_store_error(self):
        store, client = _store()
        client.collections[("app", "users")].error = OperationFailure("not authorized on app")

        with pytest.raises(StoreError, match="failed to insert document: not authorized on app") as exc_info:
            await store.insert_one("app", "users", {"name": "Ada"})
        assert exc_info.value.kind == "StoreError"


# ---------------------------------------------------------------------------
# find
# ---------------------------------------------------------------------------


class TestFind:

    @pytest.mark.asyncio
    async def test_filter_and_limit_passed_through(self):
        store, client = _store()
        collection = client.collections[("app", "users")]
        collection.docs = [{"_id": f"u{i}", "n": i} for i in range(5)]

        rows = await store.find("app", "users", {"n": {"$gte": 0}}, 2)

        assert rows == [{"_id": "u0", "n": 0}, {"_id": "u1", "n": 1}]
        assert collection.find_calls == [({"n": {"$gte": 0}}, 2)]

    @pytest.mark.asyncio
    async def test_zero_limit_is_unbounded(self):
        store, client = _store()
        collection = client.collections[("app", "users")]
        collection.docs = [{"_id": f"u{i}"} for i in range(12)]

        rows = await store.find("app", "users", {}, 0)

        assert len(rows) == 12
        assert collection.find_calls == [({}, 0)]

    @pytest.mark.asyncio
    async def test_empty_result(self):
        store, _ = _store()
        assert await store.find("app", "nobody", {}, 10) == []

    @pytest.mark.asyncio
    async def test_rows_are_json_compatible(self):
        store, client = _store()
        oid = ObjectId("65a1b2c3d4e5f60718293a4b")
        client.collections[("app", "files")].docs = [
            {"_id": oid, "blob": b"\x00\x01", "at": datetime(2024, 1, 2, 3, 4, 5)},
        ]

        rows = await store.find("app", "files", {}, 10)

        assert rows == [{
            "_id": "65a1b2c3d4e5f60718293a4b",
            "blob": {"$binary": {"base64": "AAE=", "subType": "00"}},
            "at": "2024-01-02T03:04:05",
        }]

    @pytest.mark.asyncio
    async def test_driver_error_is_store_error(self):
        store, client = _store()
        client.collections[("app", "users")].error = OperationFailure("unknown operator: $foo")

        with pytest.raises(StoreError, match="failed to find documents: unknown operator"):
            await store.find("app", "users", {"a": {"$foo": 1}}, 10)

    @pytest.mark.asyncio
    async def test_unconvertible_value_is_store_error(self):
        store, client = _store()
        client.collections[("app", "odd")].docs = [{"_id": "x", "value": object()}]

        with pytest.raises(StoreError, match="failed to convert found documents"):
            await store.find("app", "odd", {}, 10)


# ---------------------------------------------------------------------------
# BSON -> JSON conversion
# ---------------------------------------------------------------------------


class TestToJsonCompatible:

    def test_object_id_and_datetime(self):
        oid = ObjectId()
        assert to_json_compatible({"_id": oid, "at": datetime(2024, 5, 6, 7, 8, 9)}) == {
            "_id": str(oid),
            "at": "2024-05-06T07:08:09",
        }

    def test_bytes(self):
        assert to_json_compatible({"blob": b"\x00\x01"}) == {
            "blob": {"$binary": {"base64": "AAE=", "subType": "00"}},
        }

    def test_binary_with_subtype(self):
        assert to_json_compatible({"blob": Binary(b"\x01", 5)}) == {
            "blob": {"$binary": {"base64": "AQ==", "subType": "05"}},
        }

    def test_decimal128(self):
        assert to_json_compatible({"price": Decimal128("1.50")}) == {"price": {"$numberDecimal": "1.50"}}

    def test_regex(self):
        assert to_json_compatible({"pattern": Regex("^a", "i")}) == {
            "pattern": {"$regularExpression": {"pattern": "^a", "options": "i"}},
        }

    def test_timestamp(self):
        assert to_json_compatible({"ts": Timestamp(1700000000, 1)}) == {
            "ts": {"$timestamp": {"t": 1700000000, "i": 1}},
        }

    def test_nested_values(self):
        oid = ObjectId()
        converted = to_json_compatible({"tags": [oid, {"raw": b"\x02"}], "n": 3, "ok": True, "none": None})
        assert converted == {
            "tags": [str(oid), {"raw": {"$binary": {"base64": "Ag==", "subType": "00"}}}],
            "n": 3,
            "ok": True,
            "none": None,
        }

    def test_unknown_type_raises(self):
        with pytest.raises(TypeError):
            to_json_compatible({"value": object()})
