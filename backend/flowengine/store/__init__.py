"""Document store capability: protocol and backends."""

from __future__ import annotations

from ..config import MONGO_URI, STORE_BACKEND
from .base import DocumentStore, ManagedDocumentStore
from .memory import InMemoryDocumentStore


def create_document_store(backend: str = STORE_BACKEND, uri: str = MONGO_URI) -> ManagedDocumentStore:
    """Build the configured store backend ("mongodb" or "memory")."""
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend == "mongodb":
        from .mongo import MongoDocumentStore

        return MongoDocumentStore(uri)
    raise ValueError(f"Unknown STORE_BACKEND: {backend}. Expected 'mongodb' or 'memory'")


__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "ManagedDocumentStore",
    "create_document_store",
]
