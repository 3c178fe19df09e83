"""Process-wide document store used by runs started through the API.

The store is created and pinged once in the app lifespan; a failed ping
stops startup (the only connection policy, no retries).
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException

from flowengine.config import MONGO_URI, STORE_BACKEND
from flowengine.logging_config import get_api_logger
from flowengine.store import DocumentStore, ManagedDocumentStore, create_document_store

logger = get_api_logger()

_store: Optional[ManagedDocumentStore] = None


async def init_document_store(backend: str = STORE_BACKEND, uri: str = MONGO_URI) -> ManagedDocumentStore:
    global _store
    store = create_document_store(backend, uri)
    logger.info(f"Connecting document store: backend={backend}")
    await store.connect()
    _store = store
    return store


async def close_document_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def get_document_store() -> DocumentStore:
    """FastAPI dependency returning the connected store."""
    if _store is None:
        raise HTTPException(status_code=503, detail="Document store is not initialized")
    return _store
