"""Document store capability consumed by the MongoDB node executors.

The engine only depends on this protocol. Connection pooling and any
retry policy belong to the concrete backend, never to the walker.
"""

from __future__ import annotations

from typing import Any, Dict, List, Protocol, runtime_checkable


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document stores usable by workflow runs.

    Implementations must tolerate concurrent calls from independent runs
    and must return JSON-compatible values (ids as strings).
    """

    async def insert_one(
        self, database: str, collection: str, document: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Insert one document.

        Returns:
            {"insertedId": <str>}

        Raises:
            StoreError: On any backend failure
        """
        ...

    async def find(
        self,
        database: str,
        collection: str,
        filter: Dict[str, Any],
        limit: int,
    ) -> List[Dict[str, Any]]:
        """Query documents matching filter, at most limit (0 = unbounded).

        Raises:
            StoreError: On any backend failure
        """
        ...


@runtime_checkable
class ManagedDocumentStore(DocumentStore, Protocol):
    """A DocumentStore with an explicit lifecycle, owned by the service."""

    async def connect(self) -> None:
        """Check reachability once; raises StoreError on failure."""
        ...

    async def close(self) -> None:
        ...
