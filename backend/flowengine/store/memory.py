"""In-memory document store.

Used by the test suite and by STORE_BACKEND=memory for running the API
without a MongoDB server. Supports a small subset of MongoDB filter
semantics: field equality (dotted paths allowed) and the comparison
operators $eq, $ne, $gt, $gte, $lt, $lte, $in, $nin.
"""

from __future__ import annotations

import copy
import logging
import operator
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, List, Tuple

from ..errors import StoreError

logger = logging.getLogger(__name__)

_MISSING = object()

_COMPARISONS: Dict[str, Callable[[Any, Any], bool]] = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}


class InMemoryDocumentStore:
    """Dict-of-lists document store keyed by (database, collection)."""

    def __init__(self):
        self._collections: Dict[Tuple[str, str], List[Dict[str, Any]]] = defaultdict(list)

    async def connect(self) -> None:
        logger.info("Using in-memory document store")

    async def close(self) -> None:
        self._collections.clear()

    async def insert_one(
        self, database: str, collection: str, document: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not isinstance(document, dict):
            raise StoreError("document must be an object")

        stored = copy.deepcopy(document)
        inserted_id = stored.setdefault("_id", uuid.uuid4().hex[:24])
        self._collections[(database, collection)].append(stored)
        logger.debug(f"Inserted {inserted_id} into {database}.{collection}")
        return {"insertedId": str(inserted_id)}

    async def find(
        self,
        database: str,
        collection: str,
        filter: Dict[str, Any],
        limit: int,
    ) -> List[Dict[str, Any]]:
        if limit < 0:
            raise StoreError(f"limit must be non-negative, got {limit}")

        results = []
        for doc in self._collections.get((database, collection), []):
            try:
                matched = _matches(doc, filter or {})
            except TypeError as e:
                raise StoreError(f"invalid filter: {e}") from e
            if matched:
                results.append(copy.deepcopy(doc))
                if limit and len(results) >= limit:
                    break
        return results

    def documents(self, database: str, collection: str) -> List[Dict[str, Any]]:
        """Return a copy of every document in a collection."""
        return copy.deepcopy(self._collections.get((database, collection), []))


def _lookup(doc: Dict[str, Any], path: str) -> Any:
    current: Any = doc
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _matches(doc: Dict[str, Any], filter: Dict[str, Any]) -> bool:
    for path, expected in filter.items():
        actual = _lookup(doc, path)
        if isinstance(expected, dict) and expected and all(k.startswith("$") for k in expected):
            if not all(_apply_operator(op, actual, arg) for op, arg in expected.items()):
                return False
        elif actual is _MISSING or actual != expected:
            return False
    return True


def _apply_operator(op: str, actual: Any, arg: Any) -> bool:
    if op == "$eq":
        return actual is not _MISSING and actual == arg
    if op == "$ne":
        return actual is _MISSING or actual != arg
    if op == "$in":
        return actual is not _MISSING and actual in arg
    if op == "$nin":
        return actual is _MISSING or actual not in arg
    compare = _COMPARISONS.get(op)
    if compare is None:
        raise TypeError(f"unsupported operator {op}")
    if actual is _MISSING:
        return False
    return compare(actual, arg)
