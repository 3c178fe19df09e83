"""MongoDB data nodes: insert one document, find documents.

Both nodes resolve {{placeholders}} recursively through their document or
filter before calling the run's DocumentStore. Store failures come back
as StoreError results; no retries happen here.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from ..engine.resolver import resolve_value
from ..errors import StoreError
from ..settings import FIND_DEFAULT_LIMIT, FIND_DEFAULT_OUTPUT_KEY
from .registry import BaseNodeImpl, NodeContext, NodeResult, register_node_type

logger = logging.getLogger(__name__)

LAST_INSERTED_ID_KEY = "lastInsertedId"

_TARGET_PROPERTIES = {
    "database": {"type": "string", "minLength": 1},
    "collection": {"type": "string", "minLength": 1},
}


class _MongoNode(BaseNodeImpl):
    """Shared store access for database nodes."""

    def _require_store(self, context: NodeContext):
        if context.store is None:
            raise StoreError("no document store configured", node_id=self.node_id)
        return context.store


@register_node_type(
    node_type="mongodb_insert",
    display_name="MongoDB Insert",
    description="Inserts one document into a collection",
    category="database",
    config_schema={
        "type": "object",
        "properties": {
            **_TARGET_PROPERTIES,
            "document": {"type": "object"},
        },
        "required": ["database", "collection", "document"],
    },
    icon="database",
    color="#13AA52",
)
class MongoInsertNode(_MongoNode):
    """Inserts the resolved document; stores the new id under lastInsertedId."""

    async def execute(self, scope: Mapping[str, Any], context: NodeContext) -> NodeResult:
        warnings: List[str] = []
        document = resolve_value(self.config["document"], scope, warnings)
        database = self.config["database"]
        collection = self.config["collection"]

        try:
            store = self._require_store(context)
            result = await store.insert_one(database, collection, document)
        except StoreError as e:
            logger.error(f"MongoInsertNode {self.node_id}: {e.detail}")
            return NodeResult.failure(e.at(self.node_id), warnings)

        inserted_id = result["insertedId"]
        logger.info(f"MongoInsertNode {self.node_id}: inserted {inserted_id} into {database}.{collection}")
        return NodeResult(
            data={"insertedId": inserted_id},
            mutations={LAST_INSERTED_ID_KEY: inserted_id},
            warnings=warnings,
        )


@register_node_type(
    node_type="mongodb_find",
    display_name="MongoDB Find",
    description="Queries a collection and stores the matching documents in scope",
    category="database",
    config_schema={
        "type": "object",
        "properties": {
            **_TARGET_PROPERTIES,
            "filter": {"type": "object", "default": {}},
            "limit": {"type": "integer", "minimum": 0, "default": FIND_DEFAULT_LIMIT},
            "outputKey": {"type": "string", "minLength": 1, "default": FIND_DEFAULT_OUTPUT_KEY},
        },
        "required": ["database", "collection", "filter"],
    },
    icon="search",
    color="#00684A",
)
class MongoFindNode(_MongoNode):
    """Runs one bounded query and merges the results under outputKey.

    Also sets "<outputKey>Count". An empty result set is a success.
    """

    async def execute(self, scope: Mapping[str, Any], context: NodeContext) -> NodeResult:
        config = self.normalized_config()
        warnings: List[str] = []
        query = resolve_value(config["filter"], scope, warnings)
        limit = int(config["limit"])
        output_key = config["outputKey"]
        database = config["database"]
        collection = config["collection"]

        try:
            store = self._require_store(context)
            documents = await store.find(database, collection, query, limit)
        except StoreError as e:
            logger.error(f"MongoFindNode {self.node_id}: {e.detail}")
            return NodeResult.failure(e.at(self.node_id), warnings)

        logger.info(
            f"MongoFindNode {self.node_id}: found {len(documents)} documents in {database}.{collection}"
        )
        return NodeResult(
            data={"count": len(documents), output_key: documents},
            mutations={output_key: documents, f"{output_key}Count": len(documents)},
            warnings=warnings,
        )
