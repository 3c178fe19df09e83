"""MongoDB document store backed by pymongo's asyncio client.

Connection policy: one ping at startup bounded by the server selection
timeout; failure is reported to the caller and never retried here.
Individual operations are not retried either.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId, json_util
from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from ..errors import StoreError
from ..settings import MONGO_SERVER_SELECTION_TIMEOUT_MS

logger = logging.getLogger(__name__)


class MongoDocumentStore:
    """DocumentStore implementation over a shared AsyncMongoClient.

    The client owns its connection pool; concurrent runs share it.
    """

    def __init__(
        self,
        uri: str,
        server_selection_timeout_ms: int = MONGO_SERVER_SELECTION_TIMEOUT_MS,
        client: Optional[AsyncMongoClient] = None,
    ):
        self.uri = uri
        self._client = client or AsyncMongoClient(
            uri, serverSelectionTimeoutMS=server_selection_timeout_ms,
        )

    async def connect(self) -> None:
        """Verify the server is reachable.

        Raises:
            StoreError: If the ping fails
        """
        try:
            await self._client.admin.command("ping")
        except PyMongoError as e:
            raise StoreError(f"failed to ping MongoDB: {e}") from e
        logger.info("Successfully connected to MongoDB")

    async def close(self) -> None:
        await self._client.close()

    async def insert_one(
        self, database: str, collection: str, document: Dict[str, Any]
    ) -> Dict[str, Any]:
        # insert_one adds _id to the dict it is given
        payload = dict(document)
        try:
            result = await self._client[database][collection].insert_one(payload)
        except PyMongoError as e:
            raise StoreError(f"failed to insert document: {e}") from e

        inserted_id = str(result.inserted_id)
        logger.info(f"Inserted document with ID: {inserted_id}")
        return {"insertedId": inserted_id}

    async def find(
        self,
        database: str,
        collection: str,
        filter: Dict[str, Any],
        limit: int,
    ) -> List[Dict[str, Any]]:
        logger.info(f"Finding documents in {database}.{collection} with query: {filter}")
        try:
            cursor = self._client[database][collection].find(filter, limit=limit)
            results = [to_json_compatible(doc) async for doc in cursor]
        except PyMongoError as e:
            raise StoreError(f"failed to find documents: {e}") from e
        except (TypeError, ValueError) as e:
            raise StoreError(f"failed to convert found documents: {e}") from e

        logger.info(f"Found {len(results)} documents in {database}.{collection}")
        return results


def _bson_default(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    # Binary/bytes, Decimal128, Regex, Timestamp, ... as relaxed Extended JSON
    return json_util.default(value, json_options=json_util.RELAXED_JSON_OPTIONS)


def to_json_compatible(document: Any) -> Any:
    """Convert a BSON document into plain JSON values.

    ObjectIds become their hex string and datetimes ISO 8601 strings; every
    other BSON-specific type is rendered by bson.json_util in relaxed
    Extended JSON (e.g. {"$binary": {...}}, {"$numberDecimal": "1.5"}).

    Raises:
        TypeError: A value bson.json_util cannot represent
    """
    return json.loads(json.dumps(document, default=_bson_default))
