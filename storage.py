"""
Keyed JSON storage used by the repositories.

Every value is stored as one JSON document under a fixed key. Writes
replace the whole value; reads fall back to the caller's default when
the key is missing or the stored text cannot be parsed.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorDatabase

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Interface shared by all storage backends"""

    async def read(self, key: str, default: Any) -> Any:
        raise NotImplementedError

    async def write(self, key: str, value: Any) -> None:
        raise NotImplementedError


def _decode(key: str, raw: Any, default: Any) -> Any:
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("Stored value for %r is not valid JSON, using default: %s", key, e)
        return default


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are kept as JSON text so reads never share
    references with what was written."""

    def __init__(self, initial: Dict[str, str] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def read(self, key: str, default: Any) -> Any:
        return _decode(key, self._data.get(key), default)

    async def write(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)


class MongoKeyValueStore(KeyValueStore):
    """One document per key: {"key", "value" (JSON text), "updatedAt"}"""

    def __init__(self, database: AsyncIOMotorDatabase, collection: str = "kv_store"):
        self.collection = database[collection]

    async def read(self, key: str, default: Any) -> Any:
        try:
            document = await self.collection.find_one({"key": key})
        except Exception as e:
            logger.warning("Could not read %r from MongoDB, using default: %s", key, e)
            return default
        if not document:
            return default
        return _decode(key, document.get("value"), default)

    async def write(self, key: str, value: Any) -> None:
        await self.collection.update_one(
            {"key": key},
            {"$set": {"value": json.dumps(value), "updatedAt": datetime.now(timezone.utc)}},
            upsert=True
        )
