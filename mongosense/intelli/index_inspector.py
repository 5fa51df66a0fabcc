"""Index inspection collaborators for the optimizer.

The optimizer never touches the driver itself; it talks to an
``IndexInspector``. ``MotorIndexInspector`` is the production implementation
over a Motor database. Tests and alternative stores can provide anything
that satisfies the protocol.

OBSERVABILITY: index creation is logged before it is requested so every
write against the database is traceable.
"""

import logging
from typing import Any, Protocol, runtime_checkable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from mongosense.exceptions import convert_to_mongosense_exception

logger = logging.getLogger(__name__)


@runtime_checkable
class IndexInspector(Protocol):
    """What the optimizer needs from the document store."""

    async def get_indexed_fields(self, collection_name: str) -> set[str]:
        """Return every field name that appears in any index key of the collection."""
        ...

    async def create_index(self, collection_name: str, field_name: str) -> str:
        """Create a single-field ascending index and return its name."""
        ...

    async def get_collection_stats(self, collection_name: str) -> dict[str, Any]:
        """Return the collection's statistics document."""
        ...


class MotorIndexInspector:
    """IndexInspector backed by a Motor database.

    Driver exceptions are converted into the MongoSense hierarchy.
    """

    def __init__(self, database: AsyncIOMotorDatabase):
        self._database = database

    @property
    def database(self) -> AsyncIOMotorDatabase:
        return self._database

    async def get_indexed_fields(self, collection_name: str) -> set[str]:
        """Collect the key fields of every index on ``collection_name``.

        A field counts as indexed when any index key contains it, compound
        indexes included.
        """
        collection = self._database[collection_name]
        try:
            indexes = await collection.list_indexes().to_list(length=None)
        except Exception as e:
            raise convert_to_mongosense_exception(
                e,
                default_message="Failed to list indexes",
                context={"collection": collection_name},
            ) from e

        indexed_fields: set[str] = set()
        for index in indexes:
            indexed_fields.update(index.get("key", {}).keys())

        logger.debug(
            f"Collection '{collection_name}' has {len(indexes)} indexes covering "
            f"{len(indexed_fields)} fields",
            extra={"collection_name": collection_name, "operation": "list_indexes"},
        )
        return indexed_fields

    async def create_index(self, collection_name: str, field_name: str) -> str:
        logger.info(
            f"Creating index {{{field_name}: 1}} on '{collection_name}'",
            extra={"collection_name": collection_name, "operation": "create_index"},
        )
        collection = self._database[collection_name]
        try:
            return await collection.create_index([(field_name, ASCENDING)])
        except Exception as e:
            raise convert_to_mongosense_exception(
                e,
                default_message="Failed to create index",
                context={"collection": collection_name, "field": field_name},
            ) from e

    async def get_collection_stats(self, collection_name: str) -> dict[str, Any]:
        try:
            return await self._database.command({"collStats": collection_name})
        except Exception as e:
            raise convert_to_mongosense_exception(
                e,
                default_message="Failed to read collection statistics",
                context={"collection": collection_name},
            ) from e
