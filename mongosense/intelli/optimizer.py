"""IntelliOptimizer: pipeline reordering and index advice.

Two read-only services over a built pipeline:

1. ``optimize_pipeline`` moves ``$match`` stages first, then ``$sort``
   stages, then everything else. It is a fixed heuristic (no selectivity or
   cost analysis): filtering and sorting early usually shrinks the working
   set for later stages.
2. ``analyze_and_recommend_indexes`` / ``create_indexes`` compare the fields
   used by those stages with the collection's existing indexes through an
   ``IndexInspector``.

OBSERVABILITY: index creation requests and failures are logged per field.
"""

import logging
from collections.abc import Collection, Sequence
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mongosense.builder.stages import FILTER_KINDS, SORT_KINDS, Stage
from mongosense.exceptions import IndexCreationError, IndexInspectionError
from mongosense.intelli.index_inspector import IndexInspector, MotorIndexInspector

logger = logging.getLogger(__name__)

# Stage kinds whose payload keys are used for index analysis
INDEX_CANDIDATE_KINDS = FILTER_KINDS | SORT_KINDS


class IntelliOptimizer:
    """Reorders pipelines and recommends or creates indexes.

    Holds no state between calls besides the inspector it delegates to.

    Args:
        inspector: Collaborator that reads and creates indexes

    Example:
        >>> optimizer = IntelliOptimizer.from_database(database.get_database())
        >>> missing = await optimizer.analyze_and_recommend_indexes("users", ["isActive"])
    """

    def __init__(self, inspector: IndexInspector):
        self._inspector = inspector

    @classmethod
    def from_database(cls, database: AsyncIOMotorDatabase) -> "IntelliOptimizer":
        return cls(MotorIndexInspector(database))

    @classmethod
    def from_client(
        cls, client: AsyncIOMotorClient, database_name: str | None = None
    ) -> "IntelliOptimizer":
        """Build an optimizer over ``database_name``, or the URI's default database."""
        if database_name is None:
            database = client.get_default_database()
        else:
            database = client[database_name]
        return cls.from_database(database)

    @property
    def inspector(self) -> IndexInspector:
        return self._inspector

    # ------------------------------------------------------------------
    # Pipeline reordering
    # ------------------------------------------------------------------

    def optimize_pipeline(self, pipeline: Sequence[Stage]) -> list[Stage]:
        """Stable partition into ``$match`` ++ ``$sort`` ++ other stages.

        The result is a permutation of the input; relative order inside each
        group is preserved, so applying it twice changes nothing.

        Example:
            >>> [s.kind for s in optimizer.optimize_pipeline(stages)]
            ['match', 'match', 'sort', 'limit']
        """
        match_stages = [stage for stage in pipeline if stage.kind in FILTER_KINDS]
        sort_stages = [stage for stage in pipeline if stage.kind in SORT_KINDS]
        other_stages = [stage for stage in pipeline if stage.kind not in INDEX_CANDIDATE_KINDS]

        return match_stages + sort_stages + other_stages

    def extract_fields(
        self,
        pipeline: Sequence[Stage],
        kinds: Collection[str] = INDEX_CANDIDATE_KINDS,
    ) -> list[str]:
        """Top-level payload keys of every stage whose kind is in ``kinds``.

        Keys are returned in stage order and duplicates are kept.
        """
        fields: list[str] = []
        for stage in pipeline:
            if stage.kind not in kinds:
                continue
            payload = stage.payload()
            if isinstance(payload, dict):
                fields.extend(payload.keys())
        return fields

    # ------------------------------------------------------------------
    # Index advice
    # ------------------------------------------------------------------

    async def analyze_and_recommend_indexes(
        self, collection_name: str, query_fields: Sequence[str]
    ) -> list[str]:
        """Return the fields in ``query_fields`` that no index covers yet.

        Order follows ``query_fields`` and duplicates are kept.

        Raises:
            IndexInspectionError: If existing indexes cannot be read
        """
        try:
            indexed_fields = await self._inspector.get_indexed_fields(collection_name)
        except Exception as e:
            raise IndexInspectionError(
                message=f"Failed to inspect indexes on '{collection_name}'",
                details={"collection": collection_name, "error": str(e)},
                original_exception=e,
            ) from e

        recommendations = [field for field in query_fields if field not in indexed_fields]

        logger.info(
            f"Index analysis for '{collection_name}': "
            f"{len(recommendations)} of {len(query_fields)} fields lack an index",
            extra={
                "collection_name": collection_name,
                "operation": "analyze_indexes",
                "field_count": len(query_fields),
            },
        )
        return recommendations

    async def create_indexes(self, collection_name: str, fields: Sequence[str]) -> list[str]:
        """Create one ascending single-field index per field.

        Every field is attempted even when an earlier one fails.

        Returns:
            Names of the created indexes, in field order

        Raises:
            IndexCreationError: After all fields were attempted, if any failed.
                ``details["created"]`` holds the indexes that did get created.
        """
        created: list[str] = []
        failed: dict[str, str] = {}

        for field in fields:
            try:
                index_name = await self._inspector.create_index(collection_name, field)
            except Exception as e:
                logger.error(
                    f"Failed to create index on '{collection_name}.{field}': {e}",
                    extra={"collection_name": collection_name, "operation": "create_index"},
                )
                failed[field] = str(e)
                continue
            created.append(index_name)

        if failed:
            raise IndexCreationError(
                message=f"Failed to create {len(failed)} of {len(fields)} indexes",
                details={"collection": collection_name, "created": created, "failed": failed},
            )

        logger.info(
            f"✓ Created {len(created)} indexes on '{collection_name}'",
            extra={
                "collection_name": collection_name,
                "operation": "create_indexes",
                "field_count": len(fields),
            },
        )
        return created

    async def collection_stats(self, collection_name: str) -> dict[str, Any]:
        """Statistics document for ``collection_name`` (``collStats``).

        Raises:
            IndexInspectionError: If statistics cannot be read
        """
        try:
            return await self._inspector.get_collection_stats(collection_name)
        except Exception as e:
            raise IndexInspectionError(
                message=f"Failed to read statistics for '{collection_name}'",
                details={"collection": collection_name, "error": str(e)},
                original_exception=e,
            ) from e
