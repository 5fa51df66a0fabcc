"""Fluent builder for MongoDB aggregation pipelines.

OBSERVABILITY: every appended stage is logged at DEBUG level through the
module logger. Separately, a builder created with ``debug=True`` keeps its
own Debug Log, a list of human-readable entries the caller reads back with
``view_logs()``.

Every stage method skips silently when its designated argument is ``None``,
which lets callers chain optional filters without branching:

    >>> query = (
    ...     MongoSense()
    ...     .collection("users")
    ...     .match({"isActive": True} if only_active else None)
    ...     .sort({"age": 1})
    ...     .limit(page_size)
    ...     .build()
    ... )

Only ``None`` means absent. Falsy values such as ``0``, ``""`` or ``{}`` are
present and do append a stage.
"""

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, Field

from mongosense.builder.stages import (
    AddFieldsStage,
    BucketAutoStage,
    BucketStage,
    CountStage,
    FacetStage,
    GroupStage,
    LimitStage,
    LookupStage,
    MatchStage,
    MergeStage,
    OutStage,
    ProjectStage,
    RedactStage,
    ReplaceRootStage,
    SampleStage,
    SkipStage,
    SortStage,
    Stage,
    UnwindStage,
)
from mongosense.config.settings import settings
from mongosense.exceptions import IndexCreationError, MongoSenseError
from mongosense.intelli.optimizer import IntelliOptimizer

logger = logging.getLogger(__name__)


class AggregationQuery(BaseModel):
    """Snapshot produced by ``build()``.

    Holds deep copies, so it never changes when the builder keeps going and
    mutating it never reaches back into the builder.
    """

    pipeline: list[dict[str, Any]] = Field(default_factory=list)
    collections: list[str] = Field(default_factory=list)


class MongoSenseQueryBuilder:
    """Accumulates aggregation stages and target collection names.

    A builder is meant for a single owner building one logical query; it is
    never reset. Every method returns the builder itself for chaining.

    Args:
        debug: Record a Debug Log entry per appended stage. Defaults to
            ``settings.debug_mode``.
        optimizer: Optional IntelliOptimizer used by ``optimize()`` and
            ``create_indexes()``. Without one, both are no-ops.
    """

    def __init__(self, debug: bool | None = None, optimizer: IntelliOptimizer | None = None):
        self._pipeline: list[Stage] = []
        self._collection_names: list[str] = []
        self._logs: list[str] = []
        self._debug = settings.debug_mode if debug is None else debug
        self._optimizer = optimizer

        self.index_recommendations: dict[str, list[str]] = {}
        self.created_indexes: dict[str, list[str]] = {}
        # operation ("analyze_indexes" or "create_indexes") -> collection -> error
        self.index_failures: dict[str, dict[str, MongoSenseError]] = {}

    @property
    def debug(self) -> bool:
        return self._debug

    @property
    def stages(self) -> tuple[Stage, ...]:
        """Current stages, in pipeline order."""
        return tuple(self._pipeline)

    @property
    def collection_names(self) -> list[str]:
        return list(self._collection_names)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _log(self, message: str) -> None:
        if self._debug:
            self._logs.append(message)

    def _append(self, stage: Stage) -> "MongoSenseQueryBuilder":
        self._pipeline.append(stage)
        logger.debug(
            f"Appended {stage.operator} stage at position {len(self._pipeline) - 1}",
            extra={"stage_kind": stage.kind, "operation": "append_stage"},
        )
        self._log(stage.describe())
        return self

    # ------------------------------------------------------------------
    # Collection selection
    # ------------------------------------------------------------------

    def collection(self, *collections: str) -> "MongoSenseQueryBuilder":
        """Select one or more collections the pipeline targets.

        Names are appended in call order and never de-duplicated.

        Example:
            >>> builder = MongoSense().collection("users", "orders")
        """
        self._collection_names.extend(collections)
        if collections:
            self._log(f"Selected collections: {', '.join(collections)}")
        return self

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def match(self, criteria: dict[str, Any] | None) -> "MongoSenseQueryBuilder":
        """Add a ``$match`` stage filtering documents by ``criteria``.

        Example:
            >>> MongoSense().match({"isActive": True}).build()
        """
        if criteria is None:
            return self
        return self._append(MatchStage(criteria=criteria))

    def sort(self, sort_criteria: dict[str, int] | None) -> "MongoSenseQueryBuilder":
        """Add a ``$sort`` stage; ``{"age": 1}`` ascending, ``{"age": -1}`` descending."""
        if sort_criteria is None:
            return self
        return self._append(SortStage(sort_criteria=sort_criteria))

    def limit(self, limit: int | None) -> "MongoSenseQueryBuilder":
        """Add a ``$limit`` stage capping the number of documents returned."""
        if limit is None:
            return self
        return self._append(LimitStage(limit=limit))

    def skip(self, skip: int | None) -> "MongoSenseQueryBuilder":
        """Add a ``$skip`` stage, typically for pagination."""
        if skip is None:
            return self
        return self._append(SkipStage(skip=skip))

    def lookup(
        self,
        from_collection: str | None,
        local_field: str,
        foreign_field: str,
        as_field: str,
    ) -> "MongoSenseQueryBuilder":
        """Add a ``$lookup`` stage joining ``from_collection``.

        Only ``from_collection`` decides whether the stage is added; the other
        three arguments are required strings.

        Example:
            >>> MongoSense().lookup("orders", "_id", "userId", "userOrders")
        """
        if from_collection is None:
            return self
        return self._append(
            LookupStage(
                from_collection=from_collection,
                local_field=local_field,
                foreign_field=foreign_field,
                as_field=as_field,
            )
        )

    def group(
        self, group_by: Any | None, accumulations: dict[str, Any] | None
    ) -> "MongoSenseQueryBuilder":
        """Add a ``$group`` stage. Both the group key and the accumulators are required.

        Example:
            >>> MongoSense().group({"category": "$category"}, {"totalSales": {"$sum": "$amount"}})
        """
        if group_by is None or accumulations is None:
            return self
        return self._append(GroupStage(group_by=group_by, accumulations=accumulations))

    def add_fields(self, fields: dict[str, Any] | None) -> "MongoSenseQueryBuilder":
        if fields is None:
            return self
        return self._append(AddFieldsStage(fields=fields))

    def bucket(self, bucket_spec: dict[str, Any] | None) -> "MongoSenseQueryBuilder":
        if bucket_spec is None:
            return self
        return self._append(BucketStage(bucket_spec=bucket_spec))

    def bucket_auto(self, bucket_auto_spec: dict[str, Any] | None) -> "MongoSenseQueryBuilder":
        if bucket_auto_spec is None:
            return self
        return self._append(BucketAutoStage(bucket_auto_spec=bucket_auto_spec))

    def count(self, field: str | None) -> "MongoSenseQueryBuilder":
        """Add a ``$count`` stage storing the document count under ``field``."""
        if field is None:
            return self
        return self._append(CountStage(field=field))

    def facet(self, facet_spec: dict[str, Any] | None) -> "MongoSenseQueryBuilder":
        if facet_spec is None:
            return self
        return self._append(FacetStage(facet_spec=facet_spec))

    def project(self, projection: dict[str, Any] | None) -> "MongoSenseQueryBuilder":
        if projection is None:
            return self
        return self._append(ProjectStage(projection=projection))

    def unwind(
        self, path: str | None, options: dict[str, Any] | None = None
    ) -> "MongoSenseQueryBuilder":
        """Add an ``$unwind`` stage.

        Without options the short form ``{"$unwind": path}`` is produced;
        with options, ``{"$unwind": {"path": path, **options}}``.
        """
        if path is None:
            return self
        return self._append(UnwindStage(path=path, options=options))

    def out(self, collection: str | None) -> "MongoSenseQueryBuilder":
        if collection is None:
            return self
        return self._append(OutStage(collection=collection))

    def replace_root(self, new_root: Any | None) -> "MongoSenseQueryBuilder":
        if new_root is None:
            return self
        return self._append(ReplaceRootStage(new_root=new_root))

    def merge(self, merge_spec: Any | None) -> "MongoSenseQueryBuilder":
        if merge_spec is None:
            return self
        return self._append(MergeStage(merge_spec=merge_spec))

    def redact(self, expression: Any | None) -> "MongoSenseQueryBuilder":
        if expression is None:
            return self
        return self._append(RedactStage(expression=expression))

    def sample(self, size: int | None) -> "MongoSenseQueryBuilder":
        """Add a ``$sample`` stage selecting ``size`` random documents."""
        if size is None:
            return self
        return self._append(SampleStage(size=size))

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def build(self) -> AggregationQuery:
        """Return a snapshot of the pipeline documents and collection names.

        Example:
            >>> result = MongoSense().match({"isActive": True}).build()
            >>> result.pipeline
            [{'$match': {'isActive': True}}]
        """
        return AggregationQuery(
            pipeline=[copy.deepcopy(stage.to_document()) for stage in self._pipeline],
            collections=list(self._collection_names),
        )

    def view_logs(self) -> list[str]:
        """Return the Debug Log; empty unless the builder was created with debug on."""
        return list(self._logs)

    # ------------------------------------------------------------------
    # Optimizer integration
    # ------------------------------------------------------------------

    def _index_fields(self) -> list[str]:
        fields = self._optimizer.extract_fields(self._pipeline)
        # first occurrence wins
        return list(dict.fromkeys(fields))

    async def _run_per_collection(
        self,
        operation: str,
        call: Callable[[str], Awaitable[list[str]]],
    ) -> list[tuple[str, list[str] | MongoSenseError]]:
        """Run ``call`` for every selected collection concurrently.

        Results come back in collection order regardless of completion
        order. MongoSense errors are returned in place of a result and
        replace ``index_failures[operation]`` from the previous run; any
        other exception propagates.
        """
        names = list(self._collection_names)
        failures: dict[str, MongoSenseError] = {}
        self.index_failures[operation] = failures
        results = await asyncio.gather(*(call(name) for name in names), return_exceptions=True)

        outcomes: list[tuple[str, list[str] | MongoSenseError]] = []
        for name, result in zip(names, results):
            if isinstance(result, MongoSenseError):
                logger.error(
                    f"{operation} failed for collection '{name}': {result}",
                    extra={"collection_name": name, "operation": operation, "status": "failed"},
                )
                failures[name] = result
            elif isinstance(result, BaseException):
                raise result
            outcomes.append((name, result))
        return outcomes

    async def optimize(self) -> "MongoSenseQueryBuilder":
        """Reorder the pipeline and collect index recommendations.

        Stages are reordered so ``$match`` then ``$sort`` come first. Then the
        fields used by those stages are checked against the existing indexes
        of every selected collection. A collection whose analysis fails is
        recorded in ``index_failures["analyze_indexes"]`` and does not stop
        the others.
        """
        if self._optimizer is None:
            return self

        self._pipeline = self._optimizer.optimize_pipeline(self._pipeline)
        logger.info(
            f"Pipeline optimized: {[stage.operator for stage in self._pipeline]}",
            extra={"operation": "optimize_pipeline"},
        )
        self._log("Pipeline optimized: $match and $sort stages moved to the front")

        fields = self._index_fields()
        outcomes = await self._run_per_collection(
            "analyze_indexes",
            lambda name: self._optimizer.analyze_and_recommend_indexes(name, fields),
        )

        for name, result in outcomes:
            if isinstance(result, MongoSenseError):
                self.index_recommendations.pop(name, None)
                self._log(f"Index analysis failed for {name}: {result.message}")
                continue
            self.index_recommendations[name] = result
            self._log(f"Recommended indexes for {name}: {', '.join(result) or 'none'}")

        return self

    async def create_indexes(self) -> "MongoSenseQueryBuilder":
        """Create ascending indexes on every ``$match``/``$sort`` field.

        Runs once per selected collection. Indexes that were created before a
        failure on the same collection are still recorded in
        ``created_indexes``.
        """
        if self._optimizer is None:
            return self

        fields = self._index_fields()
        outcomes = await self._run_per_collection(
            "create_indexes",
            lambda name: self._optimizer.create_indexes(name, fields),
        )

        for name, result in outcomes:
            if isinstance(result, MongoSenseError):
                if isinstance(result, IndexCreationError):
                    self.created_indexes[name] = list(result.details.get("created", []))
                else:
                    self.created_indexes.pop(name, None)
                self._log(f"Index creation failed for {name}: {result.message}")
                continue
            self.created_indexes[name] = result
            self._log(f"Created indexes for {name}: {', '.join(result) or 'none'}")

        return self


def MongoSense(
    debug: bool | None = None, optimizer: IntelliOptimizer | None = None
) -> MongoSenseQueryBuilder:
    """Create a new MongoSenseQueryBuilder.

    Example:
        >>> MongoSense().collection("users").match({"isActive": True}).limit(10).build()
    """
    return MongoSenseQueryBuilder(debug=debug, optimizer=optimizer)
