"""Aggregation pipeline construction.

Stage models and the fluent MongoSense query builder.
"""

from .stages import (
    AddFieldsStage,
    BaseStage,
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
from .query_builder import AggregationQuery, MongoSense, MongoSenseQueryBuilder

__all__ = [
    "AddFieldsStage",
    "AggregationQuery",
    "BaseStage",
    "BucketAutoStage",
    "BucketStage",
    "CountStage",
    "FacetStage",
    "GroupStage",
    "LimitStage",
    "LookupStage",
    "MatchStage",
    "MergeStage",
    "MongoSense",
    "MongoSenseQueryBuilder",
    "OutStage",
    "ProjectStage",
    "RedactStage",
    "ReplaceRootStage",
    "SampleStage",
    "SkipStage",
    "SortStage",
    "Stage",
    "UnwindStage",
]
