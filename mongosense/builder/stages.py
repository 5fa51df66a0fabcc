"""Aggregation stage models.

Each supported MongoDB stage keyword has its own frozen pydantic model that
carries exactly the payload the keyword needs. The models form a closed
union discriminated on ``kind``; aggregation-expression documents inside a
payload stay open ``dict[str, Any]`` because they are schema-free.

``to_document()`` renders the literal shape the driver expects, e.g.
``SampleStage(size=5).to_document() == {"$sample": {"size": 5}}``.
"""

import copy
from abc import ABC, abstractmethod
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BaseStage(BaseModel, ABC):
    """Common behavior for every stage model.

    Payloads are deep-copied on construction, so later changes to the
    caller's documents never reach a stage.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: str

    @model_validator(mode="before")
    @classmethod
    def _copy_input(cls, data: Any) -> Any:
        return copy.deepcopy(data)

    @property
    def operator(self) -> str:
        """Stage keyword, e.g. ``$match``."""
        return f"${self.kind}"

    @abstractmethod
    def payload(self) -> Any:
        """Value stored under the stage keyword."""

    def to_document(self) -> dict[str, Any]:
        return {self.operator: self.payload()}

    def describe(self) -> str:
        """One-line human-readable summary used by the builder's debug log."""
        return f"Added {self.operator} stage: {self.payload()!r}"


class MatchStage(BaseStage):
    kind: Literal["match"] = "match"
    criteria: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.criteria


class SortStage(BaseStage):
    kind: Literal["sort"] = "sort"
    sort_criteria: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.sort_criteria


class LimitStage(BaseStage):
    kind: Literal["limit"] = "limit"
    limit: int

    def payload(self) -> int:
        return self.limit


class SkipStage(BaseStage):
    kind: Literal["skip"] = "skip"
    skip: int

    def payload(self) -> int:
        return self.skip


class LookupStage(BaseStage):
    """Left outer join with another collection."""

    kind: Literal["lookup"] = "lookup"
    from_collection: str
    local_field: str
    foreign_field: str
    as_field: str

    def payload(self) -> dict[str, str]:
        return {
            "from": self.from_collection,
            "localField": self.local_field,
            "foreignField": self.foreign_field,
            "as": self.as_field,
        }


class GroupStage(BaseStage):
    """Group key plus accumulators, flattened into one ``$group`` document."""

    kind: Literal["group"] = "group"
    group_by: Any
    accumulations: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return {"_id": self.group_by, **self.accumulations}


class AddFieldsStage(BaseStage):
    kind: Literal["addFields"] = "addFields"
    fields: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.fields


class BucketStage(BaseStage):
    kind: Literal["bucket"] = "bucket"
    bucket_spec: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.bucket_spec


class BucketAutoStage(BaseStage):
    kind: Literal["bucketAuto"] = "bucketAuto"
    bucket_auto_spec: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.bucket_auto_spec


class CountStage(BaseStage):
    kind: Literal["count"] = "count"
    field: str

    def payload(self) -> str:
        return self.field


class FacetStage(BaseStage):
    kind: Literal["facet"] = "facet"
    facet_spec: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.facet_spec


class ProjectStage(BaseStage):
    kind: Literal["project"] = "project"
    projection: dict[str, Any]

    def payload(self) -> dict[str, Any]:
        return self.projection


class UnwindStage(BaseStage):
    """Array deconstruction; the short string form is used when no options are given."""

    kind: Literal["unwind"] = "unwind"
    path: str
    options: dict[str, Any] | None = None

    def payload(self) -> str | dict[str, Any]:
        if self.options is None:
            return self.path
        return {"path": self.path, **self.options}


class OutStage(BaseStage):
    kind: Literal["out"] = "out"
    collection: str

    def payload(self) -> str:
        return self.collection


class ReplaceRootStage(BaseStage):
    kind: Literal["replaceRoot"] = "replaceRoot"
    new_root: Any

    def payload(self) -> dict[str, Any]:
        return {"newRoot": self.new_root}


class MergeStage(BaseStage):
    kind: Literal["merge"] = "merge"
    merge_spec: Any

    def payload(self) -> Any:
        return self.merge_spec


class RedactStage(BaseStage):
    kind: Literal["redact"] = "redact"
    expression: Any

    def payload(self) -> Any:
        return self.expression


class SampleStage(BaseStage):
    kind: Literal["sample"] = "sample"
    size: int

    def payload(self) -> dict[str, int]:
        return {"size": self.size}


Stage = Annotated[
    Union[
        MatchStage,
        SortStage,
        LimitStage,
        SkipStage,
        LookupStage,
        GroupStage,
        AddFieldsStage,
        BucketStage,
        BucketAutoStage,
        CountStage,
        FacetStage,
        ProjectStage,
        UnwindStage,
        OutStage,
        ReplaceRootStage,
        MergeStage,
        RedactStage,
        SampleStage,
    ],
    Field(discriminator="kind"),
]

# Stage kinds whose payload keys are field names worth indexing
FILTER_KINDS = frozenset({"match"})
SORT_KINDS = frozenset({"sort"})
