"""Unit tests for MongoSenseQueryBuilder.

Covers collection selection, conditional stage appends, build() snapshots
and the Debug Log.
"""

import pytest

from mongosense import MongoSense
from mongosense.builder.query_builder import AggregationQuery, MongoSenseQueryBuilder
from mongosense.builder.stages import MatchStage, SortStage

# One call per stage method with a present argument, and its expected document
STAGE_CALLS = [
    ("match", ({"isActive": True},), {"$match": {"isActive": True}}),
    ("sort", ({"age": 1},), {"$sort": {"age": 1}}),
    ("limit", (10,), {"$limit": 10}),
    ("skip", (20,), {"$skip": 20}),
    (
        "lookup",
        ("orders", "_id", "userId", "userOrders"),
        {
            "$lookup": {
                "from": "orders",
                "localField": "_id",
                "foreignField": "userId",
                "as": "userOrders",
            }
        },
    ),
    (
        "group",
        ({"category": "$category"}, {"totalSales": {"$sum": "$amount"}}),
        {"$group": {"_id": {"category": "$category"}, "totalSales": {"$sum": "$amount"}}},
    ),
    (
        "add_fields",
        ({"isAdult": {"$gte": ["$age", 18]}},),
        {"$addFields": {"isAdult": {"$gte": ["$age", 18]}}},
    ),
    (
        "bucket",
        ({"groupBy": "$age", "boundaries": [0, 18, 65]},),
        {"$bucket": {"groupBy": "$age", "boundaries": [0, 18, 65]}},
    ),
    (
        "bucket_auto",
        ({"groupBy": "$age", "buckets": 3},),
        {"$bucketAuto": {"groupBy": "$age", "buckets": 3}},
    ),
    ("count", ("total",), {"$count": "total"}),
    (
        "facet",
        ({"ages": [{"$sortByCount": "$age"}]},),
        {"$facet": {"ages": [{"$sortByCount": "$age"}]}},
    ),
    ("project", ({"name": 1},), {"$project": {"name": 1}}),
    ("unwind", ("$tags",), {"$unwind": "$tags"}),
    ("out", ("archive",), {"$out": "archive"}),
    (
        "replace_root",
        ({"$mergeObjects": ["$a", "$b"]},),
        {"$replaceRoot": {"newRoot": {"$mergeObjects": ["$a", "$b"]}}},
    ),
    (
        "merge",
        ({"into": "totals", "whenMatched": "replace"},),
        {"$merge": {"into": "totals", "whenMatched": "replace"}},
    ),
    (
        "redact",
        ({"$cond": ["$visible", "$$DESCEND", "$$PRUNE"]},),
        {"$redact": {"$cond": ["$visible", "$$DESCEND", "$$PRUNE"]}},
    ),
    ("sample", (5,), {"$sample": {"size": 5}}),
]

# Same methods with the presence-determining argument absent
ABSENT_CALLS = [
    ("match", (None,)),
    ("sort", (None,)),
    ("limit", (None,)),
    ("skip", (None,)),
    ("lookup", (None, "_id", "userId", "userOrders")),
    ("group", (None, {"total": {"$sum": 1}})),
    ("group", ({"category": "$category"}, None)),
    ("group", (None, None)),
    ("add_fields", (None,)),
    ("bucket", (None,)),
    ("bucket_auto", (None,)),
    ("count", (None,)),
    ("facet", (None,)),
    ("project", (None,)),
    ("unwind", (None,)),
    ("unwind", (None, {"preserveNullAndEmptyArrays": True})),
    ("out", (None,)),
    ("replace_root", (None,)),
    ("merge", (None,)),
    ("redact", (None,)),
    ("sample", (None,)),
]


class TestCollectionSelector:
    def test_single_collection(self):
        result = MongoSense().collection("users").build()

        assert result.collections == ["users"]
        assert result.pipeline == []

    def test_multiple_collections_in_one_call(self):
        assert MongoSense().collection("users", "orders").build().collections == [
            "users",
            "orders",
        ]

    def test_chained_collections_keep_order(self):
        assert MongoSense().collection("users").collection("orders").build().collections == [
            "users",
            "orders",
        ]

    def test_duplicates_are_kept(self):
        assert MongoSense().collection("users", "users").build().collections == [
            "users",
            "users",
        ]

    def test_no_names_is_a_no_op(self):
        assert MongoSense().collection().build().collections == []


class TestStageAppends:
    @pytest.mark.parametrize("method, args, expected", STAGE_CALLS)
    def test_present_argument_appends_one_stage(self, method, args, expected):
        builder = MongoSense()

        returned = getattr(builder, method)(*args)

        assert returned is builder
        assert builder.build().pipeline == [expected]

    @pytest.mark.parametrize("method, args", ABSENT_CALLS)
    def test_absent_argument_is_a_no_op(self, method, args):
        builder = MongoSense(debug=True).match({"seed": 1})

        returned = getattr(builder, method)(*args)

        assert returned is builder
        assert builder.build().pipeline == [{"$match": {"seed": 1}}]
        assert len(builder.view_logs()) == 1

    def test_calls_keep_their_order(self):
        builder = MongoSense()
        for method, args, _ in STAGE_CALLS:
            getattr(builder, method)(*args)

        assert builder.build().pipeline == [expected for _, _, expected in STAGE_CALLS]

    def test_unwind_with_options(self):
        result = MongoSense().unwind("$tags", {"includeArrayIndex": "idx"}).build()

        assert result.pipeline == [{"$unwind": {"path": "$tags", "includeArrayIndex": "idx"}}]

    @pytest.mark.parametrize(
        "method, value, expected",
        [
            ("limit", 0, {"$limit": 0}),
            ("skip", 0, {"$skip": 0}),
            ("sample", 0, {"$sample": {"size": 0}}),
            ("count", "", {"$count": ""}),
            ("match", {}, {"$match": {}}),
        ],
    )
    def test_falsy_but_present_values_append(self, method, value, expected):
        assert getattr(MongoSense(), method)(value).build().pipeline == [expected]

    def test_stages_property_exposes_models(self):
        builder = MongoSense().match({"a": 1}).sort({"b": -1})

        assert builder.stages == (MatchStage(criteria={"a": 1}), SortStage(sort_criteria={"b": -1}))


class TestBuild:
    def test_empty_builder(self):
        result = MongoSense().build()

        assert isinstance(result, AggregationQuery)
        assert result.pipeline == []
        assert result.collections == []

    def test_end_to_end_chain(self):
        result = (
            MongoSense()
            .collection("users")
            .match({"isActive": True})
            .sort({"age": 1})
            .limit(10)
            .build()
        )

        assert result.model_dump() == {
            "pipeline": [
                {"$match": {"isActive": True}},
                {"$sort": {"age": 1}},
                {"$limit": 10},
            ],
            "collections": ["users"],
        }

    def test_build_is_repeatable(self):
        builder = MongoSense().collection("users").match({"isActive": True})

        assert builder.build() == builder.build()

    def test_snapshot_does_not_follow_later_appends(self):
        builder = MongoSense().collection("users").match({"isActive": True})
        snapshot = builder.build()

        builder.collection("orders").limit(5)

        assert snapshot.pipeline == [{"$match": {"isActive": True}}]
        assert snapshot.collections == ["users"]
        assert builder.build().pipeline == [{"$match": {"isActive": True}}, {"$limit": 5}]

    def test_mutating_snapshot_does_not_reach_builder(self):
        builder = MongoSense().collection("users").match({"status": {"$in": ["a"]}})
        snapshot = builder.build()

        snapshot.pipeline[0]["$match"]["status"]["$in"].append("b")
        snapshot.collections.append("orders")

        assert builder.build().pipeline == [{"$match": {"status": {"$in": ["a"]}}}]
        assert builder.build().collections == ["users"]

    def test_caller_mutation_after_append_does_not_reach_builder(self):
        criteria = {"age": {"$gte": 18}}
        group_by = {"city": "$city"}
        options = {"includeArrayIndex": "idx"}
        builder = (
            MongoSense()
            .match(criteria)
            .group(group_by, {"n": {"$sum": 1}})
            .unwind("$tags", options)
        )
        before = builder.build()

        criteria["age"]["$gte"] = 99
        group_by["city"] = "$country"
        options["includeArrayIndex"] = "other"

        assert builder.build() == before
        assert builder.stages[0] == MatchStage(criteria={"age": {"$gte": 18}})

    def test_factory_returns_fresh_builders(self):
        first = MongoSense().match({"a": 1})
        second = MongoSense()

        assert isinstance(second, MongoSenseQueryBuilder)
        assert second.build().pipeline == []
        assert first is not second


class TestDebugLog:
    def test_debug_log_records_collection_then_stages(self):
        builder = (
            MongoSense(debug=True)
            .collection("users")
            .match({"isActive": True})
            .sort({"age": 1})
            .limit(10)
        )

        logs = builder.view_logs()

        assert len(logs) == 4
        assert "users" in logs[0]
        assert "$match" in logs[1]
        assert "$sort" in logs[2]
        assert "$limit" in logs[3]

    def test_debug_disabled_keeps_log_empty(self):
        builder = (
            MongoSense(debug=False)
            .collection("users")
            .match({"isActive": True})
            .sort({"age": 1})
            .limit(10)
        )

        assert builder.view_logs() == []

    def test_debug_defaults_to_settings(self, monkeypatch):
        from mongosense.config.settings import settings

        monkeypatch.setattr(settings, "debug_mode", True)

        assert MongoSense().debug is True

    def test_view_logs_returns_a_copy(self):
        builder = MongoSense(debug=True).collection("users")

        builder.view_logs().append("tampered")

        assert builder.view_logs() == ["Selected collections: users"]

    def test_debug_log_never_changes_pipeline(self):
        chain = lambda b: b.collection("users").match({"a": 1}).limit(3)  # noqa: E731

        assert chain(MongoSense(debug=True)).build() == chain(MongoSense(debug=False)).build()
