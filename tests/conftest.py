"""Pytest configuration and shared fixtures for MongoSense tests.

Test Organization:
-------------------
tests/
├── unit/           # Fast, isolated tests; no MongoDB required
├── integration/    # Real MongoDB from TEST_MONGODB_URI, skipped if unreachable
└── conftest.py     # This file - shared fixtures

Unit tests never touch a database. The optimizer is exercised through
``FakeIndexInspector``, an in-memory IndexInspector, and Motor objects are
replaced with ``MagicMock``/``AsyncMock``.
"""

import os
import time
from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from mongosense.intelli.optimizer import IntelliOptimizer

# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_collection_modifyitems(config, items):
    """Mark tests by directory: tests/unit -> unit, tests/integration -> integration."""
    for item in items:
        test_path = Path(item.fspath)

        if "unit" in test_path.parts:
            item.add_marker(pytest.mark.unit)
        elif "integration" in test_path.parts:
            item.add_marker(pytest.mark.integration)


# =============================================================================
# IN-MEMORY INDEX INSPECTOR
# =============================================================================


class FakeIndexInspector:
    """IndexInspector over plain dictionaries.

    Args:
        indexed: collection name -> set of indexed field names
        failing_collections: collections whose every call raises
        failing_fields: field names whose index creation raises
    """

    def __init__(
        self,
        indexed: dict[str, set[str]] | None = None,
        failing_collections: set[str] | None = None,
        failing_fields: set[str] | None = None,
    ):
        self.indexed = {name: set(fields) for name, fields in (indexed or {}).items()}
        self.failing_collections = failing_collections or set()
        self.failing_fields = failing_fields or set()
        self.calls: list[tuple[str, str, str | None]] = []

    def _check(self, collection_name: str) -> None:
        if collection_name in self.failing_collections:
            raise ConnectionError(f"collection {collection_name} unreachable")

    async def get_indexed_fields(self, collection_name: str) -> set[str]:
        self.calls.append(("get_indexed_fields", collection_name, None))
        self._check(collection_name)
        return set(self.indexed.get(collection_name, set()))

    async def create_index(self, collection_name: str, field_name: str) -> str:
        self.calls.append(("create_index", collection_name, field_name))
        self._check(collection_name)
        if field_name in self.failing_fields:
            raise RuntimeError(f"cannot index {field_name}")
        self.indexed.setdefault(collection_name, set()).add(field_name)
        return f"{field_name}_1"

    async def get_collection_stats(self, collection_name: str) -> dict[str, Any]:
        self.calls.append(("get_collection_stats", collection_name, None))
        self._check(collection_name)
        return {"ns": f"test.{collection_name}", "count": 0}


@pytest.fixture
def fake_inspector() -> FakeIndexInspector:
    """Inspector where ``users`` already has an index on ``isActive``."""
    return FakeIndexInspector(indexed={"users": {"_id", "isActive"}})


@pytest.fixture
def inspector_factory() -> type[FakeIndexInspector]:
    """The FakeIndexInspector class, for tests that need custom failures."""
    return FakeIndexInspector


@pytest.fixture
def optimizer(fake_inspector: FakeIndexInspector) -> IntelliOptimizer:
    return IntelliOptimizer(fake_inspector)


# =============================================================================
# MOCK DATABASE FIXTURES
# =============================================================================


@pytest.fixture
def mock_collection() -> MagicMock:
    """Mocked Motor collection with ``list_indexes`` and ``create_index``.

    ``list_indexes().to_list`` returns the default ``_id_`` index plus a
    compound index on ``isActive``/``createdAt``.
    """
    collection = MagicMock()
    collection.list_indexes.return_value.to_list = AsyncMock(
        return_value=[
            {"v": 2, "key": {"_id": 1}, "name": "_id_"},
            {"v": 2, "key": {"isActive": 1, "createdAt": -1}, "name": "isActive_1_createdAt_-1"},
        ]
    )
    collection.create_index = AsyncMock(return_value="createdIndex")
    return collection


@pytest.fixture
def mock_database(mock_collection: MagicMock) -> MagicMock:
    """Mocked Motor database whose every collection is ``mock_collection``."""
    db = MagicMock()
    db.__getitem__.return_value = mock_collection
    db.command = AsyncMock(return_value={"ns": "test.users", "count": 42, "ok": 1.0})
    return db


# =============================================================================
# INTEGRATION TEST FIXTURES
# =============================================================================


@pytest_asyncio.fixture
async def test_mongodb_client() -> AsyncGenerator[AsyncIOMotorClient, None]:
    """Real MongoDB client from TEST_MONGODB_URI; skips the test if unreachable."""
    mongodb_uri = os.getenv("TEST_MONGODB_URI", "mongodb://localhost:27017")
    client = AsyncIOMotorClient(mongodb_uri, serverSelectionTimeoutMS=2000)

    try:
        await client.admin.command("ping")
    except Exception as e:
        client.close()
        pytest.skip(f"MongoDB not available for integration tests: {e}")

    yield client

    client.close()


@pytest_asyncio.fixture
async def test_database(
    test_mongodb_client: AsyncIOMotorClient,
) -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    """Fresh database per test, dropped afterwards."""
    db_name = f"test_mongosense_{int(time.time() * 1000)}"
    db = test_mongodb_client[db_name]

    yield db

    await test_mongodb_client.drop_database(db_name)
