"""Shared test fixtures and configuration."""

import os

import pytest
from httpx import ASGITransport, AsyncClient

# Settings are read at import time; point them at a throwaway database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

from aimode.database import Storage  # noqa: E402
from aimode.main import create_app  # noqa: E402
from aimode.services.reader import QueryRecordReader  # noqa: E402
from aimode.services.stats import StatisticsAggregator  # noqa: E402
from aimode.services.writer import QueryRecordWriter  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def storage():
    """Fresh in-memory database per test."""
    store = Storage(TEST_DATABASE_URL)
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def writer(storage):
    return QueryRecordWriter(storage)


@pytest.fixture
def reader(storage):
    return QueryRecordReader(storage)


@pytest.fixture
def aggregator(storage):
    return StatisticsAggregator(storage)


@pytest.fixture
def app(storage):
    return create_app(storage=storage)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def sample_event():
    """Payload as the extension posts it."""
    return {
        "uid": "user1234-5678-abcd",
        "query": "  best hiking trails near me  ",
        "full_url": "https://www.google.com/search?q=best+hiking+trails&udm=50",
        "ts": 1760000000000,
    }
