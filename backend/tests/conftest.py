"""Pytest configuration and fixtures."""

from datetime import datetime, timezone
from typing import Any, Dict, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from tableat.core.rate_limit import limiter
from tableat.db.sql_store import SqlDocumentStore
from tableat.db.store import RESTAURANTS, DocumentStore
from tableat.main import app

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

RESTAURANT_ID = "BY_THE_WAY"
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def store(db_engine) -> Generator[SqlDocumentStore, None, None]:
    """Document store on the in-memory database."""
    store = SqlDocumentStore(db_engine)
    yield store
    store.close()


@pytest.fixture(scope="function")
def client(store: SqlDocumentStore) -> Generator[TestClient, None, None]:
    """Create a test client whose app uses the test store."""
    app.state.store = store
    # Disable rate limiting during tests to avoid flaky failures
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.state.store = None


def seed_restaurant(store: DocumentStore, restaurant_id: str = RESTAURANT_ID, **fields: Any) -> Dict[str, Any]:
    """Write a raw restaurant document; flags not passed stay absent."""
    data = {
        "name": restaurant_id,
        "admin_email": "owner@bytheway.in",
        "address": "12 MG Road, Pune",
        "phone": "+91 98765 43210",
        "fssai_no": "11521998000123",
        "status": "active",
        "restaurant_open": True,
        "subscription_start": datetime(2026, 3, 1, tzinfo=timezone.utc),
        "subscription_end": datetime(2026, 4, 1, tzinfo=timezone.utc),
        "subscription_status": "active",
        "created_at": datetime(2026, 3, 1, tzinfo=timezone.utc),
        **fields,
    }
    store.set(RESTAURANTS, restaurant_id, data)
    return data


@pytest.fixture
def restaurant(store: SqlDocumentStore) -> str:
    """A restaurant with every approval flag set to its default."""
    seed_restaurant(
        store,
        quick_order_approved=False,
        analytics_approved=False,
        customer_approved=True,
        inventory_management_approved=False,
        staff_management_approved=False,
    )
    return RESTAURANT_ID
