"""
tests/conftest.py

Pytest configuration and shared fixtures for the IRD Inventory test suite.

Unit and API tests run against the in-memory store. Three flavours:

  store            - supports transactions (replicated deployment)
  standalone_store - no transactions (every operation takes the fallback path)
  legacy_store     - standalone and still enforcing the old unique index on
                     equipment.management_ip

Tests marked ``integration`` need a real PostgreSQL (DATABASE_URL) and are
skipped without one.
"""

from __future__ import annotations

import os

# Must be set before the app module is imported anywhere.
os.environ["STORE_BACKEND"] = "memory"
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from ird_inventory.core.config import reset_settings  # noqa: E402
from ird_inventory.store import (  # noqa: E402
    LEGACY_MANAGEMENT_IP_INDEX,
    Collection,
    MemoryStore,
)

# =============================================================================
# GLOBAL TEST CONFIGURATION
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """
    Registers custom markers:
      - integration: Tests that require a running PostgreSQL (DATABASE_URL)
    """
    config.addinivalue_line(
        "markers",
        "integration: marks tests as requiring PostgreSQL (set DATABASE_URL)",
    )
    reset_settings()


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("DATABASE_URL"):
        return
    skip_integration = pytest.mark.skip(reason="DATABASE_URL not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# =============================================================================
# STORES
# =============================================================================


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def standalone_store() -> MemoryStore:
    return MemoryStore(supports_transactions=False)


@pytest.fixture
def legacy_store() -> MemoryStore:
    return MemoryStore(
        supports_transactions=False,
        extra_indexes={Collection.EQUIPMENT: [LEGACY_MANAGEMENT_IP_INDEX]},
    )


# =============================================================================
# API CLIENT
# =============================================================================


@pytest.fixture
def client(store: MemoryStore) -> Generator[TestClient, None, None]:
    """TestClient whose requests all hit the ``store`` fixture."""
    from ird_inventory.db import get_store
    from ird_inventory.main import create_app

    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()
