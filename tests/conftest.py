"""
Pytest fixtures for the costing kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (tables created, append-only
  listeners registered)
- Deterministic clock, flush-only services and a CostingEngine facade
- Captured structured logs
- A seeded catalogue matching the worked Milk / Base / Pop example

Environment Variables:
- DATABASE_URL is NOT read here; tests always run against SQLite.  The
  concurrency tests use a file database under tmp_path.
"""

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from costing_engines.rollup import RecipeLineInput
from costing_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from costing_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from costing_kernel.domain.clock import DeterministicClock
from costing_kernel.domain.policy import EnginePolicy
from costing_kernel.domain.types import UnitOfMeasure
from costing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from costing_kernel.services.catalog_service import CatalogService
from costing_kernel.services.costing_engine import CostingEngine
from costing_kernel.services.stock_service import StockService


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture costing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, costing_engine):
            costing_engine.register_production(...)
            logs = captured_logs()
            assert any(r["message"] == "production_registered" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("costing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Fresh in-memory SQLite engine with all tables and listeners."""
    reset_engine()
    engine = init_engine_from_url("sqlite://")
    create_tables()
    register_immutability_listeners()
    yield engine
    unregister_immutability_listeners()
    drop_tables()
    reset_engine()


@pytest.fixture(scope="function")
def session(db_engine) -> Generator[Session, None, None]:
    """A plain session; tests flush through services and never commit."""
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return get_session_factory()


# Clock fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock(datetime(2024, 3, 15, 9, 0, 0, tzinfo=timezone.utc))


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def policy() -> EnginePolicy:
    return EnginePolicy(retry_backoff_seconds=0)


@pytest.fixture
def catalog_service(session, deterministic_clock) -> CatalogService:
    return CatalogService(session, deterministic_clock)


@pytest.fixture
def stock_service(session, deterministic_clock) -> StockService:
    return StockService(session, deterministic_clock)


@pytest.fixture
def costing_engine(session_factory, policy, deterministic_clock) -> CostingEngine:
    return CostingEngine(session_factory, policy=policy, clock=deterministic_clock)


# =============================================================================
# Seeded catalogue
# =============================================================================


@pytest.fixture
def pop_catalog(costing_engine):
    """
    The worked example, committed through the facade.

    Milk: purchases 1000 g for 5 and 500 g for 3 (unit cost 8/1500).
    Base: 200 g Milk per batch, yield 10.
    Pop:  made from Base at 50 % target margin.
    """
    milk = costing_engine.create_raw_material(
        "Milk", UnitOfMeasure.GRAMS, supplier="Dairy Co"
    ).entity
    costing_engine.register_purchase(milk.id, Decimal("1000"), Decimal("5"))
    costing_engine.register_purchase(milk.id, Decimal("500"), Decimal("3"))
    base = costing_engine.create_recipe(
        "Base",
        Decimal("10"),
        [RecipeLineInput(raw_material_id=milk.id, quantity=Decimal("200"))],
    ).entity
    pop = costing_engine.create_finished_good(
        "Pop", recipe_id=base.id, profit_margin=Decimal("50"), category="classic"
    ).entity
    return {"milk": milk, "base": base, "pop": pop}
