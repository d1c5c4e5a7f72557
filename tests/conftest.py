"""
Pytest fixtures for the relational kernel test suite.

Provides:
- Structured logging setup and log capture
- An in-memory SQLite database (foreign keys enforced) with the sample
  aggregates from ``tests.aggregates``
- Statement capture for asserting on batching
- Seed helpers for customers and warehouses
"""

import json
import logging
from io import StringIO

import pytest
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from relational_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tests.aggregates import (
    addresses,
    bins,
    build_mapping_context,
    customers,
    line_items,
    metadata,
    orders,
    warehouses,
)


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
def _restore_kernel_log_level():
    """Undo log level changes made by services built during a test."""
    kernel_logger = logging.getLogger("relational_kernel")
    previous_level = kernel_logger.level
    yield
    kernel_logger.setLevel(previous_level)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture relational_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "aggregate_deleted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("relational_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with foreign keys enforced and tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def statement_log(db_engine):
    """
    Record every statement sent to the database as ``(sql, executemany)``.

    Cleared by the test as needed; seeding statements are recorded too.
    """
    statements: list[tuple[str, bool]] = []

    @event.listens_for(db_engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append((statement, executemany))

    yield statements
    event.remove(db_engine, "before_cursor_execute", _record)


@pytest.fixture
def session(db_engine):
    """Session on the in-memory database. Tests own the transaction."""
    with Session(db_engine) as s:
        yield s


@pytest.fixture
def mapping_context():
    return build_mapping_context()


# =============================================================================
# Seed helpers
# =============================================================================


def count_rows(session: Session, table) -> int:
    return session.scalar(select(func.count()).select_from(table))


@pytest.fixture
def seed_customer(session):
    """
    Insert a customer aggregate and return its id.

    Usage::

        customer_id = seed_customer(1, version=3, order_count=2, items_per_order=2)
    """

    def _seed(
        customer_id: int,
        version: int = 0,
        order_count: int = 2,
        items_per_order: int = 2,
        address_count: int = 1,
    ) -> int:
        session.execute(
            customers.insert().values(
                id=customer_id, name=f"customer-{customer_id}", version=version
            )
        )
        for _ in range(order_count):
            order_id = session.execute(
                orders.insert().values(customer_id=customer_id)
            ).inserted_primary_key[0]
            for n in range(items_per_order):
                session.execute(
                    line_items.insert().values(order_id=order_id, sku=f"SKU-{n}")
                )
        for _ in range(address_count):
            session.execute(addresses.insert().values(customer_id=customer_id))
        return customer_id

    return _seed


@pytest.fixture
def seed_warehouse(session):
    """Insert a warehouse with ``bin_count`` bins and return its id."""

    def _seed(warehouse_id: int, bin_count: int = 3) -> int:
        session.execute(warehouses.insert().values(id=warehouse_id))
        for _ in range(bin_count):
            session.execute(bins.insert().values(warehouse_id=warehouse_id))
        return warehouse_id

    return _seed
