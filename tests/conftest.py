"""Pytest configuration and shared fixtures for Debt-It tests.

Provides an isolated SQLite database per test, a session factory matching the
repository contract, a debt factory and money helpers.
"""

from __future__ import annotations

import tempfile
from decimal import Decimal
from pathlib import Path

import pytest
from sqlmodel import Session, SQLModel, create_engine

from debtit import create_app
from debtit.infra.repositories import SQLModelDocumentRepository
from debtit.models import StoredDocument  # noqa: F401  # registers the table
from debtit.services.debts import Debt


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database for each test.

    Yields:
        Engine: SQLModel engine connected to test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(f"sqlite:///{db_path}", echo=False)
    SQLModel.metadata.create_all(engine)

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Create a session factory for repositories that expect Callable[[], Session]."""

    def factory():
        return Session(db_engine, expire_on_commit=False)

    return factory


@pytest.fixture
def document_repository(session_factory) -> SQLModelDocumentRepository:
    return SQLModelDocumentRepository(session_factory)


# =============================================================================
# App Fixtures
# =============================================================================


@pytest.fixture()
def plan_app(tmp_path, monkeypatch: pytest.MonkeyPatch):
    db_path = tmp_path / "debtit.db"
    monkeypatch.setenv("DEBTIT_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DEBTIT_DATABASE_URL", f"sqlite:///{db_path}")
    app = create_app("testing")
    return app


@pytest.fixture()
def plan_client(plan_app):
    with plan_app.test_client() as client:
        yield client


# =============================================================================
# Test Data Factories
# =============================================================================


@pytest.fixture
def debt_factory():
    """Factory for creating Debt records with sensible defaults.

    Numeric arguments accept strings, ints or floats and are converted to
    ``Decimal`` the same way user input would be.
    """

    counter = {"next": 1}

    def _create_debt(
        name: str = "Test Debt",
        balance: object = "1000.00",
        apr: object = "18.0",
        minimum_payment: object = "25.00",
        due_day: int = 15,
        debt_id: str | None = None,
    ) -> Debt:
        if debt_id is None:
            debt_id = f"d{counter['next']}"
            counter["next"] += 1
        return Debt(
            id=debt_id,
            name=name,
            balance=Decimal(str(balance)),
            apr=Decimal(str(apr)),
            minimum_payment=Decimal(str(minimum_payment)),
            due_day=due_day,
        )

    return _create_debt


# =============================================================================
# Helper Functions
# =============================================================================


def money(value: object) -> Decimal:
    """Shorthand for building cent-precise Decimals in assertions."""
    return Decimal(str(value)).quantize(Decimal("0.01"))


def assert_money_equal(actual, expected) -> None:
    """Assert two monetary amounts are equal to the cent.

    Args:
        actual: Actual value (Decimal, float or str)
        expected: Expected value (Decimal, float or str)
    """
    assert money(actual) == money(expected), f"Expected {money(expected)}, got {money(actual)}"
