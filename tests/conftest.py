"""
Pytest fixtures for the ledger test suite.

Provides:
- Structured logging setup and a ``captured_logs`` helper
- A SQLAlchemy session per test, rolled back at teardown
- Actor, clock, settings and notifier fixtures for the services
- Account references and an entry factory

Environment Variables:
- LEDGER_TEST_DATABASE_URL: database URL for the service tests.
  Defaults to an in-memory SQLite database.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_config import EngineSettings
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.entries import (
    AccountRef,
    EntryNature,
    LedgerEntry,
    SettlementStatus,
)
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_services.identity import ActorContext
from ledger_services.ledger_entry_service import LedgerEntryService
from ledger_services.payment_plan_service import PaymentPlanService

TEST_ACTOR_ID = uuid4()
TEST_ORGANIZATION_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"


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
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            generate_series(spec)
            logs = captured_logs()
            assert any(r["message"] == "series_generation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("LEDGER_TEST_DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create tables once per session."""
    create_tables()
    yield
    drop_tables()


@pytest.fixture
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction that is rolled back at teardown,
    undoing every change made during the test.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Service collaborators
# =============================================================================


class RecordingNotifier:
    """Notifier that keeps every notice it receives."""

    def __init__(self):
        self.notices = []

    def notify(self, notice) -> None:
        self.notices.append(notice)


@pytest.fixture
def test_actor() -> ActorContext:
    return ActorContext(user_id=TEST_ACTOR_ID, organization_id=TEST_ORGANIZATION_ID)


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def ledger_service(session, test_actor, recording_notifier, engine_settings, deterministic_clock):
    return LedgerEntryService(
        session,
        test_actor,
        notifier=recording_notifier,
        settings=engine_settings,
        clock=deterministic_clock,
    )


@pytest.fixture
def payment_plan_service(session, test_actor, engine_settings, deterministic_clock, ledger_service):
    return PaymentPlanService(
        session,
        test_actor,
        settings=engine_settings,
        clock=deterministic_clock,
        ledger_service=ledger_service,
    )


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def checking_account() -> AccountRef:
    return AccountRef(id="acc-checking", name="Checking")


@pytest.fixture
def savings_account() -> AccountRef:
    return AccountRef(id="acc-savings", name="Savings")


@pytest.fixture
def card_account() -> AccountRef:
    """Card closing on the 25th, paid on the 5th of the following month."""
    return AccountRef(id="acc-card", name="Visa", closing_day=25, payment_day=5)


@pytest.fixture
def make_entry():
    """Factory for LedgerEntry values with sensible defaults."""

    def _make(**overrides) -> LedgerEntry:
        fields = dict(
            description="Rent",
            amount=Decimal("100.00"),
            nature=EntryNature.EXPENSE,
            transaction_date=date(2024, 1, 5),
            due_date=date(2024, 1, 5),
            account_id="acc-checking",
            status=SettlementStatus.PENDING,
        )
        fields.update(overrides)
        return LedgerEntry(**fields)

    return _make
