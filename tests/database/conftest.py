"""Fixtures for isolated database module tests.

Provides a fresh temp-file SQLite DatabaseManager for each test, an
optional seeded catalog, and stable dates for deterministic ledger math.
"""
import os
import shutil
import tempfile
from datetime import datetime, date

import pytest

from database import DatabaseManager


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="db-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def seeded_db(temp_db):
    """Yield a DatabaseManager with the default gym catalog seeded."""
    temp_db.seed_catalog()
    return temp_db


@pytest.fixture
def sample_date():
    """Stable date value for deterministic tests."""
    return date(2024, 1, 10)


@pytest.fixture
def sample_datetime():
    """Stable datetime on the same day as sample_date."""
    return datetime(2024, 1, 10, 9, 0, 0)


@pytest.fixture
def plan(seeded_db):
    """Return a lookup function for seeded price plans by id."""
    def _lookup(plan_id):
        return seeded_db.price_plans.get_many([plan_id])[0]

    return _lookup


@pytest.fixture
def make_record(temp_db, sample_datetime):
    """Return a factory that creates check-in records with sensible defaults."""
    def _make(**overrides):
        draft = {
            "record_type": "Member",
            "name": "Juan Dela Cruz",
            "gym_number": "G-0001",
            "status": "Confirmed",
            "amount_due": 0,
        }
        now = overrides.pop("now", sample_datetime)
        draft.update(overrides)
        return temp_db.checkins.create(draft, now=now)

    return _make
