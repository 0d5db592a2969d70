"""Shared fixtures for rent-tracker tests."""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from database import Database
from services.contracts import RentalService
from services.reminders import ReminderScheduler


class RecordingScheduler(ReminderScheduler):
    """Scheduler double that remembers every call."""

    def __init__(self):
        self.scheduled = {}
        self.cancel_calls = []

    def schedule(self, reminder_id, fire_at, payload):
        self.scheduled[reminder_id] = (fire_at, payload)

    def cancel(self, ids):
        ids = list(ids)
        self.cancel_calls.append(ids)
        for reminder_id in ids:
            self.scheduled.pop(reminder_id, None)


@pytest.fixture
def db():
    """Create a test database."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        database = Database(db_path)
        database.initialize()
        yield database


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def service(db, scheduler):
    return RentalService(db, scheduler)


@pytest.fixture
def before_2024():
    """A reference time before every 2024 contract starts."""
    return datetime(2023, 12, 1, 9, 0)


@pytest.fixture
def property_and_tenant(service):
    prop = service.add_property("Harbour Flat", "12 Quay Street")
    tenant = service.add_tenant("Wei Chen", "555-0101", "wei@example.com")
    return prop, tenant
