"""
Shared fixtures: a fresh in-memory store per test and a fixed clock.

2024-01-03 is a Wednesday.
"""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import config
from schemas import DoseIn, MedicationIn, ScheduleIn
from storage import MemStorage

USER_ID = 1
OTHER_USER_ID = 2

WEDNESDAY_7AM = datetime(2024, 1, 3, 7, 0)
WEDNESDAY_9AM = datetime(2024, 1, 3, 9, 0)


@pytest.fixture
def store():
    return MemStorage()


@pytest.fixture
def frozen_now(monkeypatch):
    """Pin config.local_now(); call the returned setter to move the clock."""
    current = {"now": WEDNESDAY_9AM}
    monkeypatch.setattr(config, "local_now", lambda: current["now"])

    def set_now(value):
        current["now"] = value
    return set_now


@pytest.fixture
def medication(store):
    return store.create_medication(USER_ID, MedicationIn(
        name="Latanoprost",
        dosage="1 drop",
        eye="both",
        cap_color="#00AAFF",
        remaining_doses=60,
        total_doses=60,
    ))


@pytest.fixture
def make_schedule(store):
    def _make(medication_id, time="08:00", days=None, active=True, user_id=USER_ID, eye="both"):
        return store.create_schedule(user_id, ScheduleIn(
            medication_id=medication_id,
            time=time,
            days_of_week=days or ["Monday", "Wednesday", "Friday"],
            eye=eye,
            active=active,
        ))
    return _make


@pytest.fixture
def make_dose(store):
    def _make(medication_id, timestamp, skipped=False, user_id=USER_ID):
        return store.create_dose(user_id, DoseIn(
            medication_id=medication_id, eye="both", timestamp=timestamp, skipped=skipped,
        ))
    return _make


@pytest.fixture
def client(store):
    from main import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
