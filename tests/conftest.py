"""Shared fixtures: in-memory storage wired into the global services."""

import pytest
from fastapi.testclient import TestClient

from services.storage_service import MemoryStorageService, init_storage_service
from services.tracker_store import TrackerStoreService, init_tracker_store, empty_state
from services.auth_service import AuthService, init_auth_service
from services.date_preferences import init_date_preferences_service


@pytest.fixture(autouse=True)
def two_bucket_policy(monkeypatch):
    """Tests assume the default morning/evening grouping unless they set it."""
    monkeypatch.delenv("MEDICATION_TIME_BUCKETS", raising=False)


@pytest.fixture
def storage():
    return MemoryStorageService()


@pytest.fixture
def store(storage):
    return TrackerStoreService(storage)


@pytest.fixture
def auth(storage, store):
    return AuthService(storage, store)


@pytest.fixture
def client(storage):
    """App client backed by a fresh memory store. Startup hooks are not run."""
    init_storage_service(storage)
    tracker_store = init_tracker_store(storage)
    init_auth_service(storage, tracker_store)
    init_date_preferences_service(storage)

    from main import app
    return TestClient(app)


@pytest.fixture
def logged_in_client(client):
    response = client.post("/api/users/register", json={
        "username": "Ana",
        "displayName": "Ana",
        "email": "ana@example.com",
        "password": "s3cret-pass",
    })
    assert response.json()["success"] is True
    return client


def make_state(**collections):
    state = empty_state()
    state.update(collections)
    return state


def make_cycle(cycle_id="c1", start_date="2024-03-01", goal="retrieval", days=None, **fields):
    cycle = {
        "id": cycle_id,
        "name": "Cycle 1",
        "startDate": start_date,
        "cycleType": "antagonist",
        "cycleGoal": goal,
        "status": "active",
        "days": days or [],
        "createdAt": "2024-03-01T00:00:00Z",
    }
    cycle.update(fields)
    return cycle
