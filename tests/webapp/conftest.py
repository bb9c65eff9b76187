import pytest
from fastapi.testclient import TestClient

import wellness_tracker.webapp.api as apimod
import wellness_tracker.webapp.main as appmod
from wellness_tracker.managers import DbManager

ADMIN_TOKEN = "test-token"


@pytest.fixture(autouse=True)
def api_db(monkeypatch, db_path):
    # Point every request under tests/webapp/ at a fresh, initialized database
    monkeypatch.setattr(apimod, "DB_PATH", db_path)
    with DbManager(db_path) as db:
        db.create_admin("tester", ADMIN_TOKEN)
    return db_path


@pytest.fixture
def anon_client():
    return TestClient(appmod.app)


@pytest.fixture
def client():
    c = TestClient(appmod.app)
    c.headers.update({"Authorization": f"Bearer {ADMIN_TOKEN}"})
    return c


@pytest.fixture
def api_event(client):
    """Factory: create an event through the API and return its JSON."""
    def _create(event_name="Yoga Basics", event_type="Seminar", event_date="2025-03-01"):
        r = client.post("/api/events", json={
            "event_name": event_name, "event_type": event_type, "event_date": event_date,
        })
        assert r.status_code == 201, r.text
        return r.json()
    return _create
