"""
Stats Service Unit Tests
========================
Tests for the FastAPI stats endpoints.
"""

import pytest
from fastapi.testclient import TestClient

OWNER = "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"


@pytest.fixture
def client(store):
    from solclaimer.api.stats_server import create_app

    with TestClient(create_app(store)) as c:
        yield c


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_unknown_owner_returns_zero_record(client):
    response = client.get(f"/api/stats/{OWNER}")

    assert response.status_code == 200
    assert response.json() == {"totalClosed": 0, "totalReclaimedLamports": 0, "events": []}


def test_put_replaces_record(client, store):
    body = {
        "totalClosed": 3,
        "totalReclaimedLamports": 3_920_000,
        "events": [{"ts": 1700000000000, "lamports": 3_920_000, "signatures": ["sig"], "closed": 3}],
    }

    response = client.put(f"/api/stats/{OWNER}", json=body)

    assert response.status_code == 200
    assert client.get(f"/api/stats/{OWNER}").json() == body
    assert store.records[OWNER].total_closed == 3


def test_inconsistent_totals_rejected(client, store):
    body = {"totalClosed": 10, "totalReclaimedLamports": 0, "events": []}

    response = client.put(f"/api/stats/{OWNER}", json=body)

    assert response.status_code == 422
    assert OWNER not in store.records


def test_negative_values_rejected(client):
    body = {
        "totalClosed": 0,
        "totalReclaimedLamports": -5,
        "events": [{"ts": 1, "lamports": -5, "signatures": [], "closed": 0}],
    }

    assert client.put(f"/api/stats/{OWNER}", json=body).status_code == 422
