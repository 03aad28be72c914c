"""Tests for the HTTP API, backed by an in-memory store."""

import pytest
from fastapi.testclient import TestClient

from spread_core.api.app import app, get_service
from spread_core.config.schema import AppConfig
from spread_core.settlement.service import SettlementService
from spread_core.store import InMemoryStore


@pytest.fixture()
def service():
    svc = SettlementService(InMemoryStore(), AppConfig(), sleep=lambda _s: None)
    app.dependency_overrides[get_service] = lambda: svc
    yield svc
    app.dependency_overrides.clear()


@pytest.fixture()
def client(service):
    return TestClient(app)


def _place(client, **overrides):
    body = {
        "user_id": "u1",
        "match_id": "evt-1",
        "match_name": "Arsenal vs Chelsea",
        "bet_type": "buy",
        "price": 3.0,
        "stake_per_point": 10,
        "makeup_limit": 20,
    }
    body.update(overrides)
    return client.post("/api/positions", json=body)


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_service_unavailable_without_startup():
    resp = TestClient(app).get("/api/accounts/u1")
    assert resp.status_code == 503


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------


def test_place_bet(client):
    resp = _place(client)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "open"
    assert data["collateralHeld"] == 200
    assert data["market"] == "Arsenal vs Chelsea Spread"
    assert client.get("/api/accounts/u1").json()["balance"] == 800


def test_place_bet_insufficient_balance(client):
    resp = _place(client, stake_per_point=60)
    assert resp.status_code == 402
    assert "Insufficient balance" in resp.json()["detail"]


def test_place_bet_rejects_bad_body(client):
    assert _place(client, bet_type="long").status_code == 422
    assert _place(client, stake_per_point=0).status_code == 422


def test_get_and_list_positions(client):
    pos_id = _place(client).json()["id"]
    _place(client, user_id="u2", match_id="evt-2")

    assert client.get(f"/api/positions/{pos_id}").json()["id"] == pos_id
    assert client.get("/api/positions/bet-missing").status_code == 404

    listed = client.get("/api/positions", params={"user_id": "u1"}).json()["positions"]
    assert [p["id"] for p in listed] == [pos_id]
    assert client.get("/api/positions", params={"status": "settled"}).json()["positions"] == []


def test_partial_close(client):
    pos_id = _place(client).json()["id"]
    resp = client.post(f"/api/positions/{pos_id}/close", json={"percent": 50, "current_price": 3.2})
    assert resp.status_code == 200
    data = resp.json()
    assert data["newStatus"] == "partially_closed"
    assert data["profitLoss"] == pytest.approx(1.0)
    assert data["collateralReleased"] == pytest.approx(100.0)
    assert data["position"]["stakeOpen"] == pytest.approx(5.0)
    assert client.get("/api/accounts/u1").json()["balance"] == pytest.approx(901.0)


def test_close_invalid_percent(client):
    pos_id = _place(client).json()["id"]
    resp = client.post(f"/api/positions/{pos_id}/close", json={"percent": 120, "current_price": 3.2})
    assert resp.status_code == 422


def test_close_unknown_position(client):
    resp = client.post("/api/positions/bet-missing/close", json={"current_price": 3.2})
    assert resp.status_code == 404


def test_cancel_then_close_conflicts(client):
    pos_id = _place(client).json()["id"]
    assert client.post(f"/api/positions/{pos_id}/cancel").json()["newStatus"] == "cancelled"
    resp = client.post(f"/api/positions/{pos_id}/close", json={"current_price": 3.2})
    assert resp.status_code == 409


# ---------------------------------------------------------------------------
# Grading & accounts
# ---------------------------------------------------------------------------


def test_grade_event(client):
    _place(client)
    _place(client, user_id="u2", bet_type="sell")
    resp = client.post("/api/events/evt-1/grade", json={"final_result": 3.5, "sport": "soccer"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["eventId"] == "evt-1"
    assert data["graded"] == 2
    credited = {r["userId"]: r["amountCredited"] for r in data["results"]}
    assert credited == {"u1": pytest.approx(205.0), "u2": pytest.approx(195.0)}

    again = client.post("/api/events/evt-1/grade", json={"final_result": 3.5})
    assert again.json()["graded"] == 0


def test_summary_and_upgrade(client):
    _place(client)
    summary = client.get("/api/accounts/u1/summary").json()
    assert summary["lockedCollateral"] == 200
    assert summary["openPositions"] == 1
    assert summary["promptUpgrade"] is False

    resp = client.post("/api/accounts/u1/upgrade", json={"wallet_address": "0xabc"})
    assert resp.status_code == 200
    assert resp.json()["accountType"] == "cash"
    assert resp.json()["balance"] == 50

    assert client.post("/api/accounts/u1/upgrade", json={"wallet_address": "0xabc"}).status_code == 422
