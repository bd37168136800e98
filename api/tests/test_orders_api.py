import pathlib
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from starlette.websockets import WebSocketDisconnect

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from config import get_settings  # noqa: E402
from api.app.auth import create_access_token  # noqa: E402
from api.app.db import get_session  # noqa: E402
from api.app.main import app  # noqa: E402
from api.app.repos_sqlalchemy import users_repo_sql  # noqa: E402
from api.app.services import order_lifecycle  # noqa: E402

ITEMS = [{"product_id": 1, "quantity": 2, "price": "9.99"}]


def _auth(email: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': email})}"}


CLIENT = _auth("client@example.com")
OTHER = _auth("other@example.com")
KITCHEN = _auth("kitchen@example.com")
DELIVERY = _auth("delivery@example.com")
ADMIN = _auth("admin@example.com")


@pytest.fixture
async def client(session_factory, principals, redis):
    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.state.redis = redis
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _create(client, headers=CLIENT, **extra) -> dict:
    resp = await client.post("/api/orders", json={"items": ITEMS, **extra}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.mark.anyio
async def test_create_order(client):
    resp = await client.post("/api/orders", json={"items": ITEMS}, headers=CLIENT)
    assert resp.status_code == 201
    body = resp.json()
    assert body["ok"] is True
    order = body["data"]
    assert order["status"] == "PENDING"
    assert order["total_price"] == 19.98
    assert order["user_id"] == 5
    assert order["items"][0]["product_id"] == 1

    points = await client.get("/api/loyalty/points", headers=CLIENT)
    assert points.json()["data"] == {"user_id": 5, "points": 1}


@pytest.mark.anyio
async def test_requests_without_valid_token_are_rejected(client):
    resp = await client.post("/api/orders", json={"items": ITEMS})
    assert resp.status_code == 401
    assert resp.json()["ok"] is False
    assert resp.json()["error"]["code"] == 401

    resp = await client.get(
        "/api/orders/user", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401

    expired = create_access_token(
        {"sub": "client@example.com"}, expires_delta=timedelta(minutes=-1)
    )
    resp = await client.get(
        "/api/orders/user", headers={"Authorization": f"Bearer {expired}"}
    )
    assert resp.status_code == 401

    unknown = _auth("nobody@example.com")
    resp = await client.get("/api/orders/user", headers=unknown)
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_inactive_user_is_rejected(client, session_factory):
    async with session_factory() as s:
        user = await users_repo_sql.find_by_id(s, 5)
        user.active = False
        await s.commit()
    resp = await client.get("/api/orders/user", headers=CLIENT)
    assert resp.status_code == 401


@pytest.mark.anyio
async def test_invalid_payloads(client):
    resp = await client.post("/api/orders", json={"items": []}, headers=CLIENT)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_ARGUMENT"

    soon = (datetime.now(timezone.utc) + timedelta(minutes=5)).isoformat()
    resp = await client.post(
        "/api/orders", json={"items": ITEMS, "scheduled_at": soon}, headers=CLIENT
    )
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_ARGUMENT"

    resp = await client.post(
        "/api/orders", json={"items": ITEMS, "user_id": 6}, headers=CLIENT
    )
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.anyio
async def test_status_updates_map_to_error_codes(client):
    order = await _create(client)
    url = f"/api/orders/{order['id']}"

    resp = await client.put(url, json={"status": "ACCEPTED"}, headers=CLIENT)
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "FORBIDDEN"

    resp = await client.put(url, json={"status": "READY"}, headers=KITCHEN)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "ILLEGAL_TRANSITION"

    resp = await client.put(url, json={"status": "ACCEPTED"}, headers=KITCHEN)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "ACCEPTED"

    resp = await client.put(url, json={"status": "CANCELLED"}, headers=ADMIN)
    assert resp.status_code == 200

    resp = await client.put(url, json={"status": "PENDING"}, headers=ADMIN)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_STATE"

    resp = await client.put("/api/orders/999", json={"status": "ACCEPTED"}, headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"

    resp = await client.put(url, json={"status": "LOST"}, headers=ADMIN)
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_busy_order_returns_retry_hint(client, monkeypatch):
    order = await _create(client)
    monkeypatch.setattr(get_settings(), "lock_timeout_secs", 0.05)

    async with order_lifecycle._order_locks.hold(order["id"]):
        resp = await client.put(
            f"/api/orders/{order['id']}", json={"status": "ACCEPTED"}, headers=KITCHEN
        )
    assert resp.status_code == 503
    error = resp.json()["error"]
    assert error["code"] == "UNAVAILABLE"
    assert error["hint"] == "Retry shortly"

    resp = await client.put(
        f"/api/orders/{order['id']}", json={"status": "READY"}, headers=KITCHEN
    )
    assert "hint" not in resp.json()["error"]


@pytest.mark.anyio
async def test_order_listings_are_role_gated(client):
    mine = await _create(client)
    theirs = await _create(client, headers=OTHER)

    resp = await client.get("/api/orders", headers=CLIENT)
    assert resp.status_code == 403

    resp = await client.get("/api/orders", headers=ADMIN)
    assert [o["id"] for o in resp.json()["data"]] == [theirs["id"], mine["id"]]

    resp = await client.get("/api/orders/user", headers=CLIENT)
    assert [o["id"] for o in resp.json()["data"]] == [mine["id"]]

    resp = await client.get("/api/orders/kitchen", headers=KITCHEN)
    assert len(resp.json()["data"]) == 2
    resp = await client.get("/api/orders/kitchen", headers=ADMIN)
    assert resp.status_code == 200
    resp = await client.get("/api/orders/kitchen", headers=DELIVERY)
    assert resp.status_code == 403

    resp = await client.get("/api/orders/delivery", headers=DELIVERY)
    assert resp.json()["data"] == []


@pytest.mark.anyio
async def test_order_details(client):
    order = await _create(client)
    await client.put(
        f"/api/orders/{order['id']}", json={"status": "ACCEPTED"}, headers=KITCHEN
    )

    resp = await client.get(f"/api/orders/{order['id']}/details", headers=CLIENT)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["order"]["status"] == "ACCEPTED"
    assert [h["status"] for h in data["status_history"]] == ["PENDING", "ACCEPTED"]
    assert data["status_history"][1]["updated_by"] == "kitchen@example.com"

    resp = await client.get(f"/api/orders/{order['id']}/details", headers=OTHER)
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_loyalty_redeem(client, session_factory):
    async with session_factory() as s:
        user = await users_repo_sql.find_by_id(s, 5)
        user.loyalty_points = 30
        await s.commit()

    resp = await client.post("/api/loyalty/redeem", json={"points": 5}, headers=CLIENT)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INVALID_ARGUMENT"

    resp = await client.post("/api/loyalty/redeem", json={"points": 50}, headers=CLIENT)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "INSUFFICIENT_BALANCE"

    resp = await client.post("/api/loyalty/redeem", json={"points": 25}, headers=CLIENT)
    assert resp.status_code == 200
    assert resp.json()["data"] == {"points_redeemed": 25, "discount": 10.0, "points": 5}


@pytest.mark.anyio
async def test_analytics(client):
    await _create(client)
    resp = await client.get("/api/orders/analytics", headers=ADMIN)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["total_orders"] == 1
    assert data["total_revenue"] == 19.98

    resp = await client.get("/api/orders/analytics", headers=CLIENT)
    assert resp.status_code == 403

    resp = await client.get(
        "/api/orders/analytics",
        params={"start_date": "2026-10-02", "end_date": "2026-10-01"},
        headers=ADMIN,
    )
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_health_metrics_and_request_id(client):
    resp = await client.get("/health", headers={"X-Request-ID": "abc"})
    assert resp.json() == {"ok": True, "data": {"status": "ok"}}
    assert resp.headers["X-Request-ID"] == "abc"

    await _create(client)
    resp = await client.get("/metrics")
    assert resp.status_code == 200
    assert "orders_created_total" in resp.text
    assert "order_transitions_total" in resp.text

    resp = await client.get("/missing")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == 404
    assert resp.json()["request_id"] == resp.headers["X-Request-ID"]


def test_websocket_connection_limit(monkeypatch):
    monkeypatch.setattr(get_settings(), "max_ws_conn_per_ip", 0)
    with pytest.raises(WebSocketDisconnect) as exc:
        with TestClient(app).websocket_connect("/ws/orders"):
            pass
    assert exc.value.code == 1013
