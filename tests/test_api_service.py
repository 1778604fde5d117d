import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

import app.routers.subscriptions as subscriptions_router
import app.routers.webhooks as webhooks_router
from app.api_service import app
from billing.razorpay_webhook import RazorpayWebhookHandler
from utils.auth import require_caller


@pytest.fixture
def client(lifecycle, test_settings, monkeypatch):
    monkeypatch.setattr(subscriptions_router, "SubscriptionLifecycle", lambda: lifecycle)
    monkeypatch.setattr(webhooks_router, "RazorpayWebhookHandler", lambda: RazorpayWebhookHandler(lifecycle=lifecycle, settings=test_settings))
    app.dependency_overrides[require_caller] = lambda: "u1"
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_missing_bearer_token_is_unauthenticated(lifecycle, monkeypatch):
    monkeypatch.setattr(subscriptions_router, "SubscriptionLifecycle", lambda: lifecycle)
    r = TestClient(app).post("/api/subs/create", json={"kind": "monthly"})
    assert r.status_code == 401
    assert r.json()["error"] == "unauthenticated"


def test_create_returns_subscription(client, store):
    r = client.post("/api/subs/create", json={"kind": "yearly"})
    assert r.status_code == 200
    assert r.json()["subscriptionId"] == "sub_123"
    assert r.headers["X-Request-Id"]
    assert store.records[("u1", "sub_123")]["kind"] == "yearly"


def test_service_errors_are_classified(client):
    r = client.post("/api/subs/create", json={"kind": "weekly"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_argument"

    r = client.post("/api/subs/verify", json={"razorpay_payment_id": "pay_1", "razorpay_subscription_id": "sub_123", "razorpay_signature": "bad"})
    assert r.status_code == 403
    assert r.json()["error"] == "permission_denied"

    r = client.post("/api/subs/cancel", json={"subscriptionId": "sub_missing", "cancelAtCycleEnd": True})
    assert r.status_code == 404


def test_webhook_route_checks_raw_body_signature(client, store):
    body = json.dumps({
        "event": "subscription.activated",
        "created_at": 1000,
        "payload": {"subscription": {"entity": {"id": "sub_123", "notes": {"uid": "u1"}}}},
    }).encode()
    r = client.post("/webhooks/razorpay", content=body, headers={"X-Razorpay-Signature": "0" * 64})
    assert r.status_code == 401
    assert store.writes == 0

    sig = hmac.new(b"whsec", body, hashlib.sha256).hexdigest()
    r = client.post("/webhooks/razorpay", content=body, headers={"X-Razorpay-Signature": sig, "X-Razorpay-Event-Id": "evt_9"})
    assert r.status_code == 200
    assert r.json()["action"] == "applied"
    assert store.snapshot("u1")["status"] == "active"


def test_jobs_require_operator_token():
    r = TestClient(app).post("/jobs/daily_tip")
    assert r.status_code == 401
    assert r.json()["detail"] == "missing_bearer_token"


def test_events_require_operator_token():
    r = TestClient(app).post("/events/chat_message_updated", json={})
    assert r.status_code == 401
