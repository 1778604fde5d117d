import hashlib
import hmac
import json

import pytest
from fastapi import HTTPException

from billing.razorpay_webhook import RazorpayWebhookHandler


def _sign(body: bytes, secret: str = "whsec") -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _body(event="subscription.charged", uid="u1", created_at=1000) -> bytes:
    return json.dumps({
        "entity": "event",
        "event": event,
        "created_at": created_at,
        "payload": {
            "subscription": {"entity": {"id": "sub_123", "notes": {"uid": uid, "kind": "yearly"} if uid else {}}},
        },
    }).encode()


@pytest.fixture
def handler(lifecycle, test_settings):
    return RazorpayWebhookHandler(lifecycle=lifecycle, settings=test_settings)


def test_missing_signature_is_rejected_without_writes(handler, store):
    with pytest.raises(HTTPException) as ei:
        handler.handle(_body(), None)
    assert ei.value.status_code == 400
    assert store.writes == 0


def test_invalid_signature_is_rejected_without_writes(handler, store):
    body = _body()
    with pytest.raises(HTTPException) as ei:
        handler.handle(body, _sign(body, "not-the-secret"))
    assert ei.value.status_code == 401
    assert store.writes == 0


def test_unconfigured_secret_fails_closed(lifecycle, test_settings, store):
    test_settings.RAZORPAY_WEBHOOK_SECRET = ""
    body = _body()
    with pytest.raises(HTTPException) as ei:
        RazorpayWebhookHandler(lifecycle=lifecycle, settings=test_settings).handle(body, _sign(body))
    assert ei.value.status_code == 500
    assert store.writes == 0


def test_signed_garbage_is_bad_request(handler):
    body = b"not json"
    with pytest.raises(HTTPException) as ei:
        handler.handle(body, _sign(body))
    assert ei.value.status_code == 400


def test_unresolvable_ids_are_acknowledged(handler, store):
    body = _body(uid=None)
    out = handler.handle(body, _sign(body))
    assert out["ok"] is True
    assert out["action"] == "ignored"
    assert store.writes == 0


def test_charged_event_activates_record_and_snapshot(handler, store):
    body = _body()
    out = handler.handle(body, _sign(body), event_id="evt_1")
    assert out["action"] == "applied"
    assert store.records[("u1", "sub_123")]["status"] == "active"
    assert store.records[("u1", "sub_123")]["lastEventId"] == "evt_1"
    snap = store.snapshot("u1")
    assert snap["status"] == "active"
    assert snap["plan"] == "yearly_5499"


def test_store_failure_is_server_error(test_settings):
    class Boom:
        def reconcile(self, event, event_id=""):
            raise RuntimeError("firestore down")

    body = _body()
    with pytest.raises(HTTPException) as ei:
        RazorpayWebhookHandler(lifecycle=Boom(), settings=test_settings).handle(body, _sign(body))
    assert ei.value.status_code == 500
