from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException

from billing.subscriptions import SubscriptionLifecycle
from config.settings import Settings, settings as default_settings
from security.signatures import verify_webhook_signature

log = logging.getLogger("drk.webhook")


class RazorpayWebhookHandler:
    """
    Authenticates a Razorpay callback against the dashboard secret and hands
    it to the lifecycle manager. Non-200 only for auth/parse/store failures;
    events we do not act on get 200 so Razorpay does not retry them.
    """

    def __init__(self, lifecycle: Optional[SubscriptionLifecycle] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self._lifecycle = lifecycle

    @property
    def lifecycle(self) -> SubscriptionLifecycle:
        if self._lifecycle is None:
            self._lifecycle = SubscriptionLifecycle(settings=self.settings)
        return self._lifecycle

    def handle(self, payload: bytes, signature: Optional[str], event_id: Optional[str] = None) -> Dict[str, Any]:
        secret = self.settings.RAZORPAY_WEBHOOK_SECRET
        if not secret:
            log.error("webhook_secret_not_configured")
            raise HTTPException(status_code=500, detail="webhook_secret_not_set")
        if not signature:
            raise HTTPException(status_code=400, detail="missing_signature_header")
        if not verify_webhook_signature(payload, signature, secret):
            log.warning("webhook_signature_invalid", extra={"extra": {"event_id": event_id or ""}})
            raise HTTPException(status_code=401, detail="invalid_signature")

        try:
            event = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            raise HTTPException(status_code=400, detail="invalid_json")
        if not isinstance(event, dict):
            raise HTTPException(status_code=400, detail="invalid_json")

        try:
            result = self.lifecycle.reconcile(event, event_id=event_id or "")
        except Exception as e:
            log.error(
                "webhook_processing_failed",
                extra={"extra": {"event_id": event_id or "", "event_type": event.get("event"), "error_type": type(e).__name__}},
                exc_info=True,
            )
            raise HTTPException(status_code=500, detail="webhook_processing_failed")

        return {"ok": True, "event_type": event.get("event"), "event_id": event_id or "", **result}
