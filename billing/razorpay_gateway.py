from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError

from config.settings import Settings, settings as default_settings
from utils.errors import InvalidConfig, NotFound, UpstreamError

log = logging.getLogger("drk.razorpay")


def _map_error(op: str, e: Exception, context: Dict[str, Any]) -> Exception:
    message = str(e) or type(e).__name__
    log.error(
        "razorpay_call_failed",
        extra={"extra": {"event": "razorpay_call_failed", "op": op, "error_type": type(e).__name__, "message": message, **context}},
    )
    # Razorpay reports unknown ids as BAD_REQUEST_ERROR "... does not exist".
    if isinstance(e, BadRequestError) and "does not exist" in message.lower():
        return NotFound(f"{op}: resource not found", context=context)
    if isinstance(e, BadRequestError):
        return UpstreamError(f"{op}: rejected by payment gateway", context=context)
    return UpstreamError(f"{op}: payment gateway unavailable", context=context)


class RazorpayGateway:
    """The four Razorpay subscription calls this backend relies on."""

    def __init__(self, client: Optional[razorpay.Client] = None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self._client = client

    @property
    def key_id(self) -> str:
        return self.settings.RAZORPAY_KEY_ID

    @property
    def client(self) -> razorpay.Client:
        if self._client is None:
            if not (self.settings.RAZORPAY_KEY_ID and self.settings.RAZORPAY_KEY_SECRET):
                raise InvalidConfig("Payment gateway keys not configured")
            self._client = razorpay.Client(auth=(self.settings.RAZORPAY_KEY_ID, self.settings.RAZORPAY_KEY_SECRET))
        return self._client

    def create_subscription(self, plan_id: str, total_count: int, customer_notify: bool, notes: Dict[str, str]) -> Dict[str, Any]:
        data = {
            "plan_id": plan_id,
            "total_count": int(total_count),
            "customer_notify": 1 if customer_notify else 0,
            "notes": notes,
        }
        try:
            return self.client.subscription.create(data=data)
        except (BadRequestError, GatewayError, ServerError, requests.RequestException) as e:
            raise _map_error("create_subscription", e, {"plan_id": plan_id, "user_id": notes.get("uid", "")})

    def fetch_payment(self, payment_id: str) -> Dict[str, Any]:
        try:
            return self.client.payment.fetch(payment_id)
        except (BadRequestError, GatewayError, ServerError, requests.RequestException) as e:
            raise _map_error("fetch_payment", e, {"payment_id": payment_id})

    def cancel_subscription(self, subscription_id: str, at_cycle_end: bool) -> Dict[str, Any]:
        try:
            return self.client.subscription.cancel(subscription_id, {"cancel_at_cycle_end": 1 if at_cycle_end else 0})
        except (BadRequestError, GatewayError, ServerError, requests.RequestException) as e:
            raise _map_error("cancel_subscription", e, {"subscription_id": subscription_id})

    def fetch_subscription(self, subscription_id: str) -> Dict[str, Any]:
        try:
            return self.client.subscription.fetch(subscription_id)
        except (BadRequestError, GatewayError, ServerError, requests.RequestException) as e:
            raise _map_error("fetch_subscription", e, {"subscription_id": subscription_id})
