from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from google.cloud import firestore

from billing.razorpay_gateway import RazorpayGateway
from billing.transitions import Transition
from config.settings import Settings, settings as default_settings
from models.schema import (
    PLAN_KINDS,
    STATUS_ACTIVE,
    STATUS_CANCEL_SCHEDULED,
    STATUS_CREATED,
    STATUS_INACTIVE,
)
from security.signatures import verify_payment_signature
from utils.errors import (
    InvalidArgument,
    InvalidConfig,
    NotFound,
    PermissionDenied,
    PreconditionFailed,
    Unauthenticated,
    UpstreamError,
)

log = logging.getLogger("drk.subscriptions")

PAYMENT_SETTLED = "captured"

WEBHOOK_STATUS: Dict[str, str] = {
    "subscription.activated": STATUS_ACTIVE,
    "subscription.charged": STATUS_ACTIVE,
    "invoice.paid": STATUS_ACTIVE,
    "subscription.halted": STATUS_INACTIVE,
    "subscription.cancelled": STATUS_INACTIVE,
}

# Each webhook resource kind nests the ids differently.
_WEBHOOK_ENTITIES = ("subscription", "invoice", "payment")


def _entity(event: Dict[str, Any], kind: str) -> Dict[str, Any]:
    payload = event.get("payload") or {}
    return ((payload.get(kind) or {}).get("entity") or {}) if isinstance(payload, dict) else {}


def _note(event: Dict[str, Any], key: str) -> Optional[str]:
    for name in _WEBHOOK_ENTITIES:
        notes = _entity(event, name).get("notes") or {}
        if isinstance(notes, dict) and notes.get(key):
            return str(notes[key])
    return None


def extract_webhook_ids(event: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Returns (subscription_id, user_id) from a Razorpay webhook body; either may be None."""
    sub_id = (
        _entity(event, "subscription").get("id")
        or _entity(event, "invoice").get("subscription_id")
        or _entity(event, "payment").get("subscription_id")
        or None
    )
    return (str(sub_id) if sub_id else None, _note(event, "uid"))


def _to_timestamp(epoch: Any) -> Optional[datetime]:
    try:
        v = int(epoch)
    except (TypeError, ValueError):
        return None
    if v <= 0:
        return None
    return datetime.fromtimestamp(v, tz=timezone.utc)


class SubscriptionLifecycle:
    """
    Owns the status of a user's paid subscription across three triggers:
    client create/verify/cancel calls and gateway webhooks.

    Every transition goes through SubscriptionRepository.apply_transition, which
    writes the per-subscription Record and the user's embedded Snapshot in one
    transaction and drops transitions older than what is already stored.
    """

    def __init__(
        self,
        store=None,
        gateway: Optional[RazorpayGateway] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or default_settings
        if store is None:
            from repos.subscription_repo import SubscriptionRepository
            store = SubscriptionRepository()
        self.store = store
        self.gateway = gateway or RazorpayGateway(settings=self.settings)
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def create(self, uid: str, kind: Optional[str] = None) -> Dict[str, Any]:
        if not uid:
            raise Unauthenticated("Sign in required")
        kind = str(kind or "monthly").strip().lower()
        if kind not in PLAN_KINDS:
            raise InvalidArgument("kind must be 'monthly' or 'yearly'", context={"user_id": uid, "kind": kind})

        plan_id = self.settings.plan_id_for(kind)
        if not plan_id:
            raise InvalidConfig("Plan ID not configured", context={"user_id": uid, "kind": kind})
        total_count = self.settings.total_count_for(kind)

        sub = self.gateway.create_subscription(
            plan_id=plan_id,
            total_count=total_count,
            customer_notify=True,
            notes={"uid": uid, "kind": kind},
        )
        sub_id = str(sub.get("id") or "")
        if not sub_id:
            raise UpstreamError("Payment gateway returned no subscription id", context={"user_id": uid, "plan_id": plan_id})
        status = str(sub.get("status") or STATUS_CREATED)

        self.store.apply_transition(Transition(
            user_id=uid,
            subscription_id=sub_id,
            record={
                "createdAt": firestore.SERVER_TIMESTAMP,
                "status": status,
                "planId": plan_id,
                "kind": kind,
                "totalCount": total_count,
            },
            event_at=self._now(),
            source="create",
        ))
        log.info(
            "subscription_created",
            extra={"extra": {"event": "subscription_created", "user_id": uid, "subscription_id": sub_id, "kind": kind, "status": status}},
        )
        return {"subscriptionId": sub_id, "keyId": self.gateway.key_id, "kind": kind, "status": status}

    def verify(self, uid: str, payment_id: str, subscription_id: str, signature: str) -> Dict[str, Any]:
        if not uid:
            raise Unauthenticated("Sign in required")
        if not (payment_id and subscription_id and signature):
            raise InvalidArgument("Missing verification fields", context={"user_id": uid})
        secret = self.settings.RAZORPAY_KEY_SECRET
        if not secret:
            raise InvalidConfig("Payment verification secret not configured")

        ctx = {"user_id": uid, "subscription_id": subscription_id, "payment_id": payment_id}
        if not verify_payment_signature(payment_id, subscription_id, signature, secret):
            log.warning("payment_signature_mismatch", extra={"extra": {"event": "payment_signature_mismatch", **ctx}})
            raise PermissionDenied("Invalid signature", context=ctx)

        record = self.store.get_record(uid, subscription_id)
        if not record:
            raise NotFound("Subscription not found", context=ctx)
        # A signed callback stays valid forever; once its payment has been applied
        # and the subscription moved on, replaying it must not reactivate anything.
        if record.get("lastPaymentId") == payment_id and record.get("status") != STATUS_ACTIVE:
            log.warning(
                "payment_replay_rejected",
                extra={"extra": {"event": "payment_replay_rejected", "record_status": record.get("status"), **ctx}},
            )
            raise PreconditionFailed("Payment already applied to this subscription", context=ctx)

        payment = self.gateway.fetch_payment(payment_id)
        if not payment:
            raise NotFound("Payment not found", context=ctx)
        linked = payment.get("subscription_id")
        if linked and linked != subscription_id:
            raise PermissionDenied("Payment does not belong to this subscription", context={**ctx, "linked_subscription_id": linked})
        payment_status = str(payment.get("status") or "")
        if payment_status != PAYMENT_SETTLED:
            log.info("payment_not_settled", extra={"extra": {"event": "payment_not_settled", "payment_status": payment_status, **ctx}})
            raise PreconditionFailed(f"Payment not captured yet (status={payment_status or 'unknown'})", context=ctx)

        kind = record.get("kind") or "monthly"
        paid = _to_timestamp(payment.get("created_at"))
        written = self.store.apply_transition(Transition(
            user_id=uid,
            subscription_id=subscription_id,
            record={
                "status": STATUS_ACTIVE,
                "verified": True,
                "verifiedAt": firestore.SERVER_TIMESTAMP,
                "lastPaymentId": payment_id,
            },
            snapshot={
                "status": STATUS_ACTIVE,
                "subscriptionId": subscription_id,
                "plan": self.settings.plan_label_for(kind),
                "activatedAt": firestore.SERVER_TIMESTAMP,
            },
            # Ordered by when the payment happened, not when the client reported it.
            event_at=int(paid.timestamp()) if paid else self._now(),
            source="verify",
        ))
        log.info("subscription_verified", extra={"extra": {"event": "subscription_verified", "kind": kind, "written": written, **ctx}})
        status = STATUS_ACTIVE
        if not written.get("record"):
            status = str((self.store.get_record(uid, subscription_id) or {}).get("status") or STATUS_ACTIVE)
        return {"ok": True, "paymentStatus": payment_status, "status": status, "subscriptionId": subscription_id}

    def cancel(self, uid: str, subscription_id: str, cancel_at_cycle_end: bool = False) -> Dict[str, Any]:
        if not uid:
            raise Unauthenticated("Sign in required")
        if not subscription_id:
            raise InvalidArgument("subscriptionId required", context={"user_id": uid})
        ctx = {"user_id": uid, "subscription_id": subscription_id}
        if not self.store.get_record(uid, subscription_id):
            raise NotFound("Subscription not found", context=ctx)

        at_end = bool(cancel_at_cycle_end)
        res = self.gateway.cancel_subscription(subscription_id, at_end)
        gateway_status = str(res.get("status") or "")

        # The cancel response does not carry the cycle end reliably; re-fetch.
        fetched = self.gateway.fetch_subscription(subscription_id)
        ends_at = _to_timestamp(fetched.get("current_end"))
        status = STATUS_CANCEL_SCHEDULED if at_end else (gateway_status or STATUS_INACTIVE)

        self.store.apply_transition(Transition(
            user_id=uid,
            subscription_id=subscription_id,
            record={
                "status": status,
                "gatewayStatus": gateway_status,
                "canceledAt": firestore.SERVER_TIMESTAMP,
                "cancelAtCycleEnd": at_end,
                "hasScheduledChanges": bool(fetched.get("has_scheduled_changes")),
                "nextRenewalEndsAt": ends_at,
            },
            snapshot={
                "status": status,
                "subscriptionId": subscription_id,
                "canceledAt": firestore.SERVER_TIMESTAMP,
                "nextRenewalEndsAt": ends_at,
            },
            event_at=self._now(),
            source="cancel",
        ))
        log.info(
            "subscription_canceled",
            extra={"extra": {"event": "subscription_canceled", "status": status, "gateway_status": gateway_status, "at_cycle_end": at_end, **ctx}},
        )
        return {
            "ok": True,
            "status": status,
            "gatewayStatus": gateway_status,
            "nextRenewalEndsAt": ends_at.isoformat() if ends_at else None,
        }

    def reconcile(self, event: Dict[str, Any], event_id: str = "") -> Dict[str, Any]:
        event_name = str(event.get("event") or "")
        sub_id, uid = extract_webhook_ids(event)
        ctx = {"event_type": event_name, "event_id": event_id, "subscription_id": sub_id, "user_id": uid}

        if not sub_id or not uid:
            log.warning("webhook_missing_ids", extra={"extra": {"event": "webhook_missing_ids", **ctx}})
            return {"ok": True, "action": "ignored", "reason": "missing_ids"}

        status = WEBHOOK_STATUS.get(event_name)
        if not status:
            log.info("webhook_event_unmapped", extra={"extra": {"event": "webhook_event_unmapped", **ctx}})
            return {"ok": True, "action": "ignored", "reason": "unmapped_event"}

        created = _to_timestamp(event.get("created_at"))
        event_at = int(created.timestamp()) if created else self._now()
        snapshot: Dict[str, Any] = {
            "status": status,
            "subscriptionId": sub_id,
            "lastWebhookAt": firestore.SERVER_TIMESTAMP,
        }
        kind = _note(event, "kind")
        if status == STATUS_ACTIVE and kind in PLAN_KINDS:
            snapshot["plan"] = self.settings.plan_label_for(kind)

        written = self.store.apply_transition(Transition(
            user_id=uid,
            subscription_id=sub_id,
            record={
                "status": status,
                "lastWebhookAt": firestore.SERVER_TIMESTAMP,
                "lastWebhookEvent": event_name,
            },
            snapshot=snapshot,
            event_at=event_at,
            event_id=event_id,
            source="webhook",
        ))
        action = "applied" if written.get("record") else "stale"
        log.info("webhook_reconciled", extra={"extra": {"event": "webhook_reconciled", "action": action, "status": status, "written": written, **ctx}})
        return {"ok": True, "action": action, "status": status}
