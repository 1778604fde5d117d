from __future__ import annotations

from typing import Any, Dict, Optional

from google.cloud import firestore
from google.cloud.firestore import Client, Transaction

from billing.transitions import Transition, snapshot_applies, transition_applies
from models.schema import COL_SUBSCRIPTIONS, COL_USERS, FIELD_SUBSCRIPTION
from storage.firestore_client import get_firestore_client


@firestore.transactional
def _apply_in_transaction(transaction: Transaction, user_ref, record_ref, t: Transition) -> Dict[str, bool]:
    # All reads before any write.
    record_snap = record_ref.get(transaction=transaction)
    user_snap = user_ref.get(transaction=transaction)
    current_record = record_snap.to_dict() if record_snap.exists else None
    current_snapshot = ((user_snap.to_dict() or {}).get(FIELD_SUBSCRIPTION) if user_snap.exists else None) or None

    if not transition_applies(current_record, t):
        return {"record": False, "snapshot": False}

    record = dict(t.record)
    record["statusEventAt"] = t.event_at
    record["updatedAt"] = firestore.SERVER_TIMESTAMP
    if t.event_id:
        record["lastEventId"] = t.event_id
    transaction.set(record_ref, record, merge=True)

    wrote_snapshot = snapshot_applies(current_snapshot, t)
    if wrote_snapshot:
        snapshot = {FIELD_SUBSCRIPTION: dict(t.snapshot or {})}
        if (current_snapshot or {}).get("subscriptionId") == t.subscription_id:
            transaction.set(user_ref, snapshot, merge=True)
        else:
            # Handing the snapshot to another subscription: drop the old one's fields.
            transaction.set(user_ref, snapshot, merge=[FIELD_SUBSCRIPTION])
    return {"record": True, "snapshot": wrote_snapshot}


class SubscriptionRepository:
    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_firestore_client()

    def _user_ref(self, user_id: str):
        return self.db.collection(COL_USERS).document(user_id)

    def _record_ref(self, user_id: str, subscription_id: str):
        return self._user_ref(user_id).collection(COL_SUBSCRIPTIONS).document(subscription_id)

    def get_record(self, user_id: str, subscription_id: str) -> Optional[Dict[str, Any]]:
        snap = self._record_ref(user_id, subscription_id).get()
        if not snap.exists:
            return None
        d = snap.to_dict() or {}
        d["subscription_id"] = subscription_id
        return d

    def apply_transition(self, t: Transition) -> Dict[str, bool]:
        """Returns which documents were written: {"record": bool, "snapshot": bool}."""
        transaction = self.db.transaction()
        return _apply_in_transaction(
            transaction,
            self._user_ref(t.user_id),
            self._record_ref(t.user_id, t.subscription_id),
            t,
        )
