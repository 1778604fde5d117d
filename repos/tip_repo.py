from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from google.cloud import firestore
from google.cloud.firestore import Client, Transaction

from models.schema import COL_SYSTEM, COL_TIPS, DOC_TIP_ROTATION
from storage.firestore_client import get_firestore_client
from tips.rotation import next_day


@firestore.transactional
def _advance_in_transaction(transaction: Transaction, ref, total_days: int) -> int:
    snap = ref.get(transaction=transaction)
    data = snap.to_dict() if snap.exists else {}
    day = next_day(data.get("day"), total_days)
    transaction.set(ref, {
        "day": day,
        "updatedAt": datetime.now(timezone.utc).isoformat(),
    }, merge=True)
    return day


class TipRepository:
    def __init__(self, db: Optional[Client] = None):
        self.db = db or get_firestore_client()

    def advance(self, total_days: int) -> int:
        ref = self.db.collection(COL_SYSTEM).document(DOC_TIP_ROTATION)
        return _advance_in_transaction(self.db.transaction(), ref, total_days)

    def get_tip(self, day: int) -> Optional[Dict[str, Any]]:
        snap = self.db.collection(COL_TIPS).document(str(day)).get()
        if not snap.exists:
            return None
        d = snap.to_dict() or {}
        d["day"] = day
        return d
