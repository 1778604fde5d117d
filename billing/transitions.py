from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from models.schema import STATUS_ACTIVE


@dataclass
class Transition:
    """
    One status change for a subscription, applied to the Record and (usually)
    the owning user's Snapshot in a single transaction.

    event_at is epoch seconds: wall clock for client calls, the gateway's
    created_at for webhook events. Older transitions never overwrite newer ones.
    """

    user_id: str
    subscription_id: str
    record: Dict[str, Any]
    snapshot: Optional[Dict[str, Any]] = None
    event_at: int = 0
    event_id: str = ""
    source: str = ""
    status: str = field(init=False, default="")

    def __post_init__(self) -> None:
        self.status = str(self.record.get("status") or "")


def transition_applies(current_record: Optional[Dict[str, Any]], t: Transition) -> bool:
    if not current_record:
        return True
    if t.event_id and current_record.get("lastEventId") == t.event_id:
        return False
    stored_at = int(current_record.get("statusEventAt") or 0)
    return t.event_at >= stored_at


def snapshot_applies(current_snapshot: Optional[Dict[str, Any]], t: Transition) -> bool:
    if t.snapshot is None:
        return False
    current_sub_id = (current_snapshot or {}).get("subscriptionId")
    if not current_sub_id or current_sub_id == t.subscription_id:
        return True
    # A different subscription owns the snapshot; only a newly activated one may replace it.
    return t.status == STATUS_ACTIVE
