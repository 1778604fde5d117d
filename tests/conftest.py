import itertools
from types import SimpleNamespace
from typing import Any, Dict, List, Tuple

import pytest

from billing.transitions import Transition
from config.settings import Settings
from repos.subscription_repo import _apply_in_transaction

CURRENT_END = 1767225600  # 2026-01-01T00:00:00Z


def _copy(value):
    # Sentinels (SERVER_TIMESTAMP) must keep their identity.
    if isinstance(value, dict):
        return {k: _copy(v) for k, v in value.items()}
    return value


def _deep_merge(dst: Dict[str, Any], src: Dict[str, Any]) -> None:
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _deep_merge(dst[k], v)
        else:
            dst[k] = _copy(v)


class FakeSnapshot:
    def __init__(self, data):
        self._data = data
        self.exists = data is not None

    def to_dict(self):
        return _copy(self._data) if self._data is not None else None


class FakeTransaction:
    """Records reads and writes; applies set() with Firestore merge semantics."""

    def __init__(self):
        self.reads: List[Any] = []
        self.writes: List[Tuple[Any, Dict[str, Any], Any]] = []

    def set(self, ref, data, merge=False):
        self.writes.append((ref.key, data, merge))
        if merge is True:
            _deep_merge(ref.docs.setdefault(ref.key, {}), data)
        elif merge:
            # merge=[field, ...] replaces each named field wholesale.
            doc = ref.docs.setdefault(ref.key, {})
            for path in merge:
                doc[path] = _copy(data[path])
        else:
            ref.docs[ref.key] = _copy(data)


class FakeDocRef:
    def __init__(self, docs: Dict[Any, Dict[str, Any]], key):
        self.docs = docs
        self.key = key

    def get(self, transaction=None):
        if transaction is not None:
            assert not transaction.writes, "read after write inside a transaction"
            transaction.reads.append(self.key)
        return FakeSnapshot(self.docs.get(self.key))


class FakeSubscriptionStore:
    """In-memory documents driven by the real transaction body of SubscriptionRepository."""

    def __init__(self):
        self.records: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.writes = 0
        self.transactions: List[FakeTransaction] = []

    def get_record(self, user_id, subscription_id):
        rec = self.records.get((user_id, subscription_id))
        return dict(rec) if rec else None

    def snapshot(self, user_id):
        return (self.users.get(user_id) or {}).get("subscription")

    def apply_transition(self, t: Transition):
        tx = FakeTransaction()
        out = _apply_in_transaction.to_wrap(
            tx,
            FakeDocRef(self.users, t.user_id),
            FakeDocRef(self.records, (t.user_id, t.subscription_id)),
            t,
        )
        self.transactions.append(tx)
        self.writes += len(tx.writes)
        return out


class FakeGateway:
    key_id = "rzp_test_key"

    def __init__(self):
        self.calls = []
        self.payments: Dict[str, Dict[str, Any]] = {}
        self.cancel_status = "active"
        self.current_end = CURRENT_END

    def create_subscription(self, plan_id, total_count, customer_notify, notes):
        self.calls.append(("create", plan_id, total_count, notes))
        return {"id": "sub_123", "status": "created", "plan_id": plan_id}

    def fetch_payment(self, payment_id):
        self.calls.append(("fetch_payment", payment_id))
        return self.payments.get(payment_id)

    def cancel_subscription(self, subscription_id, at_cycle_end):
        self.calls.append(("cancel", subscription_id, at_cycle_end))
        return {"id": subscription_id, "status": self.cancel_status}

    def fetch_subscription(self, subscription_id):
        self.calls.append(("fetch_subscription", subscription_id))
        return {"id": subscription_id, "status": "active", "current_end": self.current_end, "has_scheduled_changes": True}


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        RAZORPAY_KEY_ID="rzp_test_key",
        RAZORPAY_KEY_SECRET="key_secret",
        RAZORPAY_WEBHOOK_SECRET="whsec",
        RAZORPAY_PLAN_MONTHLY="plan_monthly",
        RAZORPAY_PLAN_YEARLY="plan_yearly",
        GEMINI_API_KEY="gem-key",
        TIP_TOTAL_DAYS=5,
    )


@pytest.fixture
def store():
    return FakeSubscriptionStore()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def clock():
    ticks = itertools.count(1_700_000_000, 10)
    return lambda: next(ticks)


@pytest.fixture
def lifecycle(store, gateway, test_settings, clock):
    from billing.subscriptions import SubscriptionLifecycle
    return SubscriptionLifecycle(store=store, gateway=gateway, settings=test_settings, clock=clock)


@pytest.fixture
def fake_firestore():
    return SimpleNamespace(ref=FakeDocRef, transaction=FakeTransaction)
