import pytest

from repos.tip_repo import _advance_in_transaction
from tips.rotation import DailyTipJob, build_tip_notification, next_day


class FakeTipRepo:
    """Runs the real advance transaction body against an in-memory rotation doc."""

    def __init__(self, fs, day=None, tips=None):
        self.fs = fs
        self.docs = {} if day is None else {"tip_rotation": {"day": day}}
        self.tips = tips or {}

    @property
    def day(self):
        return (self.docs.get("tip_rotation") or {}).get("day")

    def advance(self, total_days):
        ref = self.fs.ref(self.docs, "tip_rotation")
        return _advance_in_transaction.to_wrap(self.fs.transaction(), ref, total_days)

    def get_tip(self, day):
        return self.tips.get(day)


class FakeDispatcher:
    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    def send_topic(self, topic, title, body, data=None, android_channel_id=""):
        self.sent.append({"topic": topic, "title": title, "body": body, "data": data, "channel": android_channel_id})
        return {"ok": self.ok, "message_id": "projects/p/messages/1" if self.ok else None}


def test_next_day_advances_within_cycle():
    for day in range(1, 30):
        assert next_day(day, 30) == day + 1


def test_next_day_wraps_at_total():
    assert next_day(30, 30) == 1


def test_next_day_defaults_and_out_of_range():
    assert next_day(None, 30) == 2
    assert next_day(0, 30) == 1
    assert next_day(31, 30) == 1
    assert next_day("garbage", 30) == 1
    assert next_day(1, 1) == 1


def test_next_day_rejects_empty_cycle():
    with pytest.raises(ValueError):
        next_day(1, 0)


def test_full_cycle_visits_each_day_once():
    day, seen = 5, []
    for _ in range(5):
        day = next_day(day, 5)
        seen.append(day)
    assert seen == [1, 2, 3, 4, 5]


def test_build_tip_notification():
    note = build_tip_notification({"title": " Hydrate ", "body": "Drink water.\n"}, 3)
    assert note == {"title": "Hydrate", "body": "Drink water.", "data": {"route": "/tips", "day": "3"}}


def test_daily_tip_job_broadcasts_tip(test_settings, fake_firestore):
    repo = FakeTipRepo(fake_firestore, day=2, tips={3: {"title": "Sleep", "body": "Eight hours."}})
    disp = FakeDispatcher()
    out = DailyTipJob(repo=repo, dispatcher=disp, settings=test_settings).run()
    assert out == {"ok": True, "day": 3, "sent": True, "message_id": "projects/p/messages/1"}
    assert disp.sent[0]["topic"] == "daily_tips"
    assert disp.sent[0]["body"] == "Eight hours."
    assert disp.sent[0]["data"] == {"route": "/tips", "day": "3"}


def test_daily_tip_job_wraps_counter(test_settings, fake_firestore):
    repo = FakeTipRepo(fake_firestore, day=5, tips={1: {"title": "Walk", "body": "Ten minutes."}})
    out = DailyTipJob(repo=repo, dispatcher=FakeDispatcher(), settings=test_settings).run()
    assert out["day"] == 1


def test_daily_tip_job_missing_tip_still_advances(test_settings, fake_firestore):
    repo = FakeTipRepo(fake_firestore, day=1)
    disp = FakeDispatcher()
    out = DailyTipJob(repo=repo, dispatcher=disp, settings=test_settings).run()
    assert out == {"ok": True, "day": 2, "sent": False, "message_id": None}
    assert repo.day == 2
    assert disp.sent == []


def test_daily_tip_job_reports_send_failure(test_settings, fake_firestore):
    repo = FakeTipRepo(fake_firestore, day=1, tips={2: {"body": "Stretch."}})
    out = DailyTipJob(repo=repo, dispatcher=FakeDispatcher(ok=False), settings=test_settings).run()
    assert out["sent"] is False


def test_advance_transaction_reads_then_merges_counter(fake_firestore):
    docs = {"tip_rotation": {"day": 3, "note": "keep"}}
    tx = fake_firestore.transaction()
    day = _advance_in_transaction.to_wrap(tx, fake_firestore.ref(docs, "tip_rotation"), 5)
    assert day == 4
    assert tx.reads == ["tip_rotation"]
    [(key, data, merge)] = tx.writes
    assert key == "tip_rotation"
    assert merge is True
    assert data["day"] == 4
    assert data["updatedAt"]
    assert docs["tip_rotation"]["note"] == "keep"


def test_advance_transaction_starts_absent_counter_at_two(fake_firestore):
    docs = {}
    day = _advance_in_transaction.to_wrap(fake_firestore.transaction(), fake_firestore.ref(docs, "tip_rotation"), 30)
    assert day == 2
    assert docs["tip_rotation"]["day"] == 2
