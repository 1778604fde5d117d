from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from config.settings import Settings, settings as default_settings

log = logging.getLogger("drk.tips")


def next_day(day: Any, total_days: int) -> int:
    """
    Advance a 1-based day index through a cycle of total_days.
    An absent counter counts as day 1; a value outside [1, total_days] restarts the cycle.
    """
    if total_days < 1:
        raise ValueError("total_days must be >= 1")
    try:
        current = int(day) if day is not None else 1
    except (TypeError, ValueError):
        current = total_days
    if current < 1 or current >= total_days:
        return 1
    return current + 1


def build_tip_notification(tip: Dict[str, Any], day: int) -> Dict[str, Any]:
    title = str(tip.get("title") or "Tip of the day").strip()
    body = str(tip.get("body") or tip.get("text") or "").strip()
    return {"title": title, "body": body, "data": {"route": "/tips", "day": str(day)}}


class DailyTipJob:
    """Advances the rotation counter and broadcasts that day's tip to the topic."""

    def __init__(self, repo=None, dispatcher=None, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        if repo is None:
            from repos.tip_repo import TipRepository
            repo = TipRepository()
        if dispatcher is None:
            from messaging.dispatcher import MessageDispatcher
            dispatcher = MessageDispatcher()
        self.repo = repo
        self.dispatcher = dispatcher

    def run(self) -> Dict[str, Any]:
        total = int(self.settings.TIP_TOTAL_DAYS)
        day = self.repo.advance(total)
        log.info("tip_rotation_advanced", extra={"extra": {"event": "tip_rotation_advanced", "day": day, "total_days": total}})

        tip = self.repo.get_tip(day)
        if not tip:
            log.warning("tip_missing", extra={"extra": {"event": "tip_missing", "day": day}})
            return {"ok": True, "day": day, "sent": False, "message_id": None}

        note = build_tip_notification(tip, day)
        if not note["body"]:
            log.warning("tip_empty", extra={"extra": {"event": "tip_empty", "day": day}})
            return {"ok": True, "day": day, "sent": False, "message_id": None}

        resp = self.dispatcher.send_topic(
            topic=self.settings.TIP_TOPIC,
            title=note["title"],
            body=note["body"],
            data=note["data"],
            android_channel_id=self.settings.TIP_ANDROID_CHANNEL_ID,
        )
        return {"ok": True, "day": day, "sent": bool(resp.get("ok")), "message_id": resp.get("message_id")}
