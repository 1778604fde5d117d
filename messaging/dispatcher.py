from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from firebase_admin import exceptions as firebase_exceptions

from messaging.push import PushClient
from ops.metrics import Timer

log = logging.getLogger("drk.dispatcher")


def _dest_hint(v: str, keep: int = 4) -> str:
    v = (v or "").strip()
    if not v:
        return ""
    if len(v) <= keep:
        return v
    return f"...{v[-keep:]}"


class MessageDispatcher:
    def __init__(self, push: Optional[PushClient] = None):
        self.push = push

    def _push(self) -> PushClient:
        if not self.push:
            self.push = PushClient()
        return self.push

    def send_push(
        self,
        tokens: List[str],
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
        android_channel_id: str = "",
    ) -> Dict[str, Any]:
        rev = os.getenv("K_REVISION") or ""
        timer = Timer()
        log.info(
            "message_send_attempt",
            extra={"extra": {"event": "message_send_attempt", "channel": "fcm", "tokens": len(tokens), "revision": rev}},
        )
        try:
            results = self._push().send_multicast(tokens, title, body, data=data, android_channel_id=android_channel_id)
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            log.error(
                "message_send_exception",
                extra={
                    "extra": {
                        "event": "message_send_exception",
                        "channel": "fcm",
                        "tokens": len(tokens),
                        "error_type": type(e).__name__,
                        "message": str(e),
                        "latency_ms": timer.ms(),
                        "revision": rev,
                    }
                },
                exc_info=True,
            )
            return {"ok": False, "error_type": type(e).__name__, "message": str(e), "results": []}

        success = sum(1 for r in results if r.get("ok"))
        for r in results:
            if not r.get("ok"):
                log.warning(
                    "message_token_failed",
                    extra={"extra": {"event": "message_token_failed", "dest": _dest_hint(r.get("token", "")), "error_code": r.get("error_code"), "message": r.get("error_message")}},
                )
        log.info(
            "message_send_result",
            extra={
                "extra": {
                    "event": "message_send_result",
                    "channel": "fcm",
                    "success": success,
                    "failure": len(results) - success,
                    "latency_ms": timer.ms(),
                    "revision": rev,
                }
            },
        )
        return {"ok": success > 0, "success": success, "failure": len(results) - success, "results": results}

    def send_topic(
        self,
        topic: str,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
        android_channel_id: str = "",
    ) -> Dict[str, Any]:
        rev = os.getenv("K_REVISION") or ""
        timer = Timer()
        log.info(
            "message_send_attempt",
            extra={"extra": {"event": "message_send_attempt", "channel": "fcm_topic", "dest": topic, "revision": rev}},
        )
        try:
            message_id = self._push().send_topic(topic, title, body, data=data, android_channel_id=android_channel_id)
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            log.error(
                "message_send_exception",
                extra={
                    "extra": {
                        "event": "message_send_exception",
                        "channel": "fcm_topic",
                        "dest": topic,
                        "error_type": type(e).__name__,
                        "message": str(e),
                        "latency_ms": timer.ms(),
                        "revision": rev,
                    }
                },
                exc_info=True,
            )
            return {"ok": False, "error_type": type(e).__name__, "message": str(e)}

        log.info(
            "message_send_result",
            extra={"extra": {"event": "message_send_result", "channel": "fcm_topic", "dest": topic, "ok": True, "latency_ms": timer.ms(), "revision": rev}},
        )
        return {"ok": True, "message_id": message_id}
