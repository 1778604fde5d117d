from __future__ import annotations

from typing import Any, Dict, List, Optional

from firebase_admin import messaging

from storage.firebase_app import get_firebase_app


def _android(channel_id: str) -> messaging.AndroidConfig:
    return messaging.AndroidConfig(
        priority="high",
        notification=messaging.AndroidNotification(channel_id=channel_id, sound="default", priority="high"),
    )


def _apns() -> messaging.APNSConfig:
    return messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", content_available=False)))


class PushClient:
    """firebase_admin.messaging calls, flattened to plain dicts."""

    def __init__(self, app=None):
        self.app = app

    def _app(self):
        if self.app is None:
            self.app = get_firebase_app()
        return self.app

    def send_multicast(
        self,
        tokens: List[str],
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
        android_channel_id: str = "",
    ) -> List[Dict[str, Any]]:
        message = messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(title=title, body=body),
            android=_android(android_channel_id),
            apns=_apns(),
            data={k: str(v) for k, v in (data or {}).items()},
        )
        batch = messaging.send_each_for_multicast(message, app=self._app())
        results: List[Dict[str, Any]] = []
        for token, r in zip(tokens, batch.responses):
            exc = r.exception
            results.append({
                "token": token,
                "ok": bool(r.success),
                "message_id": r.message_id,
                "error_code": getattr(exc, "code", type(exc).__name__) if exc else None,
                "error_message": str(exc) if exc else None,
                "unregistered": isinstance(exc, messaging.UnregisteredError),
            })
        return results

    def send_topic(
        self,
        topic: str,
        title: str,
        body: str,
        data: Optional[Dict[str, str]] = None,
        android_channel_id: str = "",
    ) -> str:
        message = messaging.Message(
            topic=topic,
            notification=messaging.Notification(title=title, body=body),
            android=_android(android_channel_id),
            apns=_apns(),
            data={k: str(v) for k, v in (data or {}).items()},
        )
        return messaging.send(message, app=self._app())
