from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from config.settings import Settings, settings as default_settings
from messaging.dispatcher import MessageDispatcher
from repos.user_repo import UserRepository
from utils.errors import Internal

log = logging.getLogger("drk.chat")

_WS = re.compile(r"\s+")


def build_preview(text: Any, max_chars: int = 160) -> str:
    preview = _WS.sub(" ", str(text or "")).strip()
    if len(preview) > max_chars:
        return preview[: max_chars - 3] + "…"
    return preview


def is_new_assistant_approval(before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]], sender_role: str = "assistant") -> bool:
    if not before or not after:
        return False
    if (after.get("sender") or "") != sender_role:
        return False
    return before.get("approved") is not True and after.get("approved") is True


class ApprovalNotifier:
    """Pushes a chat notification the first time an assistant reply is approved."""

    def __init__(
        self,
        users: Optional[UserRepository] = None,
        dispatcher: Optional[MessageDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or default_settings
        self.users = users or UserRepository()
        self.dispatcher = dispatcher or MessageDispatcher()

    def handle(self, chat_id: str, message_id: str, before: Optional[Dict[str, Any]], after: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if not is_new_assistant_approval(before, after, self.settings.CHAT_SENDER_ROLE):
            return {"ok": True, "sent": 0, "skipped": True}

        parent_id = str((after or {}).get("parentId") or "")
        ctx = {"chat_id": chat_id, "message_id": message_id, "parent_id": parent_id}
        log.info("approval_detected", extra={"extra": {"event": "approval_detected", **ctx}})

        # Chats are keyed by the owning user's uid.
        tokens = self.users.get_push_tokens(chat_id)
        if not tokens:
            log.warning("no_push_tokens", extra={"extra": {"event": "no_push_tokens", **ctx}})
            return {"ok": True, "sent": 0, "skipped": True}

        resp = self.dispatcher.send_push(
            tokens,
            title=self.settings.CHAT_NOTIFICATION_TITLE,
            body=build_preview((after or {}).get("text"), self.settings.CHAT_PREVIEW_MAX_CHARS),
            data={"route": "/chat", "chatId": chat_id or "", "messageId": message_id or "", "parentId": parent_id},
            android_channel_id=self.settings.ANDROID_CHANNEL_ID,
        )
        if resp.get("error_type"):
            # Whole batch failed before any token was tried; let the event be redelivered.
            raise Internal("push send failed", context={**ctx, "error_type": resp.get("error_type")})

        invalid = [r["token"] for r in resp.get("results", []) if r.get("unregistered")]
        pruned = 0
        if invalid:
            pruned = self.users.remove_push_tokens(chat_id, invalid)
            log.info("push_tokens_pruned", extra={"extra": {"event": "push_tokens_pruned", "count": pruned, **ctx}})

        return {
            "ok": True,
            "sent": len(tokens),
            "success": int(resp.get("success", 0)),
            "failure": int(resp.get("failure", 0)),
            "pruned": pruned,
        }
