from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from chat.approval import ApprovalNotifier
from events.firestore_event import parse_chat_message_update
from security.operator_auth import verify_operator_request

router = APIRouter()
log = logging.getLogger("drk.routers.events")


@router.post("/chat_message_updated")
async def chat_message_updated(request: Request):
    """
    Eventarc target for document.v1.updated on chats/{chatId}/messages/{messageId}.
    Any error other than a malformed event returns 500 so Eventarc redelivers.
    """
    verify_operator_request(request)
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="invalid_json")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="invalid_event")

    try:
        update = parse_chat_message_update(body, subject=request.headers.get("ce-subject", ""))
    except ValueError as e:
        log.warning("chat_event_unparseable", extra={"extra": {"event": "chat_event_unparseable", "message": str(e)}})
        raise HTTPException(status_code=400, detail="invalid_event")

    notifier = ApprovalNotifier()
    return await run_in_threadpool(notifier.handle, update.chat_id, update.message_id, update.before, update.after)
