from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Header, Request
from fastapi.concurrency import run_in_threadpool

from billing.razorpay_webhook import RazorpayWebhookHandler

router = APIRouter()


@router.post("/razorpay")
async def razorpay_webhook(
    request: Request,
    razorpay_signature: Optional[str] = Header(default=None, alias="X-Razorpay-Signature"),
    razorpay_event_id: Optional[str] = Header(default=None, alias="X-Razorpay-Event-Id"),
):
    # Signature covers the exact raw bytes, so read the body before any parsing.
    payload = await request.body()
    handler = RazorpayWebhookHandler()
    return await run_in_threadpool(handler.handle, payload, razorpay_signature, razorpay_event_id)
