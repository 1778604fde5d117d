from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from billing.subscriptions import SubscriptionLifecycle
from utils.auth import require_caller

router = APIRouter()


class CreateRequest(BaseModel):
    kind: Optional[str] = Field(default=None, max_length=16)


class VerifyRequest(BaseModel):
    razorpay_payment_id: Optional[str] = Field(default=None, max_length=64)
    razorpay_subscription_id: Optional[str] = Field(default=None, max_length=64)
    razorpay_signature: Optional[str] = Field(default=None, max_length=256)


class CancelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subscription_id: Optional[str] = Field(default=None, alias="subscriptionId", max_length=64)
    cancel_at_cycle_end: bool = Field(default=False, alias="cancelAtCycleEnd")


@router.post("/subs/create")
def subs_create(req: CreateRequest, uid: str = Depends(require_caller)):
    return SubscriptionLifecycle().create(uid, req.kind)


@router.post("/subs/verify")
def subs_verify(req: VerifyRequest, uid: str = Depends(require_caller)):
    return SubscriptionLifecycle().verify(
        uid,
        payment_id=req.razorpay_payment_id or "",
        subscription_id=req.razorpay_subscription_id or "",
        signature=req.razorpay_signature or "",
    )


@router.post("/subs/cancel")
def subs_cancel(req: CancelRequest, uid: str = Depends(require_caller)):
    return SubscriptionLifecycle().cancel(uid, req.subscription_id or "", req.cancel_at_cycle_end)
