from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from security.operator_auth import verify_operator_request
from tips.rotation import DailyTipJob

router = APIRouter()
log = logging.getLogger("drk.routers.jobs")


@router.post("/daily_tip")
def daily_tip(request: Request):
    # Cloud Scheduler, once a day.
    verify_operator_request(request)
    result = DailyTipJob().run()
    log.info("daily_tip_done", extra={"extra": {"event": "daily_tip_done", **result}})
    return result
