from __future__ import annotations

import os
import time
from typing import Any, Dict

from fastapi import APIRouter
from google.api_core import exceptions as gcp_exceptions
from google.auth import exceptions as google_auth_exceptions

from config.settings import settings
from models.schema import COL_SYSTEM, DOC_HEALTHZ
from storage.firestore_client import get_firestore_client

router = APIRouter()


def _firestore_probe(timeout_s: float = 0.50) -> Dict[str, Any]:
    """Read-only, bounded-time Firestore connectivity probe on a fixed doc path."""
    try:
        t0 = time.time()
        get_firestore_client().collection(COL_SYSTEM).document(DOC_HEALTHZ).get(timeout=timeout_s)
        return {"ok": True, "latency_ms": int((time.time() - t0) * 1000)}
    except (gcp_exceptions.GoogleAPIError, google_auth_exceptions.GoogleAuthError, OSError, ValueError) as e:
        return {"ok": False, "error_type": type(e).__name__, "message": str(e)}


@router.get("/health")
def health():
    fs = _firestore_probe()
    payload: Dict[str, Any] = {
        "ok": bool(fs.get("ok", False)),
        "service": "drk-backend",
        "cloudrun_service": os.getenv("K_SERVICE") or "",
        "revision": os.getenv("K_REVISION") or "",
        "environment": settings.ENVIRONMENT,
        "firestore_ok": bool(fs.get("ok", False)),
        "firestore": fs,
        "razorpay_configured": bool(settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET),
        "webhook_secret_configured": bool(settings.RAZORPAY_WEBHOOK_SECRET),
        "gemini_configured": bool(settings.GEMINI_API_KEY),
        "time_unix": time.time(),
    }
    return payload
