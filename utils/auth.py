from __future__ import annotations

import logging

from fastapi import Request
from firebase_admin import auth as firebase_auth

from storage.firebase_app import get_firebase_app
from utils.errors import Unauthenticated
from utils.request_context import set_caller_uid

log = logging.getLogger("drk.auth")


def parse_bearer_token(request: Request) -> str:
    h = request.headers.get("Authorization", "").strip()
    if not h:
        raise Unauthenticated("Sign in required")
    parts = h.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise Unauthenticated("invalid_auth_header")
    return parts[1].strip()


def require_caller(request: Request) -> str:
    """
    Returns the Firebase uid of the caller. Any missing, expired, revoked or
    malformed ID token is reported as Unauthenticated.
    """
    token = parse_bearer_token(request)
    try:
        claims = firebase_auth.verify_id_token(token, app=get_firebase_app(), check_revoked=True)
    except (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError, firebase_auth.CertificateFetchError, ValueError) as e:
        log.warning("id_token_rejected", extra={"extra": {"error_type": type(e).__name__}})
        raise Unauthenticated("Sign in required")

    uid = str(claims.get("uid") or claims.get("sub") or "")
    if not uid:
        raise Unauthenticated("Sign in required")
    set_caller_uid(uid)
    return uid
