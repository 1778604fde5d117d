from __future__ import annotations

import logging
from typing import Any, Dict, Set

from fastapi import HTTPException, Request
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from config.settings import settings

log = logging.getLogger("drk.operator_auth")


def _split_csv(v: str) -> Set[str]:
    return {x.strip() for x in (v or "").split(",") if x.strip()}


def verify_operator_request(request: Request) -> Dict[str, Any]:
    """
    Verifies the Google-signed OIDC token that Cloud Scheduler and Eventarc
    attach to push requests. Fails closed when no audience is configured.
    """
    auth = request.headers.get("authorization", "")
    if not auth.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="missing_bearer_token")

    token = auth.split(" ", 1)[1].strip()
    audience = settings.OPERATOR_AUTH_AUDIENCE
    if not audience:
        raise HTTPException(status_code=500, detail="operator_auth_audience_not_configured")

    try:
        claims = id_token.verify_oauth2_token(token, google_requests.Request(), audience=audience)
    except (ValueError, google_auth_exceptions.GoogleAuthError) as e:
        log.warning("operator_token_rejected", extra={"extra": {"error": str(e), "path": request.url.path}})
        raise HTTPException(status_code=401, detail="invalid_operator_token")

    allowed_subs = _split_csv(settings.OPERATOR_INVOKER_SUBS)
    allowed_emails = _split_csv(settings.OPERATOR_INVOKER_EMAILS)

    sub = claims.get("sub", "")
    email = claims.get("email", "")

    if allowed_subs and sub not in allowed_subs:
        raise HTTPException(status_code=403, detail="operator_sub_not_allowed")
    if allowed_emails and email not in allowed_emails:
        raise HTTPException(status_code=403, detail="operator_email_not_allowed")

    return claims
