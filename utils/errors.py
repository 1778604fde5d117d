from __future__ import annotations

from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Caller-facing error. `message` is safe to return; `context` is only logged."""

    status_code = 500
    code = "internal"

    def __init__(self, message: str = "", context: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.context = dict(context or {})


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"


class InvalidArgument(ServiceError):
    status_code = 400
    code = "invalid_argument"


class InvalidConfig(ServiceError):
    status_code = 503
    code = "invalid_config"


class PermissionDenied(ServiceError):
    status_code = 403
    code = "permission_denied"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"


class PreconditionFailed(ServiceError):
    status_code = 412
    code = "failed_precondition"


class UpstreamError(ServiceError):
    status_code = 502
    code = "upstream_error"


class Internal(ServiceError):
    status_code = 500
    code = "internal"
