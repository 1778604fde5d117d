from __future__ import annotations

from contextvars import ContextVar

# Correlation ids picked up by the JSON log formatter.
_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_caller_uid_var: ContextVar[str] = ContextVar("caller_uid", default="")


def set_request_id(rid: str) -> None:
    _request_id_var.set(rid or "")


def get_request_id() -> str:
    return _request_id_var.get() or ""


def set_caller_uid(uid: str) -> None:
    _caller_uid_var.set(uid or "")


def get_caller_uid() -> str:
    return _caller_uid_var.get() or ""


def clear_request_context() -> None:
    _request_id_var.set("")
    _caller_uid_var.set("")
