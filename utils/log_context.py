from __future__ import annotations

from contextvars import ContextVar, Token
from typing import Dict

# Correlation ids picked up by the JSON log formatter.
_request_id_var: ContextVar[str] = ContextVar("request_id", default="")
_sync_id_var: ContextVar[str] = ContextVar("sync_id", default="")


def set_request_id(rid: str) -> None:
    _request_id_var.set(rid or "")


def clear_request_id() -> None:
    _request_id_var.set("")


def bind_sync_id(sync_id: str) -> Token:
    return _sync_id_var.set(sync_id or "")


def reset_sync_id(token: Token) -> None:
    _sync_id_var.reset(token)


def current_ids() -> Dict[str, str]:
    out = {}
    rid = _request_id_var.get()
    if rid:
        out["request_id"] = rid
    sid = _sync_id_var.get()
    if sid:
        out["sync_id"] = sid
    return out
