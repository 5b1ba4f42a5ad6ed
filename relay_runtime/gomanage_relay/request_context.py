from __future__ import annotations

import contextvars

_REQUEST_ID: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
_SESSION_KEY: contextvars.ContextVar[str] = contextvars.ContextVar("session_key", default="-")

def get_request_id() -> str:
    return _REQUEST_ID.get()

def set_request_id(request_id: str) -> contextvars.Token:
    return _REQUEST_ID.set(request_id or "-")

def reset_request_id(token: contextvars.Token) -> None:
    try:
        _REQUEST_ID.reset(token)
    except ValueError:
        # token from another context; nothing to restore
        pass

def get_session_key() -> str:
    return _SESSION_KEY.get()

def set_session_key(session_key: str) -> contextvars.Token:
    return _SESSION_KEY.set(session_key or "-")

def reset_session_key(token: contextvars.Token) -> None:
    try:
        _SESSION_KEY.reset(token)
    except ValueError:
        pass
