from __future__ import annotations

import logging

from .request_context import get_request_id, get_session_key

class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # Expose request_id / session_key to formatter even outside request context.
        record.request_id = get_request_id()
        record.session_key = get_session_key()
        return True

def setup_logging(level: int = logging.INFO) -> None:
    # Configure root logger once. If already configured, do minimal augmentation.
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(levelname)s %(request_id)s [%(session_key)s] %(name)s %(message)s",
        )
    # Ensure our filter is present on root handlers (once).
    for h in root.handlers:
        if not any(isinstance(f, RequestContextFilter) for f in h.filters):
            h.addFilter(RequestContextFilter())


def mask_token(token: str | None, keep: int = 18) -> str:
    """Shorten a session token for log lines (never log the full cookie)."""
    if not token:
        return "-"
    return token[:keep] + "..." if len(token) > keep else token
