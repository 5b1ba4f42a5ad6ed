from __future__ import annotations

import re
from typing import Iterable

from .errors import AuthError


def extract_session_token(set_cookie: str | None, names: Iterable[str] = ("JSESSIONID",)) -> str:
    """Return the first ``NAME=value`` pair for one of ``names`` in a Set-Cookie header.

    ``requests`` folds repeated Set-Cookie headers into one comma-separated
    string, so the match is anchored on a start / ``,`` / ``;`` boundary.
    Raises AuthError when no matching cookie (or an empty value) is present.
    """
    if not set_cookie:
        raise AuthError("login failed: no Set-Cookie header in upstream response")

    for name in names:
        m = re.search(r"(?:^|[,;]\s*)" + re.escape(name) + r"=([^;,\s]+)", set_cookie)
        if m:
            return f"{name}={m.group(1)}"

    raise AuthError(
        f"login failed: no {'/'.join(names) or 'session'} cookie in Set-Cookie header"
    )
