"""GO!Manage upstream connector.

Two pieces live here:

- ``GomanageClient``: a thin wrapper over a ``requests.Session`` that knows the
  base URL, attaches the session token header and turns network failures into
  ``TransientNetworkError``. Every call carries an explicit timeout.
- ``Authenticator``: the legacy Spring-security form login. It returns the
  session token and nothing else; caching is the dispatcher's job.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional
from urllib.parse import urlsplit

import requests

from ..config import (
    GOMANAGE_BASE_URL,
    GOMANAGE_COOKIE_NAMES,
    GOMANAGE_LOGIN_ATTEMPTS,
    GOMANAGE_LOGIN_PATH,
    GOMANAGE_PASSWORD_FIELD,
    GOMANAGE_RETRY_BASE_DELAY,
    GOMANAGE_TIMEOUT,
    GOMANAGE_TOKEN_HEADER,
    GOMANAGE_USERNAME_FIELD,
)
from ..cookies import extract_session_token
from ..errors import AuthError, FatalProxyError, TransientNetworkError
from ..logging_utils import mask_token

log = logging.getLogger("relay.upstream")

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 gomanage-relay"


def is_relative_path(path: str) -> bool:
    """True for a plain path; False for anything carrying a scheme or host."""
    p = (path or "").strip()
    if p.startswith(("//", "\\\\", "/\\", "\\/")):
        return False
    parts = urlsplit(p)
    return not parts.scheme and not parts.netloc


class GomanageClient:
    def __init__(
        self,
        base_url: str = GOMANAGE_BASE_URL,
        timeout: float = GOMANAGE_TIMEOUT,
        token_header: str = GOMANAGE_TOKEN_HEADER,
        session: Any = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.token_header = token_header
        self.http = session if session is not None else requests.Session()

    def url(self, path: str) -> str:
        """Join an upstream path onto ``base_url``; absolute URLs are refused."""
        if not is_relative_path(path):
            raise FatalProxyError(f"upstream path must be relative to {self.base_url}: {path!r}")
        return self.base_url + ("" if path.startswith("/") else "/") + path

    def _headers(self, token: Optional[str], extra: Dict[str, str] | None = None) -> Dict[str, str]:
        h = {"User-Agent": USER_AGENT}
        if token:
            h[self.token_header] = token
        if extra:
            h.update(extra)
        return h

    def request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        headers: Dict[str, str] | None = None,
        timeout: float | None = None,
        **kwargs: Any,
    ):
        url = self.url(path)
        try:
            return self.http.request(
                method,
                url,
                headers=self._headers(token, headers),
                timeout=self.timeout if timeout is None else timeout,
                allow_redirects=False,
                **kwargs,
            )
        except requests.Timeout as e:
            raise TransientNetworkError(f"timeout after {timeout or self.timeout}s: {method} {url}") from e
        except requests.ConnectionError as e:
            raise TransientNetworkError(f"connection failed: {method} {url}: {e}") from e

    def post_form(self, path: str, data: Dict[str, str], **kwargs: Any):
        return self.request(
            "POST",
            path,
            data=data,
            headers={
                "Content-Type": "application/x-www-form-urlencoded",
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
            **kwargs,
        )

    def post_json(self, path: str, payload: Dict[str, Any], *, token: Optional[str] = None, **kwargs: Any):
        return self.request(
            "POST",
            path,
            token=token,
            json=payload,
            headers={"Accept": "application/json", "X-Requested-With": "XMLHttpRequest"},
            **kwargs,
        )

    def get(self, path: str, *, token: Optional[str] = None, params: Dict[str, Any] | None = None, **kwargs: Any):
        return self.request(
            "GET",
            path,
            token=token,
            params=params or None,
            headers={"Accept": "application/json"},
            **kwargs,
        )


class Authenticator:
    def __init__(
        self,
        client: GomanageClient,
        login_path: str = GOMANAGE_LOGIN_PATH,
        cookie_names: Iterable[str] = GOMANAGE_COOKIE_NAMES,
        attempts: int = GOMANAGE_LOGIN_ATTEMPTS,
        base_delay: float = GOMANAGE_RETRY_BASE_DELAY,
        username_field: str = GOMANAGE_USERNAME_FIELD,
        password_field: str = GOMANAGE_PASSWORD_FIELD,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.login_path = login_path
        self.cookie_names = tuple(cookie_names)
        self.attempts = max(1, int(attempts))
        self.base_delay = base_delay
        self.username_field = username_field
        self.password_field = password_field
        self._sleep = sleep

    def login(self, username: str, password: str) -> str:
        """Run the form login and return the ``NAME=value`` session token.

        Transient failures are retried with linear backoff; an explicit
        rejection (401/403, a redirect back to the login page, other non-success
        status, missing cookie) fails fast.
        """
        log.info("login attempt user=%s", username)
        form = {self.username_field: username, self.password_field: password}

        last_err: TransientNetworkError | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                resp = self.client.post_form(self.login_path, form)
            except TransientNetworkError as e:
                last_err = e
                log.warning("login attempt %d/%d failed: %s", attempt, self.attempts, e)
                if attempt < self.attempts:
                    self._sleep(attempt * self.base_delay)
                continue
            return self._token_from(resp)

        assert last_err is not None
        raise last_err

    def _token_from(self, resp) -> str:
        status = int(resp.status_code)
        if status in (401, 403):
            raise AuthError(f"login rejected: invalid credentials (HTTP {status})")
        if not (200 <= status < 400):
            raise AuthError(f"login failed: HTTP {status}")
        if status >= 300 and self._bounced_to_login(resp.headers.get("location")):
            # Spring security answers bad credentials with 302 to the login page,
            # still handing out an anonymous session cookie.
            raise AuthError(f"login rejected: invalid credentials (redirected to {resp.headers.get('location')})")

        token = extract_session_token(resp.headers.get("set-cookie"), self.cookie_names)
        log.info("login ok token=%s", mask_token(token))
        return token

    def _bounced_to_login(self, location: str | None) -> bool:
        if not location:
            return False
        parts = urlsplit(location)
        if "error" in parts.query.lower():
            return True
        path = parts.path.rstrip("/").lower()
        last = path.rsplit("/", 1)[-1]
        return path == self.login_path.rstrip("/").lower() or last == "login" or last.startswith("login.")
