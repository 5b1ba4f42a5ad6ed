from __future__ import annotations

from urllib.parse import urlsplit

import pytest
import requests

from conftest import LOGIN, FakeResponse, login_ok
from gomanage_relay.errors import AuthError, FatalProxyError, TransientNetworkError


def test_login_posts_form_and_returns_token(upstream, authenticator) -> None:
    upstream.on("POST", LOGIN, login_ok("SESSIONTOKEN=abc123; Path=/", status=200))

    token = authenticator.login("distri", "GOtmt%")

    assert token == "SESSIONTOKEN=abc123"
    call = upstream.calls[0]
    assert call["data"] == {"j_username": "distri", "j_password": "GOtmt%"}
    assert call["allow_redirects"] is False
    assert call["timeout"] == 2.0
    assert call["headers"]["Content-Type"] == "application/x-www-form-urlencoded"
    assert urlsplit(call["url"]).netloc == "erp.test"


def test_redirect_with_cookie_is_success(upstream, authenticator) -> None:
    upstream.on("POST", LOGIN, login_ok())
    assert authenticator.login("u", "p") == "JSESSIONID=abc123"


@pytest.mark.parametrize("status", [401, 403])
def test_invalid_credentials_fail_fast(upstream, authenticator, sleeps, status) -> None:
    upstream.on("POST", LOGIN, FakeResponse(status, text="denied"))
    with pytest.raises(AuthError, match="invalid credentials"):
        authenticator.login("u", "bad")
    assert upstream.count("POST", LOGIN) == 1
    assert sleeps == []


def test_server_error_is_auth_error_without_retry(upstream, authenticator) -> None:
    upstream.on("POST", LOGIN, FakeResponse(500, text="boom"))
    with pytest.raises(AuthError, match="HTTP 500"):
        authenticator.login("u", "p")
    assert upstream.count("POST", LOGIN) == 1


def test_missing_cookie_is_auth_error(upstream, authenticator) -> None:
    upstream.on("POST", LOGIN, FakeResponse(200, text="<html>login</html>"))
    with pytest.raises(AuthError):
        authenticator.login("u", "p")


def test_transient_failures_retry_with_linear_backoff(upstream, authenticator, sleeps) -> None:
    upstream.on(
        "POST",
        LOGIN,
        requests.Timeout("read timed out"),
        requests.ConnectionError("reset"),
        login_ok(),
    )
    assert authenticator.login("u", "p") == "JSESSIONID=abc123"
    assert upstream.count("POST", LOGIN) == 3
    assert sleeps == [1.0, 2.0]


def test_transient_failures_exhaust_attempts(upstream, authenticator, sleeps) -> None:
    upstream.on("POST", LOGIN, requests.Timeout("read timed out"))
    with pytest.raises(TransientNetworkError, match="timeout"):
        authenticator.login("u", "p")
    assert upstream.count("POST", LOGIN) == 3
    # no sleep after the final attempt
    assert sleeps == [1.0, 2.0]


@pytest.mark.parametrize(
    "location",
    [
        "/gomanage/login?error",
        "http://erp.test/gomanage/static/auth/login.html",
        "/gomanage/?error=1",
        "/gomanage/static/auth/j_spring_security_check",
    ],
)
def test_redirect_back_to_login_is_rejected(upstream, authenticator, sleeps, location) -> None:
    upstream.on(
        "POST",
        LOGIN,
        FakeResponse(302, text="", headers={"Set-Cookie": "JSESSIONID=anon999; Path=/gomanage", "Location": location}),
    )
    with pytest.raises(AuthError, match="invalid credentials"):
        authenticator.login("u", "bad")
    assert upstream.count("POST", LOGIN) == 1
    assert sleeps == []


def test_client_refuses_absolute_urls(client) -> None:
    assert client.url("/gomanage/web") == "http://erp.test/gomanage/web"
    for target in ("http://attacker.example/steal", "//attacker.example/steal", "https://erp.test/x"):
        with pytest.raises(FatalProxyError):
            client.url(target)
