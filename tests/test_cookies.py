from __future__ import annotations

import pytest

from gomanage_relay.cookies import extract_session_token
from gomanage_relay.errors import AuthError


def test_extracts_jsessionid_pair() -> None:
    h = "JSESSIONID=6F1A2B; Path=/gomanage; HttpOnly"
    assert extract_session_token(h) == "JSESSIONID=6F1A2B"


def test_finds_cookie_among_folded_headers() -> None:
    # requests joins repeated Set-Cookie headers with ", "
    h = "lang=es; Path=/, JSESSIONID=XYZ.node1; Path=/gomanage; HttpOnly, other=1"
    assert extract_session_token(h) == "JSESSIONID=XYZ.node1"


def test_custom_cookie_names_in_order() -> None:
    h = "SESSIONTOKEN=abc123; Path=/"
    assert extract_session_token(h, names=("JSESSIONID", "SESSIONTOKEN")) == "SESSIONTOKEN=abc123"


def test_does_not_match_name_suffix() -> None:
    with pytest.raises(AuthError):
        extract_session_token("XJSESSIONID=nope; Path=/")


@pytest.mark.parametrize("header", [None, "", "lang=es; Path=/", "JSESSIONID=; Path=/"])
def test_missing_token_raises(header) -> None:
    with pytest.raises(AuthError):
        extract_session_token(header)
