import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple
from urllib.parse import urlsplit

import pytest
from requests.structures import CaseInsensitiveDict

repo_root = Path(__file__).resolve().parents[1]
relay_runtime = repo_root / "relay_runtime"
if str(relay_runtime) not in sys.path:
    sys.path.insert(0, str(relay_runtime))

from gomanage_relay import config  # noqa: E402
from gomanage_relay.connectors.gomanage import Authenticator, GomanageClient  # noqa: E402
from gomanage_relay.connectors.probe import HealthProber  # noqa: E402
from gomanage_relay.dispatcher import RelayDispatcher  # noqa: E402
from gomanage_relay.sessions import SessionStore  # noqa: E402
from gomanage_relay.translator import QueryTranslator  # noqa: E402

BASE_URL = "http://erp.test"
LOGIN = config.GOMANAGE_LOGIN_PATH
LOGOUT = config.GOMANAGE_LOGOUT_PATH
GRAPHQL = config.GOMANAGE_GRAPHQL_PATH
LANDING = config.GOMANAGE_LANDING_PATH


class FakeResponse:
    def __init__(self, status_code: int = 200, json_body: Any = None, text: str | None = None, headers: Dict[str, str] | None = None):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self._json = json_body
        if text is None:
            text = json.dumps(json_body) if json_body is not None else ""
        self.text = text

    def json(self):
        if self._json is None:
            return json.loads(self.text)
        return self._json


def login_ok(cookie: str = "JSESSIONID=abc123; Path=/gomanage; HttpOnly", status: int = 302) -> FakeResponse:
    return FakeResponse(status, text="", headers={"Set-Cookie": cookie, "Location": "/gomanage/"})


def gql(entity_path: List[str], nodes: list, total: int | None = None) -> FakeResponse:
    inner: Dict[str, Any] = {"totalCount": len(nodes) if total is None else total, "nodes": nodes}
    for key in reversed(entity_path):
        inner = {key: inner}
    return FakeResponse(200, json_body={"data": inner})


class FakeUpstream:
    """Stands in for ``requests.Session``: routes by (method, path), records every call.

    Each route holds a queue; the last item is sticky. Exceptions are raised,
    callables are invoked with the request.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], list] = {}
        self.calls: List[Dict[str, Any]] = []

    def on(self, method: str, path: str, *responses: Any) -> "FakeUpstream":
        self.routes[(method.upper(), path)] = list(responses)
        return self

    def request(self, method: str, url: str, **kwargs: Any):
        path = urlsplit(url).path
        self.calls.append({"method": method.upper(), "url": url, "path": path, **kwargs})
        queue = self.routes.get((method.upper(), path))
        if not queue:
            raise AssertionError(f"unexpected upstream call {method} {path}")
        item = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            return item(method, url, **kwargs)
        return item

    def count(self, method: str, path: str) -> int:
        return sum(1 for c in self.calls if c["method"] == method.upper() and c["path"] == path)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client(upstream: FakeUpstream) -> GomanageClient:
    return GomanageClient(base_url=BASE_URL, timeout=2.0, session=upstream)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def authenticator(client: GomanageClient, sleeps: List[float]) -> Authenticator:
    return Authenticator(
        client,
        cookie_names=("JSESSIONID", "SESSIONTOKEN"),
        attempts=3,
        base_delay=1.0,
        sleep=sleeps.append,
    )


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    return SessionStore(ttl_seconds=1800, idle_seconds=1800, clock=clock)


@pytest.fixture
def dispatcher(store, client, authenticator) -> RelayDispatcher:
    return RelayDispatcher(
        store=store,
        client=client,
        authenticator=authenticator,
        translator=QueryTranslator(),
        prober=HealthProber(client, timeout=1.0),
        username="svc",
        password="secret",
    )
