"""Relay dispatcher: the single entry point for dashboard requests.

Per request:

    Idle -> SessionResolving -> Querying -> Success
                                         -> NeedsReauth -> SessionResolving (once)
                                         -> Failed

``status`` and ``logout`` bypass the state machine. Whatever happens, the
dispatcher answers with a ``RelayResult``; exceptions never reach the caller.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import AliasChoices, BaseModel, Field

from .config import (
    DEFAULT_SESSION_KEY,
    DEV_MODE,
    GOMANAGE_GRAPHQL_PATH,
    GOMANAGE_LOGOUT_PATH,
    GOMANAGE_PASSWORD,
    GOMANAGE_USERNAME,
)
from .connectors.gomanage import Authenticator, GomanageClient, is_relative_path
from .connectors.probe import HealthProber
from .errors import (
    AuthError,
    FatalProxyError,
    ReauthRequired,
    RelayError,
    TransientNetworkError,
    UpstreamError,
)
from .logging_utils import mask_token
from .request_context import reset_session_key, set_session_key
from .sessions import SessionStore
from .sync import OPERATIONS, failed as sync_failed, summarize_pull
from .translator import GraphQLPlan, QueryTranslator, RestPlan, TransportPlan, entity_for_endpoint, records_to_wire

log = logging.getLogger("relay.dispatcher")

ACTIONS = ("status", "login", "proxy", "logout", "sync")

USAGE = {
    "status": "?action=status",
    "login": "?action=login&sessionId=username",
    "proxy": "?action=proxy&sessionId=username&endpoint=/path",
    "logout": "?action=logout&sessionId=username",
    "sync": "?action=sync&sessionId=username&entity=customers&operation=pull",
}

_AUTH_PATTERN = re.compile(
    r"unauthori[sz]|not authenticated|unauthenticated|session (?:has )?expired|login required|\b401\b",
    re.IGNORECASE,
)


class ProxyRequest(BaseModel):
    action: Optional[str] = None
    session_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("sessionId", "sessionKey", "session_id"),
        description="Caller session key (username-like)",
    )
    endpoint: Optional[str] = Field(None, description="Upstream path or logical hint containing customers/products/orders")
    entity: Optional[str] = Field(None, description="customers|products|orders (overrides endpoint hint)")
    transport: Optional[str] = Field(None, description="graphql|rest (overrides the entity default)")
    first: Optional[int] = Field(None, ge=1)
    offset: Optional[int] = Field(None, ge=0)
    raw: bool = Field(False, description="Include the raw upstream payload next to normalized records")
    operation: Optional[str] = Field(None, description="pull|push (sync only)")
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass
class RelayResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _looks_like_auth_failure(text: str) -> bool:
    return bool(_AUTH_PATTERN.search(text or ""))


class RelayDispatcher:
    def __init__(
        self,
        store: SessionStore,
        client: GomanageClient,
        authenticator: Authenticator,
        translator: QueryTranslator,
        prober: HealthProber,
        *,
        username: str = GOMANAGE_USERNAME,
        password: str = GOMANAGE_PASSWORD,
        graphql_path: str = GOMANAGE_GRAPHQL_PATH,
        logout_path: str = GOMANAGE_LOGOUT_PATH,
        default_session_key: str = DEFAULT_SESSION_KEY,
    ):
        self.store = store
        self.client = client
        self.authenticator = authenticator
        self.translator = translator
        self.prober = prober
        self.username = username
        self.password = password
        self.graphql_path = graphql_path
        self.logout_path = logout_path
        self.default_session_key = default_session_key

    def dispatch(self, req: ProxyRequest, defer: Optional[Callable[..., Any]] = None) -> RelayResult:
        action = (req.action or "").strip().lower()
        key = (req.session_id or "").strip()
        if not key and action == "login":
            key = (req.username or "").strip()
        key = key or self.default_session_key

        ctx = set_session_key(key)
        try:
            self.store.sweep()
            log.info("relay request action=%s endpoint=%s", action or "-", req.endpoint or req.entity or "-")
            if action == "status":
                return self._status()
            if action == "login":
                return self._login(req, key)
            if action == "proxy":
                return self._proxy(req, key)
            if action == "logout":
                return self._logout(key, defer)
            if action == "sync":
                return self._sync(req, key)
            raise FatalProxyError(f"invalid action '{action}'" if action else "missing action")
        except FatalProxyError as e:
            return self._fail(400, e, availableActions=list(ACTIONS), usage=USAGE)
        except Exception as e:
            log.exception("unhandled relay error")
            return self._fail(500, e, message="internal relay error")
        finally:
            reset_session_key(ctx)

    # --- actions ---

    def _status(self) -> RelayResult:
        probe = self.prober.probe()
        body: Dict[str, Any] = {
            "success": True,
            "proxyStatus": "online",
            "gomanageStatus": "online" if probe.reachable else "offline",
            "gomanageUrl": self.client.base_url,
            "activeSessions": len(self.store),
            "config": {
                "timeout": self.client.timeout,
                "retries": self.authenticator.attempts,
            },
            "timestamp": _now_iso(),
        }
        if probe.error:
            body["error"] = probe.error
        return RelayResult(200, body)

    def _login(self, req: ProxyRequest, key: str) -> RelayResult:
        username = req.username or self.username
        password = req.password or self.password
        try:
            token = self.authenticator.login(username, password)
        except (AuthError, TransientNetworkError) as e:
            log.warning("login failed: %s", e)
            return self._fail(504 if isinstance(e, TransientNetworkError) else 401, e)
        self.store.put(key, token)
        return RelayResult(
            200,
            {"success": True, "message": "login ok", "sessionId": key, "timestamp": _now_iso()},
        )

    def _logout(self, key: str, defer: Optional[Callable[..., Any]]) -> RelayResult:
        session = self.store.get(key)
        removed = self.store.remove(key)
        if session is not None:
            if defer is not None:
                defer(self._notify_logout, session.token)
            else:
                self._notify_logout(session.token)
        log.info("logout removed=%s", removed)
        return RelayResult(
            200,
            {"success": True, "message": "session closed", "sessionId": key, "timestamp": _now_iso()},
        )

    def _proxy(self, req: ProxyRequest, key: str) -> RelayResult:
        entity = (req.entity or "").strip().lower() or entity_for_endpoint(req.endpoint)
        if entity:
            plan: TransportPlan = self.translator.resolve(entity, req.transport, req.first, req.offset)
        elif req.endpoint:
            if not is_relative_path(req.endpoint):
                raise FatalProxyError(f"endpoint must be a path on the upstream, got '{req.endpoint}'")
            plan = RestPlan(entity=None, path=req.endpoint)
        else:
            raise FatalProxyError("proxy requires an endpoint or entity")

        try:
            payload = self._run(key, plan)
        except RelayError as e:
            return self._fetch_failure(e)

        if plan.entity is None:
            return RelayResult(200, {"success": True, "data": payload, "timestamp": _now_iso()})

        page = self.translator.normalize_page(plan.entity, payload, plan)
        data: Dict[str, Any] = {
            "entity": plan.entity,
            "transport": plan.kind,
            "totalCount": page.total_count,
            "count": len(page.records),
            "shapeOk": page.shape_ok,
            "records": records_to_wire(page.records),
        }
        if req.raw:
            data["raw"] = payload
        log.info("%s fetched: %d of %d", plan.entity, len(page.records), page.total_count)
        return RelayResult(
            200,
            {"success": True, "data": data, "queryType": plan.entity, "timestamp": _now_iso()},
        )

    def _sync(self, req: ProxyRequest, key: str) -> RelayResult:
        entity = (req.entity or "").strip().lower() or entity_for_endpoint(req.endpoint)
        operation = (req.operation or "pull").strip().lower()
        if not entity:
            raise FatalProxyError("sync requires an entity")
        if operation not in OPERATIONS:
            raise FatalProxyError(f"invalid sync operation '{operation}' (expected pull or push)")
        if operation == "push":
            res = sync_failed(entity, operation, "push sync is not supported by the relay")
            return RelayResult(501, {**res.to_wire(), "error": res.error_message, "timestamp": _now_iso()})

        plan = self.translator.resolve(entity, req.transport, req.first, req.offset)
        start = time.monotonic()
        try:
            payload = self._run(key, plan)
        except RelayError as e:
            failure = self._fetch_failure(e)
            res = sync_failed(entity, operation, str(e), time.monotonic() - start)
            return RelayResult(failure.status_code, {**failure.body, **res.to_wire()})

        page = self.translator.normalize_page(entity, payload, plan)
        res = summarize_pull(entity, page, time.monotonic() - start)
        return RelayResult(200, {**res.to_wire(), "timestamp": _now_iso()})

    # --- state machine ---

    def _run(self, key: str, plan: TransportPlan) -> Any:
        """SessionResolving -> Querying, with at most one reauth cycle."""
        for attempt in (1, 2):
            token = self._session_token(key)
            try:
                payload = self._execute(plan, token)
            except ReauthRequired as e:
                self.store.remove_if(key, token)
                if attempt == 2:
                    raise
                log.info("upstream rejected session (%s); re-authenticating once", e)
                continue
            self.store.touch(key)
            return payload
        raise AssertionError("unreachable")

    def _session_token(self, key: str) -> str:
        session = self.store.get(key)
        if session is not None:
            log.debug("reusing cached session token=%s", mask_token(session.token))
            return session.token
        log.info("no live session; logging in")
        token = self.authenticator.login(self.username, self.password)
        self.store.put(key, token)
        return token

    def _execute(self, plan: TransportPlan, token: str) -> Any:
        if isinstance(plan, GraphQLPlan):
            resp = self.client.post_json(self.graphql_path, plan.body(), token=token)
            _raise_for_auth(resp)
            if not (200 <= int(resp.status_code) < 300):
                raise UpstreamError(f"GraphQL request failed: HTTP {resp.status_code}", resp.status_code)
            data = _json_or_reauth(resp)
            errors = data.get("errors") if isinstance(data, dict) else None
            if errors:
                text = str(errors)
                if _looks_like_auth_failure(text):
                    raise ReauthRequired(f"GraphQL auth error: {text[:300]}")
                raise UpstreamError(f"GraphQL errors: {text[:500]}", resp.status_code)
            return data

        resp = self.client.get(plan.path, token=token, params=plan.params)
        _raise_for_auth(resp)
        if not (200 <= int(resp.status_code) < 300):
            raise UpstreamError(f"REST request failed: HTTP {resp.status_code} {plan.path}", resp.status_code)
        if plan.entity is not None:
            return _json_or_reauth(resp)
        # Passthrough: keep non-JSON bodies as text.
        try:
            return resp.json()
        except ValueError:
            return {"data": resp.text, "raw": True, "contentType": resp.headers.get("content-type")}

    def _notify_logout(self, token: str) -> None:
        try:
            self.client.request("GET", self.logout_path, token=token, timeout=self.prober.timeout)
        except (TransientNetworkError, requests.RequestException) as e:
            log.warning("upstream logout notification failed: %s", e)

    # --- responses ---

    def _fetch_failure(self, e: RelayError) -> RelayResult:
        if isinstance(e, ReauthRequired):
            log.warning("giving up after re-authentication: %s", e)
            return self._fail(502, e, needsReauth=True)
        if isinstance(e, AuthError):
            log.warning("automatic login failed: %s", e)
            return self._fail(502, e, message=f"automatic login failed: {e}")
        if isinstance(e, TransientNetworkError):
            log.warning("upstream unavailable: %s", e)
            return self._fail(504, e)
        log.warning("upstream fetch failed: %s", e)
        return self._fail(502, e)

    def _fail(self, status_code: int, exc: Exception, message: str | None = None, **extra: Any) -> RelayResult:
        body: Dict[str, Any] = {"success": False, "error": message or str(exc) or type(exc).__name__}
        if DEV_MODE:
            body["errorType"] = type(exc).__name__
        body.update(extra)
        body["timestamp"] = _now_iso()
        return RelayResult(status_code, body)


def _raise_for_auth(resp) -> None:
    status = int(resp.status_code)
    if status in (401, 403):
        raise ReauthRequired(f"upstream answered HTTP {status}")
    if 300 <= status < 400:
        # Spring security bounces unauthenticated calls to the login page.
        raise ReauthRequired(f"upstream redirected to {resp.headers.get('location') or 'login'}")


def _json_or_reauth(resp) -> Any:
    try:
        return resp.json()
    except ValueError as e:
        ctype = (resp.headers.get("content-type") or "").lower()
        text = resp.text or ""
        if "html" in ctype and ("j_username" in text or "login" in text.lower()):
            raise ReauthRequired("upstream returned the login page") from e
        raise UpstreamError(f"malformed JSON from upstream: {text[:200]!r}", resp.status_code) from e


def build_dispatcher(http_session: Any = None, store: Optional[SessionStore] = None) -> RelayDispatcher:
    """Wire the default process-wide dispatcher from config."""
    client = GomanageClient(session=http_session)
    return RelayDispatcher(
        store=store if store is not None else SessionStore(),
        client=client,
        authenticator=Authenticator(client),
        translator=QueryTranslator(),
        prober=HealthProber(client),
    )
