"""FastAPI entrypoint for the GO!Manage session relay.

The dashboard talks to one endpoint, ``/api/gomanage``, with an ``action``
(status | login | proxy | logout | sync). Everything behind it (legacy form
login, session cache, GraphQL/REST translation, reauth) lives in the
dispatcher created here, one per app instance.

- relay answers always use the relay envelope ({success, data|error, timestamp})
- framework errors use the standard JSON error envelope with request_id
- request_id propagation via X-Request-Id
- logs correlated by request_id and session key
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import CORS_ALLOW_ORIGINS
from .dispatcher import RelayDispatcher, build_dispatcher
from .logging_utils import setup_logging
from .request_context import get_request_id, reset_request_id, set_request_id

from .api.routers import health, relay


def create_app(dispatcher: Optional[RelayDispatcher] = None) -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="GO!Manage Session Relay",
        version="0.1",
        description=(
            "Session-relay proxy between the business dashboard and the GO!Manage ERP: "
            "legacy cookie login, per-user session cache, GraphQL/REST translation and "
            "normalized customer/product/order records."
        ),
    )
    # Process-wide session cache lives inside the dispatcher (no persistence).
    app.state.relay = dispatcher if dispatcher is not None else build_dispatcher()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-request-id"],
        expose_headers=["X-Request-Id"],
    )

    def _error_response(
        status_code: int,
        code: str,
        message: str,
        details=None,
    ) -> JSONResponse:
        rid = get_request_id()
        payload = {
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "details": details,
            },
            "request_id": rid,
        }
        resp = JSONResponse(status_code=status_code, content=payload)
        # Always echo request id for correlation.
        resp.headers["X-Request-Id"] = rid
        return resp

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(_request: Request, exc: HTTPException):
        msg = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error_response(
            exc.status_code,
            code=f"http_{exc.status_code}",
            message=msg,
            details=exc.detail,
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(_request: Request, exc: RequestValidationError):
        return _error_response(
            422,
            code="validation_error",
            message="Invalid request",
            details=exc.errors(),
        )

    @app.middleware("http")
    async def _request_id_middleware(request: Request, call_next):
        rid = (request.headers.get("X-Request-Id") or "").strip() or str(uuid.uuid4())
        token = set_request_id(rid)
        start = time.time()

        try:
            response = await call_next(request)
        except Exception:
            logging.getLogger("api").exception(
                "Unhandled exception rid=%s %s %s",
                rid,
                request.method,
                request.url.path,
            )
            response = _error_response(500, "internal_error", "Internal Server Error")
        finally:
            reset_request_id(token)

        response.headers["X-Request-Id"] = rid
        logging.getLogger("api").info(
            "rid=%s %s %s %s %dms",
            rid,
            request.method,
            request.url.path,
            response.status_code,
            int((time.time() - start) * 1000),
        )
        return response

    app.include_router(health.router)
    app.include_router(relay.router, prefix="/api", tags=["relay"])

    return app
