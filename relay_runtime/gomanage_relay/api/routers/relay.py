from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Query, Request
from fastapi.responses import JSONResponse

from ...dispatcher import ProxyRequest, RelayDispatcher, RelayResult

router = APIRouter()


def _dispatcher(request: Request) -> RelayDispatcher:
    return request.app.state.relay


def _respond(result: RelayResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.body)


@router.get("/gomanage")
def relay_get(
    request: Request,
    background_tasks: BackgroundTasks,
    action: str | None = Query(None, description="status|login|proxy|logout|sync"),
    session_id: str | None = Query(None, alias="sessionId"),
    session_key: str | None = Query(None, alias="sessionKey"),
    endpoint: str | None = Query(None, description="Upstream path or hint (customers/products/orders)"),
    entity: str | None = Query(None),
    transport: str | None = Query(None, description="graphql|rest"),
    first: int | None = Query(None, ge=1),
    offset: int | None = Query(None, ge=0),
    raw: bool = Query(False),
    operation: str | None = Query(None, description="pull|push (sync only)"),
    username: str | None = Query(None),
    password: str | None = Query(None),
):
    req = ProxyRequest(
        action=action,
        session_id=session_id or session_key,
        endpoint=endpoint,
        entity=entity,
        transport=transport,
        first=first,
        offset=offset,
        raw=raw,
        operation=operation,
        username=username,
        password=password,
    )
    return _respond(_dispatcher(request).dispatch(req, defer=background_tasks.add_task))


@router.post("/gomanage")
def relay_post(request: Request, background_tasks: BackgroundTasks, req: ProxyRequest):
    return _respond(_dispatcher(request).dispatch(req, defer=background_tasks.add_task))
