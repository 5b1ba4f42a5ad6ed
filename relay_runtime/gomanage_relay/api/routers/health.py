import yaml
from fastapi import APIRouter, HTTPException, Request

from ... import schema_store

router = APIRouter()


@router.get("/healthz")
def healthz():
    """Liveness: no upstream call."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz(request: Request):
    """Readiness: upstream schema loads and describes every entity.

    Deliberately does not hit GO!Manage; use ``?action=status`` for that.
    """
    try:
        schema = schema_store.load_schema()
    except (OSError, yaml.YAMLError) as e:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "schema_path": schema_store.schema_path_str(), "problems": [str(e)]},
        )

    problems = schema_store.validate_schema(schema)
    if problems:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "schema_path": schema_store.schema_path_str(), "problems": problems},
        )

    return {
        "status": "ok",
        "schema_path": schema_store.schema_path_str(),
        "schema_revision": schema.get("revision", 0),
        "entities": list(schema_store.ENTITIES),
        "active_sessions": len(request.app.state.relay.store),
    }
