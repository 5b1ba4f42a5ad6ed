from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from .config import GOMANAGE_SCHEMA_PATH

ENTITIES = ("customers", "products", "orders")

# Hot-reload cache (path, mtime) -> data
_cached: Tuple[str, float, Dict[str, Any]] | None = None


def _schema_path() -> Path:
    # Allow override for deployments
    if GOMANAGE_SCHEMA_PATH:
        return Path(GOMANAGE_SCHEMA_PATH).expanduser()
    here = Path(__file__).resolve().parent
    # Prefer upstream/schema.yaml at repo root (dev mode), then the packaged default
    candidates = [
        here.parent.parent / "upstream" / "schema.yaml",
        here / "upstream_schema.yaml",
    ]
    for p in candidates:
        if p.exists():
            return p
    return candidates[-1]


def load_schema() -> Dict[str, Any]:
    """Load the upstream schema description with hot-reload (mtime-based)."""
    global _cached
    p = _schema_path()
    if not p.exists():
        raise FileNotFoundError(f"Upstream schema not found: {p}")

    mtime = p.stat().st_mtime
    if _cached is None or _cached[0] != str(p) or _cached[1] != mtime:
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        _cached = (str(p), mtime, data)
    return _cached[2]


def schema_path_str() -> str:
    return str(_schema_path())


def entity_descriptor(schema: Dict[str, Any], entity: str) -> Dict[str, Any] | None:
    return ((schema or {}).get("entities") or {}).get(entity)


def validate_schema(schema: Dict[str, Any]) -> List[str]:
    """Return a list of problems (empty when the schema is usable)."""
    problems: List[str] = []
    for name in ENTITIES:
        d = entity_descriptor(schema, name)
        if not isinstance(d, dict):
            problems.append(f"{name}: missing entity descriptor")
            continue
        transport = str(d.get("transport") or "graphql")
        if transport not in ("graphql", "rest"):
            problems.append(f"{name}: unknown transport '{transport}'")
        gql = d.get("graphql") or {}
        rest = d.get("rest") or {}
        if transport == "graphql":
            if not gql.get("document"):
                problems.append(f"{name}: graphql.document is required")
            if not isinstance(gql.get("path"), list) or not gql.get("path"):
                problems.append(f"{name}: graphql.path must be a non-empty list")
        if transport == "rest" and not rest.get("path"):
            problems.append(f"{name}: rest.path is required")
    return problems
