"""Query translation: logical entity -> upstream call, upstream payload -> records.

Everything here is pure. The schema (documents, nesting paths, REST paths,
status aliases) comes from ``upstream_schema.yaml`` so upstream drift is a
config edit, not a code change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import FatalProxyError, ShapeError
from .records import CanonicalRecord, Customer, Order, Product
from .schema_store import ENTITIES, entity_descriptor, load_schema

log = logging.getLogger("relay.translator")


@dataclass(frozen=True)
class GraphQLPlan:
    entity: str
    document: str
    variables: Dict[str, Any]
    path: List[str]
    kind: str = "graphql"

    def body(self) -> Dict[str, Any]:
        return {"query": self.document, "variables": dict(self.variables)}


@dataclass(frozen=True)
class RestPlan:
    entity: Optional[str]
    path: str
    params: Dict[str, Any] = field(default_factory=dict)
    records_key: str = "page_entries"
    total_key: str = "total_entries"
    kind: str = "rest"


TransportPlan = Union[GraphQLPlan, RestPlan]


@dataclass
class NormalizedPage:
    records: List[CanonicalRecord]
    total_count: int
    shape_ok: bool = True


def entity_for_endpoint(endpoint: Optional[str]) -> Optional[str]:
    """Pick the logical entity hinted by an endpoint path (first match wins)."""
    if not endpoint:
        return None
    ep = endpoint.lower()
    for name in ENTITIES:
        if name in ep:
            return name
    return None


class QueryTranslator:
    def __init__(self, schema_loader: Callable[[], Dict[str, Any]] = load_schema):
        self._schema_loader = schema_loader

    def _descriptor(self, entity: str) -> Dict[str, Any]:
        d = entity_descriptor(self._schema_loader(), entity)
        if entity not in ENTITIES or not isinstance(d, dict):
            raise FatalProxyError(f"unknown entity '{entity}' (expected one of {', '.join(ENTITIES)})")
        return d

    def resolve(
        self,
        entity: str,
        transport: Optional[str] = None,
        first: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> TransportPlan:
        d = self._descriptor(entity)
        kind = (transport or d.get("transport") or "graphql").lower()

        if kind == "graphql":
            gql = d.get("graphql") or {}
            if not gql.get("document"):
                raise FatalProxyError(f"entity '{entity}' has no GraphQL document configured")
            variables = dict(gql.get("variables") or {})
            if first is not None:
                variables["first"] = int(first)
            if offset is not None:
                variables["offset"] = int(offset)
            return GraphQLPlan(
                entity=entity,
                document=str(gql["document"]),
                variables=variables,
                path=[str(p) for p in (gql.get("path") or [])],
            )

        if kind == "rest":
            rest = d.get("rest") or {}
            if not rest.get("path"):
                raise FatalProxyError(f"entity '{entity}' has no REST path configured")
            params = dict(rest.get("params") or {})
            if first is not None:
                params["limit"] = int(first)
            if offset is not None:
                params["start"] = int(offset)
            return RestPlan(
                entity=entity,
                path=str(rest["path"]),
                params=params,
                records_key=str(rest.get("records_key") or "page_entries"),
                total_key=str(rest.get("total_key") or "total_entries"),
            )

        raise FatalProxyError(f"unknown transport '{kind}' (expected graphql or rest)")

    def normalize(self, entity: str, payload: Any, plan: Optional[TransportPlan] = None) -> List[CanonicalRecord]:
        return self.normalize_page(entity, payload, plan).records

    def normalize_page(self, entity: str, payload: Any, plan: Optional[TransportPlan] = None) -> NormalizedPage:
        """Normalize a raw upstream payload; schema drift yields an empty page, never an exception."""
        if plan is None:
            plan = self.resolve(entity)
        try:
            if isinstance(plan, GraphQLPlan):
                nodes, total = _graphql_nodes(payload, plan.path)
            else:
                nodes, total = _rest_nodes(payload, plan.records_key, plan.total_key)
        except ShapeError as e:
            log.warning("unexpected %s payload shape: %s", entity, e)
            return NormalizedPage(records=[], total_count=0, shape_ok=False)

        status_map = _status_map(self._schema_loader())
        records = [_NORMALIZERS[entity](n, i, status_map) for i, n in enumerate(nodes)]
        return NormalizedPage(records=records, total_count=total if total is not None else len(records))


# --- payload descent ---

def _graphql_nodes(payload: Any, path: List[str]) -> tuple[list, Optional[int]]:
    cur = payload.get("data") if isinstance(payload, dict) else None
    walked = ["data"]
    if not isinstance(cur, dict):
        raise ShapeError("missing 'data' object")
    for key in path:
        walked.append(key)
        cur = cur.get(key) if isinstance(cur, dict) else None
        if cur is None:
            raise ShapeError(f"missing '{'.'.join(walked)}'")
    if not isinstance(cur, dict) or not isinstance(cur.get("nodes"), list):
        raise ShapeError(f"'{'.'.join(walked)}' has no nodes list")
    return cur["nodes"], _as_int(cur.get("totalCount"))


def _rest_nodes(payload: Any, records_key: str, total_key: str) -> tuple[list, Optional[int]]:
    if isinstance(payload, list):
        return payload, len(payload)
    if not isinstance(payload, dict) or not isinstance(payload.get(records_key), list):
        raise ShapeError(f"missing '{records_key}' list")
    return payload[records_key], _as_int(payload.get(total_key))


def _status_map(schema: Dict[str, Any]) -> Dict[str, str]:
    raw = (schema or {}).get("order_status_map") or {}
    return {str(k).strip().lower(): str(v) for k, v in raw.items()}


# --- field helpers ---

def _as_int(v: Any) -> Optional[int]:
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def safe_number(v: Any) -> float:
    """Parse a numeric field; anything unparseable becomes 0."""
    if v is None or isinstance(v, bool):
        return 0.0
    if isinstance(v, (int, float)):
        n = float(v)
    else:
        s = str(v).strip().replace(" ", "")
        if "," in s:
            # last separator is the decimal one ("1.234,50" / "1,234.50" / "12,5")
            if s.rfind(",") > s.rfind("."):
                s = s.replace(".", "").replace(",", ".")
            else:
                s = s.replace(",", "")
        try:
            n = float(s)
        except ValueError:
            return 0.0
    # NaN / inf
    if n != n or n in (float("inf"), float("-inf")):
        return 0.0
    return n


def _s(v: Any) -> str:
    return "" if v is None else str(v)


def _upstream_id(node: Dict[str, Any], key: str) -> str:
    v = node.get(key)
    return "" if v is None or v == "" else str(v)


def _base(entity: str, node: Any, index: int, id_key: str) -> tuple[Dict[str, Any], Dict[str, Any]]:
    n = node if isinstance(node, dict) else {}
    gid = _upstream_id(n, id_key) or _upstream_id(n, "id")
    common = {
        "id": gid or f"{entity}-{index}",
        "gomanage_id": gid,
        "sync_status": "synced" if gid else "error",
        "created_at": _s(n.get("creation_date")),
        "updated_at": _s(n.get("last_modified_date")),
    }
    return n, common


def _customer(node: Any, index: int, _sm: Dict[str, str]) -> Customer:
    n, common = _base("customers", node, index, "customer_id")
    branches = n.get("customer_branches")
    branch = branches[0] if isinstance(branches, list) and branches and isinstance(branches[0], dict) else {}
    return Customer(
        **common,
        name=_s(n.get("name")),
        business_name=_s(n.get("business_name")),
        vat_number=_s(n.get("vat_number")),
        email=_s(n.get("email") or branch.get("email")),
        phone=_s(n.get("phone") or branch.get("phone")),
        street_name=_s(n.get("street_name")),
        street_number=_s(n.get("street_number")),
        postal_code=_s(n.get("postal_code")),
        city=_s(n.get("city")),
        province=_s(n.get("province_id") if n.get("province") is None else n.get("province")),
        country=_s(n.get("country_id") if n.get("country") is None else n.get("country")),
    )


def _product(node: Any, index: int, _sm: Dict[str, str]) -> Product:
    n, common = _base("products", node, index, "product_id")
    return Product(
        **common,
        product_id=common["gomanage_id"],
        brand_name=_s(n.get("brand_name")),
        reference=_s(n.get("reference")),
        description_short=_s(n.get("description_short")),
        description_long=_s(n.get("description_long")),
        base_price=safe_number(n.get("base_price")),
        stock_real=safe_number(n.get("stock_real")),
        stock_reserved=safe_number(n.get("stock_reserved")),
        category=_s(n.get("category_id") if n.get("category") is None else n.get("category")),
    )


def _order(node: Any, index: int, status_map: Dict[str, str]) -> Order:
    n, common = _base("orders", node, index, "order_id")
    total = safe_number(n.get("total_amount"))
    tax = safe_number(n.get("tax_amount"))
    shipping = safe_number(n.get("shipping_cost"))
    raw_status = _s(n.get("status")).strip().lower()
    status = status_map.get(raw_status, "pending")
    if status not in ("draft", "pending", "confirmed", "shipped", "delivered", "cancelled"):
        status = "pending"
    return Order(
        **common,
        order_number=_s(n.get("order_number")),
        reference=_s(n.get("reference")),
        date=_s(n.get("order_date")),
        status=status,
        customer_name=_s(n.get("customer_name")),
        amount=round(total - tax - shipping, 2),
        tax_amount=tax,
        shipping_cost=shipping,
        total_amount=total,
    )


_NORMALIZERS: Dict[str, Callable[[Any, int, Dict[str, str]], CanonicalRecord]] = {
    "customers": _customer,
    "products": _product,
    "orders": _order,
}


def records_to_wire(records: List[CanonicalRecord]) -> List[Dict[str, Any]]:
    return [r.to_wire() for r in records]

