from fastapi.testclient import TestClient


def test_readyz_ok(dispatcher):
    from gomanage_relay.api_main import create_app

    c = TestClient(create_app(dispatcher))
    r = c.get("/readyz")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["entities"] == ["customers", "products", "orders"]
    assert body["active_sessions"] == 0


def test_readyz_incomplete_schema(monkeypatch, dispatcher):
    from gomanage_relay.api_main import create_app
    from gomanage_relay.api.routers import health as health_router

    # Pretend the schema lost the orders descriptor and products' GraphQL document.
    monkeypatch.setattr(
        health_router.schema_store,
        "load_schema",
        lambda: {
            "entities": {
                "customers": {"transport": "rest", "rest": {"path": "/c"}},
                "products": {"transport": "graphql", "graphql": {"path": ["master_files", "products"]}},
            }
        },
    )

    c = TestClient(create_app(dispatcher))
    r = c.get("/readyz")
    assert r.status_code == 503

    body = r.json()
    assert body["error"]["code"] == "http_503"
    details = body["error"]["details"]
    assert details["status"] == "not_ready"
    assert "orders: missing entity descriptor" in details["problems"]
    assert "products: graphql.document is required" in details["problems"]


def test_readyz_schema_file_missing(monkeypatch, tmp_path, dispatcher):
    from gomanage_relay.api_main import create_app
    from gomanage_relay import schema_store

    monkeypatch.setattr(schema_store, "GOMANAGE_SCHEMA_PATH", str(tmp_path / "absent.yaml"))

    c = TestClient(create_app(dispatcher))
    r = c.get("/readyz")
    assert r.status_code == 503
    assert "Upstream schema not found" in r.json()["error"]["details"]["problems"][0]
