from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from notaria_common.fastapi.metrics import add_prometheus_middleware
from notaria_common.metrics import record_request


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_record_request():
    labels = {"service": "unit", "method": "GET", "endpoint": "/x", "status_code": "200"}
    before = _sample("http_requests_total", **labels)

    record_request("unit", "GET", "/x", 200, 0.01)

    assert _sample("http_requests_total", **labels) == before + 1


def test_middleware_uses_route_template():
    app = FastAPI()
    add_prometheus_middleware(app, "metrics-test")

    @app.get("/items/{item_id}")
    def item(item_id: str):
        return {"id": item_id}

    @app.get("/health")
    def health():
        return {"status": "ok"}

    labels = {
        "service": "metrics-test",
        "method": "GET",
        "endpoint": "/items/{item_id}",
        "status_code": "200",
    }
    before = _sample("http_requests_total", **labels)

    client = TestClient(app)
    client.get("/items/1")
    client.get("/items/2")
    client.get("/health")

    assert _sample("http_requests_total", **labels) == before + 2
    assert _sample(
        "http_requests_total",
        service="metrics-test",
        method="GET",
        endpoint="/health",
        status_code="200",
    ) == 0.0
