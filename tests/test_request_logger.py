import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ppc_advisor.observability.context import trace_id_var
from ppc_advisor.observability.request_logger import RequestLoggerMiddleware, resolve_trace_id


@pytest.fixture
def http() -> TestClient:
    app = FastAPI()
    app.add_middleware(RequestLoggerMiddleware)

    @app.get("/echo")
    async def echo():
        return {"trace_id": trace_id_var.get()}

    return TestClient(app)


def test_caller_trace_id_is_propagated(http):
    response = http.get("/echo", headers={"X-Trace-ID": "cron-2025-06-30.run_1"})

    assert response.json() == {"trace_id": "cron-2025-06-30.run_1"}
    assert response.headers["X-Trace-ID"] == "cron-2025-06-30.run_1"
    assert int(response.headers["X-Duration-Ms"]) >= 0


def test_malformed_trace_id_is_replaced(http):
    response = http.get("/echo", headers={"X-Trace-ID": "bad id with spaces"})

    trace_id = response.headers["X-Trace-ID"]
    assert trace_id != "bad id with spaces"
    assert response.json() == {"trace_id": trace_id}


def test_resolve_trace_id():
    assert resolve_trace_id("abc-123") == "abc-123"
    assert resolve_trace_id("x" * 65) != "x" * 65
    assert resolve_trace_id(None)
