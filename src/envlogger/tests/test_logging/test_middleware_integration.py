# src/envlogger/tests/test_logging/test_middleware_integration.py
import json

from fastapi import FastAPI
from starlette.testclient import TestClient

from envlogger.core.logging.context import get_request_id
from envlogger.core.logging.middleware import RequestIDMiddleware


def build_app(factory):
    routes_logger = factory.create_logger("routes")

    app = FastAPI()
    app.add_middleware(RequestIDMiddleware, logger=factory.create_logger("http"))

    @app.get("/hello")
    async def hello():
        routes_logger.info("handling hello")
        return {"ok": True, "request_id": get_request_id()}

    return app


def test_request_id_in_response_and_log_lines(make_factory):
    factory = make_factory('{"levels": {"default": "http"}}')
    client = TestClient(build_app(factory))

    resp = client.get("/hello")
    assert resp.status_code == 200

    rid = resp.headers.get("X-Request-ID")
    assert rid
    assert resp.json()["request_id"] == rid

    output = factory.stream.getvalue()
    assert f"[HTTP] [{rid}] [http] - Request started" in output
    assert f"[INFO] [{rid}] [routes] - handling hello" in output
    assert get_request_id() is None


def test_incoming_header_is_honoured(make_factory):
    factory = make_factory('{"format": "json"}')
    client = TestClient(build_app(factory))

    resp = client.get("/hello", headers={"X-Request-ID": "abc-123"})
    assert resp.headers["X-Request-ID"] == "abc-123"

    records = [json.loads(line) for line in factory.stream.getvalue().splitlines()]
    # default level is info, so only the route line is written
    assert [r["label"] for r in records] == ["routes"]
    assert records[0]["requestId"] == "abc-123"


def test_each_request_gets_its_own_id(make_factory):
    factory = make_factory()
    client = TestClient(build_app(factory))

    first = client.get("/hello").headers["X-Request-ID"]
    second = client.get("/hello").headers["X-Request-ID"]
    assert first != second

    lines = [line for line in factory.stream.getvalue().splitlines() if "handling hello" in line]
    assert f"[{first}]" in lines[0]
    assert f"[{second}]" in lines[1]
