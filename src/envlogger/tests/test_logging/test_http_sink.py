# src/envlogger/tests/test_logging/test_http_sink.py
import json
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest

from envlogger.core.logging.formatters import JsonFormatter
from envlogger.core.logging.handlers import JsonHTTPHandler
from envlogger.core.logging.context import request_context


class CollectingHandler(BaseHTTPRequestHandler):
    def do_POST(self):
        length = int(self.headers.get("Content-Length", 0))
        self.server.received.append(
            {
                "path": self.path,
                "content_type": self.headers.get("Content-Type"),
                "body": json.loads(self.rfile.read(length)),
            }
        )
        self.send_response(204)
        self.end_headers()

    def log_message(self, format, *args):
        pass


@pytest.fixture
def collector():
    server = ThreadingHTTPServer(("127.0.0.1", 0), CollectingHandler)
    server.received = []
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


def free_port():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_posts_json_record(collector, record_factory):
    handler = JsonHTTPHandler("127.0.0.1", collector.server_port, "/logs")
    handler.setFormatter(JsonFormatter(service="svc"))
    handler.handle(record_factory("hello", label="api", request_id="r1"))

    assert handler.dropped == 0
    (received,) = collector.received
    assert received["path"] == "/logs"
    assert received["content_type"] == "application/json"
    assert received["body"]["message"] == "hello"
    assert received["body"]["label"] == "api"
    assert received["body"]["requestId"] == "r1"
    assert received["body"]["service"] == "svc"


def test_unreachable_endpoint_drops_silently(record_factory):
    handler = JsonHTTPHandler("127.0.0.1", free_port(), timeout=0.5)
    handler.setFormatter(JsonFormatter())
    handler.handle(record_factory("lost"))
    handler.handle(record_factory("lost again"))
    assert handler.dropped == 2


def test_factory_http_transport_end_to_end(make_factory, collector):
    factory = make_factory(
        json.dumps(
            {
                "transports": [
                    {"type": "http", "options": {"host": "127.0.0.1", "port": collector.server_port, "path": "/ingest"}}
                ]
            }
        )
    )
    handle = factory.create_logger("orders")
    with request_context.scope("req-7"):
        handle.info("order %s placed", "A-1", {"total": 12.5})
    handle.debug("not sent")
    factory.flush()

    (received,) = collector.received
    body = received["body"]
    assert received["path"] == "/ingest"
    assert body["message"] == "order A-1 placed"
    assert body["total"] == 12.5
    assert body["requestId"] == "req-7"
    assert body["level"] == "info"
    # the console still uses the pretty format
    assert "[INFO] [req-7] [orders] - order A-1 placed {'total': 12.5}" in factory.stream.getvalue()


def test_unreachable_http_transport_does_not_affect_caller(make_factory):
    factory = make_factory(
        json.dumps({"transports": [{"type": "http", "options": {"host": "127.0.0.1", "port": free_port(), "timeout": 0.5}}]})
    )
    handle = factory.create_logger("orders")
    handle.info("still fine")
    factory.flush()

    (sink,) = factory.sinks
    assert sink.dropped == 1
    assert "still fine" in factory.stream.getvalue()


@pytest.fixture
def silent_endpoint():
    """A listening socket that never accepts or answers."""
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def wait_for_lines(path, count, timeout=1.0):
    deadline = time.monotonic() + timeout
    lines = []
    while time.monotonic() < deadline:
        if path.exists():
            lines = path.read_text().splitlines()
            if len(lines) >= count:
                break
        time.sleep(0.02)
    return lines


def test_stalled_http_sink_does_not_hold_back_file_sink(make_factory, silent_endpoint, tmp_path):
    factory = make_factory(
        json.dumps(
            {
                "transports": [
                    {"type": "http", "options": {"host": "127.0.0.1", "port": silent_endpoint, "timeout": 1}},
                    {"type": "file", "options": {"filename": "app.log"}},
                ]
            }
        ),
        queue_max_size=3,
    )
    handle = factory.create_logger("orders")
    for i in range(10):
        handle.info("order %d", i)
        # paced so only a stalled lane can fall three records behind
        time.sleep(0.01)

    # no flush: the file lane has to keep up on its own
    lines = wait_for_lines(tmp_path / "logs" / "app.log", 10)
    assert len(lines) == 10
    assert lines[-1].endswith("[orders] - order 9")

    stats = factory.queue_stats()
    assert stats["dropped_logs"] == 0
    assert stats["http_dropped_logs"] > 0
