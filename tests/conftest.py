"""Shared fixtures for the analytics client tests."""

from __future__ import annotations

import json
import socketserver
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional, Tuple

import pytest
from loguru import logger

from analytics_client import ClientConfig
from analytics_client.core.events import EventBatch
from analytics_client.sender import HTTPSender, SenderConfig

ENV_VARS = (
    "ANALYTICS_ENDPOINT_URL",
    "ANALYTICS_API_KEY",
    "ANALYTICS_FLUSH_INTERVAL",
    "ANALYTICS_MAX_QUEUE_LENGTH",
    "ANALYTICS_SHUTDOWN_TIMEOUT",
    "ANALYTICS_MAX_RETRIES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep configuration tests independent of the caller's environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def log_records():
    """Capture loguru output as (level, message) tuples."""
    records: List[Tuple[str, str]] = []
    handler_id = logger.add(lambda msg: records.append((msg.record["level"].name, msg.record["message"])), level="DEBUG")
    yield records
    logger.remove(handler_id)


class IngestServer:
    """Records batch requests; replies with scripted statuses (200 once the script runs out)."""

    def __init__(self):
        self.requests: List[Dict[str, Any]] = []
        self.statuses: List[int] = []
        self.delay = 0.0
        self._cond = threading.Condition()

    @property
    def url(self) -> str:
        host, port = self.server.server_address[:2]
        return f"http://{host}:{port}"

    def next_status(self) -> int:
        with self._cond:
            return self.statuses.pop(0) if self.statuses else 200

    def record(self, path: str, headers: Dict[str, str], body: Dict[str, Any], status: int) -> None:
        with self._cond:
            self.requests.append({"path": path, "headers": headers, "body": body, "status": status})
            self._cond.notify_all()

    def wait_for_requests(self, count: int, timeout: float = 5.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: len(self.requests) >= count, timeout=timeout)

    def event_names(self, index: int) -> List[str]:
        return [record["event"] for record in self.requests[index]["body"]["batch"]]


class _IngestHandler(BaseHTTPRequestHandler):
    def do_POST(self):
        ingest: IngestServer = self.server.ingest  # type: ignore[attr-defined]
        length = int(self.headers.get("Content-Length", 0))
        body = json.loads(self.rfile.read(length))

        if ingest.delay:
            time.sleep(ingest.delay)

        status = ingest.next_status()
        ingest.record(self.path, dict(self.headers), body, status)

        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", "2")
        self.end_headers()
        self.wfile.write(b"{}")

    def log_message(self, *args):
        pass  # Suppress logs


class _Server(ThreadingHTTPServer):
    daemon_threads = True
    block_on_close = False


@pytest.fixture
def ingest_server():
    ingest = IngestServer()
    server = _Server(("127.0.0.1", 0), _IngestHandler)
    server.ingest = ingest  # type: ignore[attr-defined]
    ingest.server = server
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield ingest

    server.shutdown()
    server.server_close()


@pytest.fixture
def make_config(ingest_server):
    """Build a client config pointed at the local ingest server."""

    def _make(**overrides) -> ClientConfig:
        options = {
            "endpoint_url": ingest_server.url,
            "api_key": "phc_test_key",
            "flush_interval": 60.0,
            "shutdown_timeout": 5.0,
            "retry_backoff_base": 0.0,
            "shutdown_on_exit": False,
        }
        options.update(overrides)
        return ClientConfig(**options)

    return _make


class RecordingSender(HTTPSender):
    """Sender double that records drained batches instead of sending them."""

    def __init__(self, block: Optional[threading.Event] = None, succeed: bool = True):
        super().__init__(SenderConfig(endpoint_url="http://ingest.invalid", api_key="phc_test_key"))
        self.batches: List[List[str]] = []
        self.block = block
        self.succeed = succeed
        self.sent = threading.Event()

    def send_batch(self, batch: EventBatch) -> Tuple[bool, str]:
        if self.block is not None:
            self.block.wait()
        self.batches.append([event.name for event in batch])
        self.sent.set()
        return (True, "") if self.succeed else (False, "boom")


@pytest.fixture
def recording_sender():
    return RecordingSender()


@pytest.fixture
def sender_factory():
    return RecordingSender


class _GarbageHandler(socketserver.StreamRequestHandler):
    """Reads a full HTTP request, then answers with a line that is not a status line."""

    def handle(self):
        length = 0
        while True:
            line = self.rfile.readline()
            if line in (b"\r\n", b"\n", b""):
                break
            name, _, value = line.decode("latin-1").partition(":")
            if name.strip().lower() == "content-length":
                length = int(value.strip())
        self.rfile.read(length)
        self.server.connections += 1  # type: ignore[attr-defined]
        self.wfile.write(b"garbage\r\n\r\n")


class _GarbageServer(socketserver.ThreadingTCPServer):
    daemon_threads = True
    block_on_close = False
    allow_reuse_address = True


@pytest.fixture
def garbage_server():
    """Raw TCP server whose replies make http.client raise BadStatusLine."""
    server = _GarbageServer(("127.0.0.1", 0), _GarbageHandler)
    server.connections = 0  # type: ignore[attr-defined]
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield server

    server.shutdown()
    server.server_close()
