"""Pytest configuration and fixtures.

`fake_server` runs an in-memory NahCloud API on a local port so the
client is exercised over real HTTP.
"""

import json
import re
import socket
import threading
from collections import defaultdict
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

import pytest

from nahcloud import NahCloudClient

COLLECTIONS = {
    "projects": "p",
    "instances": "i",
    "metadata": "m",
    "buckets": "b",
}

_COLLECTION_RE = re.compile(r"^/v1/(projects|instances|metadata|buckets)(?:/([^/]+))?$")
_OBJECT_RE = re.compile(r"^/v1/bucket/([^/]+)/objects(?:/([^/]+))?$")


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CannedResponse:
    """Response returned instead of normal routing.

    `delay` holds the response before anything is sent, or, with
    `split_at`, after the first `split_at` body bytes. `trickle` sends the
    body one byte at a time, pausing that many seconds between bytes.
    """

    def __init__(
        self,
        status: int,
        body: str = "",
        content_type: str = "text/plain",
        delay: float = 0,
        split_at: Optional[int] = None,
        trickle: float = 0,
    ):
        self.status = status
        self.body = body
        self.content_type = content_type
        self.delay = delay
        self.split_at = split_at
        self.trickle = trickle


class FakeNahCloud:
    """In-memory NahCloud API state and routing."""

    def __init__(self):
        self.lock = threading.Lock()
        self.store: dict[str, dict[str, dict]] = defaultdict(dict)
        self.objects: dict[str, dict] = {}
        self.counters: dict[str, int] = defaultdict(int)
        self.requests: list[dict] = []
        self.canned: list[CannedResponse] = []
        self.release = threading.Event()

    # Test controls

    def respond_with(self, status: int, body: str = "", content_type: str = "text/plain") -> None:
        """Answer the next request with a fixed response."""
        self.canned.append(CannedResponse(status, body, content_type))

    def stall_next(self, seconds: float) -> None:
        """Hold the next request for `seconds` (or until teardown) before answering."""
        self.canned.append(
            CannedResponse(200, json.dumps({"stalled": True}), "application/json", delay=seconds)
        )

    def stall_body_next(self, seconds: float, sent: int = 10) -> None:
        """Send headers and `sent` body bytes, then hold the rest for `seconds`."""
        body = json.dumps({"stalled": True, "padding": "x" * 32})
        self.canned.append(
            CannedResponse(200, body, "application/json", delay=seconds, split_at=sent)
        )

    def trickle_next(self, interval: float, size: int = 100) -> None:
        """Send the next body one byte every `interval` seconds."""
        body = json.dumps({"padding": "x" * size})
        self.canned.append(CannedResponse(200, body, "application/json", trickle=interval))

    @property
    def last_request(self) -> dict:
        return self.requests[-1]

    # Routing

    def _next_id(self, prefix: str) -> str:
        self.counters[prefix] += 1
        return f"{prefix}{self.counters[prefix]}"

    def handle(self, method: str, path: str, headers: dict, raw_body: bytes):
        body = None
        if raw_body:
            try:
                body = json.loads(raw_body)
            except ValueError:
                return 400, {"error": "invalid JSON"}
        with self.lock:
            self.requests.append(
                {"method": method, "path": path, "headers": headers, "body": body}
            )

            match = _COLLECTION_RE.match(path)
            if match:
                return self._collection(method, match.group(1), match.group(2), body)

            match = _OBJECT_RE.match(path)
            if match:
                return self._objects(method, match.group(1), match.group(2), body)

        return 404, {"error": f"no route for {path}"}

    def _validate(self, collection: str, body: Optional[dict]):
        if not isinstance(body, dict):
            return "body must be a JSON object"
        required = {
            "projects": ("name",),
            "buckets": ("name",),
            "metadata": ("path", "value"),
            "instances": ("project_id", "name", "cpu", "memory_mb", "image"),
        }[collection]
        missing = [k for k in required if k not in body]
        if missing:
            return f"missing fields: {', '.join(missing)}"
        return None

    def _collection(self, method: str, collection: str, item_id: Optional[str], body):
        items = self.store[collection]

        if item_id is None:
            if method != "POST":
                return 405, {"error": "method not allowed"}
            error = self._validate(collection, body)
            if error:
                return 400, {"error": error}
            if collection == "instances" and body["project_id"] not in self.store["projects"]:
                return 404, {"error": "project not found"}
            record = dict(body)
            if collection == "instances":
                record.setdefault("status", "running")
            record["id"] = self._next_id(COLLECTIONS[collection])
            record["created_at"] = record["updated_at"] = _now()
            items[record["id"]] = record
            return 201, record

        return self._item(method, items, item_id, body, immutable=("project_id",))

    def _objects(self, method: str, bucket_id: str, object_id: Optional[str], body):
        if bucket_id not in self.store["buckets"]:
            return 404, {"error": "bucket not found"}

        if object_id is None:
            if method != "POST":
                return 405, {"error": "method not allowed"}
            if not isinstance(body, dict) or "path" not in body:
                return 400, {"error": "missing fields: path"}
            record = {
                "id": self._next_id("o"),
                "bucket_id": bucket_id,
                "path": body["path"],
                "content": body.get("content", ""),
            }
            record["created_at"] = record["updated_at"] = _now()
            self.objects[record["id"]] = record
            return 201, record

        record = self.objects.get(object_id)
        if record is None or record["bucket_id"] != bucket_id:
            return 404, {"error": "object not found"}
        return self._item(method, self.objects, object_id, body, immutable=("bucket_id",))

    def _item(self, method: str, items: dict, item_id: str, body, immutable: tuple):
        record = items.get(item_id)
        if record is None:
            return 404, {"error": "not found"}
        if method == "GET":
            return 200, record
        if method == "DELETE":
            del items[item_id]
            return 204, None
        if method == "PATCH":
            if not isinstance(body, dict):
                return 400, {"error": "body must be a JSON object"}
            for key, value in body.items():
                if key in ("id", "created_at", "updated_at") + immutable:
                    continue
                record[key] = value
            record["updated_at"] = max(record["updated_at"], _now())
            return 200, record
        return 405, {"error": "method not allowed"}


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):
        pass

    def _dispatch(self):
        app: FakeNahCloud = self.server.app
        length = int(self.headers.get("Content-Length") or 0)
        raw_body = self.rfile.read(length) if length else b""

        canned = None
        with app.lock:
            if app.canned:
                canned = app.canned.pop(0)
                app.requests.append({
                    "method": self.command,
                    "path": self.path,
                    "headers": dict(self.headers),
                    "body": json.loads(raw_body) if raw_body else None,
                })

        if canned is not None:
            if canned.delay and canned.split_at is None:
                app.release.wait(canned.delay)
            self._write(canned.status, canned.body.encode("utf-8"), canned.content_type, canned)
            return

        status, payload = app.handle(self.command, self.path, dict(self.headers), raw_body)
        body = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self._write(status, body, "application/json")

    def _write(self, status: int, body: bytes, content_type: str, canned: Optional[CannedResponse] = None):
        release = self.server.app.release
        try:
            self.send_response(status)
            if body:
                self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            if not body:
                return
            if canned is not None and canned.trickle:
                for i in range(len(body)):
                    self.wfile.write(body[i:i + 1])
                    release.wait(canned.trickle)
            elif canned is not None and canned.split_at is not None:
                self.wfile.write(body[:canned.split_at])
                release.wait(canned.delay)
                self.wfile.write(body[canned.split_at:])
            else:
                self.wfile.write(body)
        except (BrokenPipeError, ConnectionResetError):
            pass

    do_GET = _dispatch
    do_POST = _dispatch
    do_PATCH = _dispatch
    do_DELETE = _dispatch


class FakeNahCloudServer:
    """Threaded HTTP server wrapping FakeNahCloud."""

    def __init__(self):
        self.app = FakeNahCloud()
        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
        self.httpd.daemon_threads = True
        self.httpd.app = self.app
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    @property
    def url(self) -> str:
        host, port = self.httpd.server_address[:2]
        return f"http://{host}:{port}"

    def start(self) -> None:
        self.thread.start()

    def stop(self) -> None:
        self.app.release.set()
        self.httpd.shutdown()
        self.httpd.server_close()
        self.thread.join(timeout=5)


@pytest.fixture
def fake_server():
    """Running fake NahCloud server; its state is in `fake_server.app`."""
    server = FakeNahCloudServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def api(fake_server):
    """In-memory API state of the fake server."""
    return fake_server.app


@pytest.fixture
def client(fake_server):
    """Authenticated client pointed at the fake server."""
    c = NahCloudClient(endpoint=fake_server.url, token="test-token", timeout=5)
    yield c
    c.close()


@pytest.fixture
def anonymous_client(fake_server):
    """Client without a token."""
    c = NahCloudClient(endpoint=fake_server.url, timeout=5)
    yield c
    c.close()


@pytest.fixture
def sample_instance_payload():
    """Instance record as the API returns it."""
    return {
        "id": "i1",
        "project_id": "p1",
        "name": "web-1",
        "cpu": 2,
        "memory_mb": 1024,
        "image": "ubuntu:22.04",
        "status": "running",
        "created_at": "2024-01-15T10:30:00.123456789Z",
        "updated_at": "2024-01-15T10:30:00Z",
    }


@pytest.fixture
def closed_port_url():
    """URL of a local port with nothing listening."""
    sock = socket.socket()
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return f"http://127.0.0.1:{port}"
