import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from app import create_app
from core.config import Config

TARGET_URL = "https://upstream.test/zen"


class RecordingLogger:
    """RequestLogger that keeps every call for assertions."""

    def __init__(self):
        self.forwards = []
        self.errors = []

    def log_forward(self, method, path, status, *, elapsed_ms):
        self.forwards.append((method, path, status))

    def log_error(self, route, status, message):
        self.errors.append((route, status, message))


def make_request(method="GET", path="/anything", headers=None, body=b""):
    """Build a Starlette request straight from an ASGI scope."""
    raw_headers = [
        (key.lower().encode("latin-1"), value.encode("latin-1"))
        for key, value in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "server": ("testserver", 80),
        "client": ("testclient", 50000),
    }
    received = False

    async def receive():
        nonlocal received
        if received:
            return {"type": "http.disconnect"}
        received = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


@pytest.fixture
def logger():
    return RecordingLogger()


@pytest.fixture
def config():
    return Config.model_validate({"upstream": {"target_url": TARGET_URL}})


@pytest.fixture
def make_client(config, logger):
    """Start the app against a mocked upstream; `handler` receives each outbound request."""
    clients = []

    def _make(handler, app_config=None):
        app = create_app(app_config or config, logger, transport=httpx.MockTransport(handler))
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)
