"""
pytest configuration and fixtures.
"""

import copy
import socket
import threading
import time
from collections import Counter
from typing import Generator

import bson
import pytest
from pymongo.errors import DuplicateKeyError, ExecutionTimeout
from pymongo.results import DeleteResult, InsertOneResult

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from userapi import HTTPServer, ServerConfig, create_app
from userapi.handlers import UserHandler
from userapi.store import UserStore


# =============================================================================
# COLLECTION DOUBLES
# =============================================================================

class FakeCollection:
    """
    In-memory stand-in for a pymongo Collection.

    Implements the three calls UserStore makes and counts them, so tests
    can assert that a request never reached the database.
    """

    def __init__(self):
        self.documents: dict = {}
        self.calls = Counter()

    def find_one(self, filter):
        self.calls["find_one"] += 1
        document = self.documents.get(filter["_id"])
        return copy.deepcopy(document) if document is not None else None

    def insert_one(self, document):
        self.calls["insert_one"] += 1
        if document["_id"] in self.documents:
            raise DuplicateKeyError(f"E11000 duplicate key error: {document['_id']}")
        self.documents[document["_id"]] = copy.deepcopy(document)
        return InsertOneResult(document["_id"], acknowledged=True)

    def delete_one(self, filter):
        self.calls["delete_one"] += 1
        removed = self.documents.pop(filter["_id"], None)
        return DeleteResult({"n": 1 if removed is not None else 0}, acknowledged=True)

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())


class EncodingCollection(FakeCollection):
    """Encodes to BSON first, as the driver does before sending."""

    def insert_one(self, document):
        bson.encode(document)
        return super().insert_one(document)


class SlowCollection(FakeCollection):
    """
    A server that never answers in time.

    Sleeps briefly, then fails the way the driver does once a
    pymongo.timeout() deadline passes.
    """

    def __init__(self, delay: float = 0.2):
        super().__init__()
        self.delay = delay

    def _expire(self):
        time.sleep(self.delay)
        raise ExecutionTimeout("operation exceeded time limit", 50)

    def find_one(self, filter):
        self.calls["find_one"] += 1
        self._expire()

    def insert_one(self, document):
        self.calls["insert_one"] += 1
        self._expire()

    def delete_one(self, filter):
        self.calls["delete_one"] += 1
        self._expire()


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sample_get_request() -> bytes:
    """GET for a user; the query string is not part of the path."""
    return (
        b"GET /user/65a1f0c2e4b0a1b2c3d4e5f6?fields=name&fields=email HTTP/1.1\r\n"
        b"Host: localhost:9000\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """POST /user with a JSON body."""
    body = b'{"name": "Ada", "email": "ada@example.com"}'
    return (
        b"POST /user HTTP/1.1\r\n"
        b"Host: localhost:9000\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
        + body
    )


@pytest.fixture
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture
def store(collection: FakeCollection) -> UserStore:
    return UserStore(collection, timeout=1.0)


@pytest.fixture
def handler(store: UserStore) -> UserHandler:
    return UserHandler(store)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def config(free_port: int) -> ServerConfig:
    """Test configuration on a free local port."""
    return ServerConfig(
        host="127.0.0.1",
        port=free_port,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=1.0,
        log_level="WARNING",
    )


class ServerThread:
    """Runs an HTTPServer in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.port = server.config.port
        self._thread: threading.Thread = None

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def running_app(config: ServerConfig, store: UserStore) -> Generator[ServerThread, None, None]:
    """The user service on a real socket, backed by the fake collection."""
    app = ServerThread(create_app(config, store))
    app.start()

    yield app

    app.stop()
