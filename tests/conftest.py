"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpengine import HTTPServer, ServerConfig
from httpengine.handlers import create_router


class FakeConnection:
    """In-memory transport that records what a ResponseWriter sends."""

    def __init__(self, fail: bool = False):
        self.sent: list[bytes] = []
        self.fail = fail

    def send(self, data: bytes) -> None:
        if self.fail:
            raise BrokenPipeError("peer went away")
        self.sent.append(data)

    @property
    def data(self) -> bytes:
        return b"".join(self.sent)


@pytest.fixture
def fake_connection() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def failing_connection() -> FakeConnection:
    """Transport whose send() fails like a closed socket."""
    return FakeConnection(fail=True)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /echo/abc?x=1 HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/plain\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"hello world"
    return (
        b"POST /files/notes.txt HTTP/1.1\r\n"
        b"Host: localhost:4221\r\n"
        b"Content-Type: application/octet-stream\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


class RunningServer:
    """Test server helper that runs in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        """Bind, then serve in a background thread."""
        self.server.start()
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()

        # Wait for the accept loop to answer
        for _ in range(50):  # 5 seconds max
            try:
                with socket.create_connection(("127.0.0.1", self.port), timeout=1.0):
                    return
            except ConnectionRefusedError:
                time.sleep(0.1)

        raise RuntimeError("Server failed to start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        return sock


@pytest.fixture
def files_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "files"
    directory.mkdir()
    return directory


@pytest.fixture
def test_server(files_dir: Path) -> Generator[RunningServer, None, None]:
    """Run the default route table on an OS-assigned port."""
    router = create_router(str(files_dir))

    @router.route("/boom")
    def boom(writer, request):
        raise RuntimeError("handler failure")

    @router.route("/disk")
    def disk(writer, request):
        raise OSError(28, "No space left on device")

    @router.route("/silent")
    def silent(writer, request):
        writer.set_status(202).set_body("not written")

    server = HTTPServer(router, ServerConfig(
        host="127.0.0.1",
        port=0,
        max_body_size=1024,
        timeout=5.0,
        log_level="WARNING",
    ))

    running = RunningServer(server)
    running.start()

    yield running

    running.stop()
