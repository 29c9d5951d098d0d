"""
pytest configuration and fixtures.
"""

import socket
import ssl
import threading
from dataclasses import replace
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from geminiserver import GeminiServer, ServerConfig
from geminiserver.client import ClientConfig, GeminiClient
from geminiserver.core.tls import generate_ad_hoc_certificate
from geminiserver.protocol import GeminiRequest, GeminiResponse


class FakeConnection:
    """
    Stands in for core.connection.Connection in response tests.

    Records every write in ``sent`` and counts close() calls.
    """

    def __init__(self, accept_writes: bool = True):
        self.address = ("127.0.0.1", 50000)
        self.accept_writes = accept_writes
        self.sent: list[bytes] = []
        self.close_calls = 0

    @property
    def data(self) -> bytes:
        return b"".join(self.sent)

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    def send_response(self, data: bytes) -> bool:
        if not self.accept_writes:
            return False
        self.sent.append(data)
        return True

    def close(self):
        self.close_calls += 1


@pytest.fixture
def fake_connection() -> FakeConnection:
    """A connection that records what is written to it."""
    return FakeConnection()


@pytest.fixture
def response(fake_connection) -> GeminiResponse:
    """A fresh GeminiResponse over a FakeConnection."""
    return GeminiResponse(fake_connection)


@pytest.fixture(scope="session")
def certificate(tmp_path_factory) -> tuple[str, str]:
    """Self-signed (certfile, keyfile) for localhost, shared by the session."""
    directory = tmp_path_factory.mktemp("certs")
    return generate_ad_hoc_certificate("localhost", str(directory))


@pytest.fixture
def config(certificate) -> ServerConfig:
    """Default test server configuration."""
    certfile, keyfile = certificate
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        certfile=certfile,
        keyfile=keyfile,
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def demo_handler(request: GeminiRequest, response: GeminiResponse) -> None:
    """Small capsule used by the integration tests."""
    if request.path == "/":
        response.send("# Hello\n")
    elif request.path == "/plain":
        response.set_head(20, "text/plain; charset=utf-8").send("plain text")
    elif request.path == "/redirect":
        response.redirect("gemini://localhost/")
    elif request.path == "/search":
        if request.query:
            response.send(f"# Results for {request.query}\n")
        else:
            response.input("Search for?")
    elif request.path == "/status":
        response.set_head(20, "text/gemini")
        response.send_status(51)
    elif request.path == "/boom":
        raise RuntimeError("handler exploded")
    elif request.path == "/silent":
        return
    else:
        response.not_found()


class TestServer:
    """Test server helper that runs in a background thread."""

    __test__ = False

    def __init__(self, server: GeminiServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def host(self) -> str:
        return self.server.address[0]

    @property
    def port(self) -> int:
        return self.server.address[1]

    def url(self, path: str = "/") -> str:
        return f"gemini://localhost:{self.port}{path}"

    def start(self):
        """Start server in background thread."""
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"setup_logging": False, "banner": False},
            daemon=True,
        )
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Test server did not start")

    def stop(self):
        """Stop the server."""
        self.server.shutdown()
        if self._thread:
            self._thread.join(timeout=10.0)

    def raw_request(self, data: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes over TLS and read until the server closes."""
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        with socket.create_connection((self.host, self.port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname="localhost") as tls_sock:
                tls_sock.sendall(data)
                chunks = []
                while True:
                    chunk = tls_sock.recv(4096)
                    if not chunk:
                        break
                    chunks.append(chunk)
                return b"".join(chunks)


@pytest.fixture
def test_server(config) -> Generator[TestServer, None, None]:
    """Running Gemini server with the demo handler."""
    server = TestServer(GeminiServer(config, demo_handler))
    server.start()
    yield server
    server.stop()


@pytest.fixture
def client() -> GeminiClient:
    """Client with a short timeout and no certificate checks."""
    return GeminiClient(ClientConfig(timeout=5.0))


@pytest.fixture
def server_factory(config):
    """Start servers with a custom handler and config overrides."""
    started = []

    def make(handler, **overrides) -> TestServer:
        server = TestServer(GeminiServer(replace(config, **overrides), handler))
        server.start()
        started.append(server)
        return server

    yield make
    for server in started:
        server.stop()
