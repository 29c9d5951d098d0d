"""
Integration tests: real TLS exchanges between GeminiClient and GeminiServer.
"""

import threading
import time

import pytest

from geminiserver import GeminiServer
from geminiserver.client import ClientConfig, GeminiClient, request
from geminiserver.protocol import GeminiStatus


class TestRoundTrip:
    """End-to-end requests against the demo capsule."""

    def test_hello(self, test_server, client):
        """Test a successful gemtext response."""
        response = client.request(test_server.url("/"))

        assert response.status_code == 20
        assert response.status is GeminiStatus.SUCCESS
        assert response.meta == "text/gemini"
        assert response.mime_type == "text/gemini"
        assert response.body == b"# Hello\n"

    def test_plain_text(self, test_server, client):
        """Test a custom MIME type and charset."""
        response = client.request(test_server.url("/plain"))

        assert response.mime_type == "text/plain"
        assert response.charset == "utf-8"
        assert response.text == "plain text"

    def test_redirect(self, test_server, client):
        """Test a 31 redirect."""
        response = client.request(test_server.url("/redirect"))

        assert response.status_code == 31
        assert response.meta == "gemini://localhost/"
        assert response.body == b""

    def test_input_then_query(self, test_server, client):
        """Test the input prompt and the follow-up request."""
        prompt = client.request(test_server.url("/search"))
        result = client.request(test_server.url("/search?gemini%20protocol"))

        assert prompt.status_code == 10
        assert prompt.meta == "Search for?"
        assert result.text == "# Results for gemini protocol\n"

    def test_send_status(self, test_server, client):
        """Test send_status() bypasses the header set by the handler."""
        response = client.request(test_server.url("/status"))

        assert response.status_code == 51
        assert response.meta == "NOT_FOUND"

    def test_not_found(self, test_server, client):
        """Test the default branch."""
        response = client.request(test_server.url("/missing"))

        assert response.status_code == 51
        assert response.meta == "Not Found"

    def test_handler_exception(self, test_server, client):
        """Test a crashing handler produces 42 and the server keeps going."""
        response = client.request(test_server.url("/boom"))

        assert response.status_code == 42
        assert response.meta == "An unexpected error occurred"
        assert client.request(test_server.url("/")).status_code == 20

    def test_handler_without_response(self, test_server, client):
        """Test a handler that never answers still closes the connection."""
        response_bytes = test_server.raw_request(
            test_server.url("/silent").encode() + b"\r\n"
        )

        assert response_bytes == b""

    def test_module_request_function(self, test_server):
        """Test the one-shot request() helper."""
        response = request(test_server.url("/"), timeout=5.0)

        assert response.is_success


class TestMalformedRequests:
    """Requests rejected before the handler runs."""

    def test_request_too_long(self, test_server):
        """Test an over-long request line gets 59."""
        data = test_server.raw_request(b"gemini://localhost/" + b"a" * 2000 + b"\r\n")

        assert data == b"59 BAD REQUEST - Invalid request length.\r\n"

    def test_request_not_utf8(self, test_server):
        """Test a request line that isn't UTF-8 gets 59."""
        data = test_server.raw_request(b"gemini://localhost/\xff\r\n")

        assert data == b"59 Malformed request\r\n"

    def test_only_first_line_is_answered(self, test_server):
        """Test a second request on the same connection is ignored."""
        data = test_server.raw_request(
            test_server.url("/").encode() + b"\r\n" + test_server.url("/redirect").encode() + b"\r\n"
        )

        assert data == b"20 text/gemini\r\n# Hello\n"


class TestConcurrency:
    """Several clients at once."""

    def test_parallel_requests(self, test_server, client):
        """Test concurrent requests all succeed."""
        results = []
        lock = threading.Lock()

        def fetch():
            response = client.request(test_server.url("/"))
            with lock:
                results.append(response.status_code)

        threads = [threading.Thread(target=fetch) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert results == [20] * 8


class BlockingCapsule:
    """Handler that holds its worker until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def __call__(self, request, response):
        self.entered.set()
        self.release.wait(5.0)
        response.send("done")


def fetch_in_background(server, results, key):
    def run():
        results[key] = server.raw_request(server.url("/").encode() + b"\r\n")

    thread = threading.Thread(target=run)
    thread.start()
    return thread


class TestOverload:
    """Clients turned away with 44 when no worker is free."""

    def test_queue_full_gets_slow_down(self, server_factory):
        """Test the client after a full queue is told to retry in 5 seconds."""
        capsule = BlockingCapsule()
        server = server_factory(capsule, min_workers=1, max_workers=1, queue_size=1)
        results = {}

        busy = fetch_in_background(server, results, "busy")
        assert capsule.entered.wait(5.0)
        queued = fetch_in_background(server, results, "queued")
        time.sleep(0.5)

        try:
            rejected = server.raw_request(server.url("/").encode() + b"\r\n")
        finally:
            capsule.release.set()
            busy.join(timeout=10.0)
            queued.join(timeout=10.0)

        assert rejected == b"44 5\r\n"
        assert results == {
            "busy": b"20 text/gemini\r\ndone",
            "queued": b"20 text/gemini\r\ndone",
        }

    def test_expired_in_queue_gets_slow_down(self, server_factory):
        """Test a connection that waited past the timeout is answered with 44."""
        capsule = BlockingCapsule()
        server = server_factory(capsule, min_workers=1, max_workers=1, queue_size=5, timeout=0.5)
        results = {}

        busy = fetch_in_background(server, results, "busy")
        assert capsule.entered.wait(5.0)
        queued = fetch_in_background(server, results, "queued")
        time.sleep(1.0)
        capsule.release.set()
        busy.join(timeout=10.0)
        queued.join(timeout=10.0)

        assert results["busy"] == b"20 text/gemini\r\ndone"
        assert results["queued"] == b"44 5\r\n"


class TestClientCertificates:
    """Client certificates are not requested by the server."""

    def test_presented_certificate_not_seen(self, server_factory, certificate):
        """Test the handler sees no peer certificate even when the client has one."""
        seen = []

        def capsule(request, response):
            seen.append(request.connection.socket.getpeercert(binary_form=True))
            response.send("ok")

        server = server_factory(capsule)
        certfile, keyfile = certificate
        client = GeminiClient(ClientConfig(timeout=5.0, certfile=certfile, keyfile=keyfile))

        response = client.request(server.url("/"))

        assert response.status_code == 20
        assert response.body == b"ok"
        assert seen == [None]


class TestServerLifecycle:
    """Tests for starting and stopping GeminiServer."""

    def test_run_without_handler(self, config):
        """Test run() refuses to start without a handler."""
        with pytest.raises(RuntimeError):
            GeminiServer(config).run(setup_logging=False, banner=False)

    def test_handle_decorator(self, config):
        """Test handle() returns the function unchanged."""
        server = GeminiServer(config)

        @server.handle
        def app(request, response):
            response.send()

        assert server.handler is app

    def test_invalid_config(self, config):
        """Test the constructor validates the config."""
        config.port = -5

        with pytest.raises(ValueError):
            GeminiServer(config)
