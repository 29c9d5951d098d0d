"""
=============================================================================
GEMINI CLIENT
=============================================================================

Fetch one Gemini URL and return the parsed response.

    >>> from geminiserver import request
    >>> response = request("gemini://localhost/")
    >>> response.status_code, response.meta
    (20, 'text/gemini')
    >>> response.text
    '# Welcome\\n...'

=============================================================================
ONE REQUEST, STEP BY STEP
=============================================================================

    1. URL          "localhost/docs"  →  "gemini://localhost/docs"
                    host "localhost", port 1965 (URL port, else default)
    2. CONNECT      socket.create_connection((host, port))
    3. TLS          wrap with SNI = host
    4. WRITE        b"gemini://localhost/docs\\r\\n"
    5. READ         everything until the server closes
    6. PARSE        "20 text/gemini\\r\\n" + body  →  ClientResponse

Every failure is a typed exception:

    InvalidUrlError          no host, bad port
    InvalidRequestError      request line over 1024 bytes (nothing is sent)
    DnsFailureError          name didn't resolve
    SocketConnectError       TCP connect failed or timed out
    TlsHandshakeError        TLS negotiation failed
    SocketWriteError         couldn't send the request line
    SocketReadError          connection broke while reading
    MalformedResponseError   reply has no valid header line

=============================================================================
CERTIFICATES
=============================================================================

Gemini servers mostly use self-signed certificates and clients are meant
to pin them on first use. This client doesn't pin, so by default it does
NOT verify the server certificate at all (``verify_certificates=False``).
Turn verification on for servers with CA-issued certificates.

=============================================================================
"""

import argparse
import logging
import socket
import ssl
import sys
from dataclasses import dataclass, replace
from typing import Optional, Union
from urllib.parse import SplitResult, urlsplit, urlunsplit

from .core.tls import create_client_context
from .errors import (
    DnsFailureError,
    GeminiError,
    InvalidRequestError,
    InvalidUrlError,
    SocketConnectError,
    SocketReadError,
    SocketWriteError,
    TlsHandshakeError,
)
from .protocol.request import MAX_URL_LENGTH
from .protocol.response import ClientResponse, parse_response


logger = logging.getLogger(__name__)

DEFAULT_SCHEME = "gemini"


@dataclass
class ClientConfig:
    """
    Client settings.

    Attributes:
        timeout: Seconds for connect, handshake and each read.
        buffer_size: Bytes requested per recv().
        verify_certificates: Validate the server certificate chain and
                             hostname. Off by default (see module docs).
        certfile: Client certificate to present, if any.
        keyfile: Private key for ``certfile``.
        default_port: Port used when the URL has none.
    """

    timeout: Optional[float] = 30.0
    buffer_size: int = 4096
    verify_certificates: bool = False
    certfile: Optional[str] = None
    keyfile: Optional[str] = None
    default_port: int = 1965


class GeminiClient:
    """
    Performs Gemini requests. Holds no connection state between calls, so
    one instance can be shared between threads.

        client = GeminiClient(ClientConfig(timeout=10))
        response = client.request("gemini://example.org/")
    """

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()
        self._ssl_context = create_client_context(
            verify=self.config.verify_certificates,
            certfile=self.config.certfile,
            keyfile=self.config.keyfile,
        )

    def request(self, url: Union[str, SplitResult]) -> ClientResponse:
        """
        Fetch ``url`` and return the complete response.

        Args:
            url: A URL string or an already-split URL. A string without a
                 scheme is treated as gemini://.

        Returns:
            ClientResponse with the status code, meta and raw body.

        Raises:
            ClientError: Bad URL, over-long request or malformed reply.
            TransportError: DNS, connect, TLS, write or read failure.
        """
        url_text, host, port = self.resolve_url(url)

        request_line = f"{url_text}\r\n".encode("utf-8")
        if len(request_line) - 2 > MAX_URL_LENGTH:
            raise InvalidRequestError(
                f"Request URL is {len(request_line) - 2} bytes, limit is {MAX_URL_LENGTH}"
            )

        logger.debug(f"Requesting {url_text} from {host}:{port}")
        data = self._exchange(host, port, request_line)
        response = parse_response(data, url_text)
        logger.debug(f"{url_text} -> {response.status_code} {response.meta} ({len(response.body)} bytes)")
        return response

    def resolve_url(self, url: Union[str, SplitResult]) -> tuple[str, str, int]:
        """
        Split a URL into (request_url, host, port).

        A string is sent exactly as given (after adding a missing
        ``gemini://``), so markers like an empty "?" survive.

        Raises:
            InvalidUrlError: No host, or a port that isn't a number.
        """
        if isinstance(url, SplitResult):
            parsed = url
            url = urlunsplit(parsed)
        else:
            if "://" not in url:
                url = f"{DEFAULT_SCHEME}://{url}"
            parsed = urlsplit(url)

        host = parsed.hostname
        if not host:
            raise InvalidUrlError(f"URL has no host: {url!r}")

        try:
            port = parsed.port
        except ValueError as e:
            raise InvalidUrlError(f"Invalid port in URL {url!r}: {e}") from e

        return url, host, port or self.config.default_port

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def _exchange(self, host: str, port: int, request_line: bytes) -> bytes:
        try:
            sock = socket.create_connection((host, port), timeout=self.config.timeout)
        except socket.gaierror as e:
            raise DnsFailureError(f"Could not resolve {host!r}: {e}") from e
        except OSError as e:
            raise SocketConnectError(f"Could not connect to {host}:{port}: {e}") from e

        with sock:
            try:
                tls_sock = self._ssl_context.wrap_socket(sock, server_hostname=host)
            except (ssl.SSLError, OSError) as e:
                raise TlsHandshakeError(f"TLS handshake with {host}:{port} failed: {e}") from e

            with tls_sock:
                try:
                    tls_sock.sendall(request_line)
                except OSError as e:
                    raise SocketWriteError(f"Failed to send request: {e}") from e

                return self._read_until_close(tls_sock)

    def _read_until_close(self, sock: ssl.SSLSocket) -> bytes:
        chunks = []
        while True:
            try:
                chunk = sock.recv(self.config.buffer_size)
            except OSError as e:
                raise SocketReadError(f"Failed to read response: {e}") from e
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks)


def request(url: Union[str, SplitResult], **config_overrides) -> ClientResponse:
    """
    One-shot request with a fresh client.

        response = request("gemini://localhost:1966/", timeout=5)

    Keyword arguments override ClientConfig fields.
    """
    config = replace(ClientConfig(), **config_overrides)
    return GeminiClient(config).request(url)


# =============================================================================
# CLI: gemini-fetch
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    """
    Fetch a URL: header to stderr, body to stdout.

    Exit code 0 for a 2x response, 1 for anything else or any error.
    """
    parser = argparse.ArgumentParser(
        prog="gemini-fetch",
        description="Fetch a single Gemini URL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gemini-fetch gemini://localhost/
  gemini-fetch localhost:1966/docs/ > docs.gmi
  gemini-fetch --verify gemini://example.org/
        """,
    )
    parser.add_argument("url", help="URL to fetch (gemini:// is assumed)")
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Verify the server certificate against the system CA store",
    )
    parser.add_argument("--certfile", default=None, help="Client certificate (PEM)")
    parser.add_argument("--keyfile", default=None, help="Client private key (PEM)")
    parser.add_argument(
        "--timeout", "-t",
        type=float,
        default=30.0,
        help="Network timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging level (default: WARNING)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config = ClientConfig(
        timeout=args.timeout,
        verify_certificates=args.verify,
        certfile=args.certfile,
        keyfile=args.keyfile,
    )

    try:
        response = GeminiClient(config).request(args.url)
    except GeminiError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    print(f"{response.status_code} {response.meta}", file=sys.stderr)
    sys.stdout.buffer.write(response.body)
    sys.stdout.flush()
    return 0 if response.is_success else 1


if __name__ == "__main__":
    sys.exit(main())
