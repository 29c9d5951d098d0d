"""
=============================================================================
GEMINI REQUEST FRAMING
=============================================================================

A Gemini request is the simplest request format you will ever parse:

    gemini://example.org/path?query\r\n
    ─────────────────────────────── ────
                  │                   │
              Absolute URL          CRLF
           (max 1024 bytes,
              UTF-8)

No method, no headers, no body. One line per connection, then the server
replies and closes.

=============================================================================
WHY FRAMING IS STILL HARD
=============================================================================

TLS (like TCP underneath it) is a byte stream. The request line can arrive
in any number of chunks:

    recv() → b"gemini://exa"
    recv() → b"mple.org/\r"          ← CR at the end of one chunk...
    recv() → b"\n"                   ← ...LF at the start of the next

So we buffer, and we must never miss a delimiter that straddles a chunk
boundary. ``RequestFramer`` handles exactly this and nothing else: it is
a per-connection state object that you ``feed()`` chunks into.

=============================================================================
LIMITS
=============================================================================

    MAX_URL_LENGTH      = 1024 bytes
    MAX_REQUEST_LENGTH  = 1026 bytes  (URL + CRLF)

1. A single chunk longer than MAX_REQUEST_LENGTH is rejected immediately,
   without looking for a delimiter.
2. The buffer as a whole is also bounded: once it holds more than
   MAX_URL_LENGTH + 1 bytes and still no CRLF, no valid request can follow.
   (+1 because the last byte may be the CR of a CRLF still in flight.)
3. A CRLF found past byte 1024 means the URL itself was too long.

All three map to the same reply: ``59 BAD REQUEST - Invalid request length.``

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlsplit, unquote, SplitResult

from ..errors import GeminiError
from .status_codes import GeminiStatus


CRLF = b"\r\n"
MAX_URL_LENGTH = 1024
MAX_REQUEST_LENGTH = MAX_URL_LENGTH + len(CRLF)

INVALID_LENGTH_META = "BAD REQUEST - Invalid request length."
MALFORMED_META = "Malformed request"


class GeminiParseError(GeminiError):
    """
    Raised when a request line can't be framed or decoded.

    Carries the status and meta the server should write back before
    closing. The handler is never invoked for a request that fails here.
    """

    def __init__(
        self,
        message: str,
        status: int = GeminiStatus.BAD_REQUEST,
        meta: str = MALFORMED_META,
    ):
        super().__init__(message)
        self.status = status
        self.meta = meta

    @property
    def status_line(self) -> bytes:
        return f"{int(self.status)} {self.meta}\r\n".encode("utf-8")


class RequestTooLongError(GeminiParseError):
    """The request line exceeds 1024 bytes (+ CRLF)."""

    def __init__(self, message: str):
        super().__init__(message, meta=INVALID_LENGTH_META)


class MalformedRequestError(GeminiParseError):
    """The request line is not valid UTF-8."""
    pass


@dataclass(frozen=True)
class GeminiRequest:
    """
    A parsed Gemini request.

    Created once per connection by ``RequestFramer`` and never changed
    afterwards. The handler gets it together with a ``GeminiResponse``.

    Attributes:
        connection: The connection the request arrived on. ``None`` when
                    a request is built outside a server (tests, tools).
        url:        The request line without its CRLF, exactly as sent.
    """

    connection: Any
    url: str

    @property
    def parsed(self) -> SplitResult:
        return urlsplit(self.url)

    @property
    def scheme(self) -> str:
        return self.parsed.scheme

    @property
    def hostname(self) -> Optional[str]:
        return self.parsed.hostname

    @property
    def port(self) -> Optional[int]:
        """URL port, or None if absent or not a number."""
        try:
            return self.parsed.port
        except ValueError:
            return None

    @property
    def path(self) -> str:
        """Percent-decoded path, "/" when empty."""
        return unquote(self.parsed.path) or "/"

    @property
    def query(self) -> str:
        """
        Percent-decoded query string.

        In Gemini the query is the user's answer to a 1x INPUT prompt, so
        it's a single value, not key=value pairs.
        """
        return unquote(self.parsed.query)

    @property
    def client_address(self) -> tuple[str, int]:
        if self.connection is None:
            return ("", 0)
        return self.connection.address


class RequestFramer:
    """
    Incremental request-line extractor for one connection.

    ==========================================================================
    STATE MACHINE
    ==========================================================================

        ┌──────────┐  feed(chunk), no CRLF   ┌──────────┐
        │ READING  │ ──────────────────────► │ READING  │
        └────┬─────┘                         └──────────┘
             │
             ├── CRLF found ──────────► DONE (returns GeminiRequest)
             ├── too long / bad UTF-8 ─► DONE (raises GeminiParseError)
             └── feed_eof() ──────────► DONE (returns None)

    Once DONE, every further ``feed()`` returns None. A connection carries
    at most one request, so trailing bytes are never turned into a second
    one.

    ==========================================================================
    USAGE
    ==========================================================================

        framer = RequestFramer(connection)
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                framer.feed_eof()
                break
            request = framer.feed(chunk)   # may raise GeminiParseError
            if request is not None:
                break

    ==========================================================================
    """

    def __init__(self, connection: Any = None):
        self.connection = connection
        self._buffer = bytearray()
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def buffered(self) -> int:
        """Number of bytes held while waiting for the delimiter."""
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Optional[GeminiRequest]:
        """
        Add one chunk and try to extract the request line.

        Args:
            chunk: Bytes as delivered by one read from the transport.

        Returns:
            The GeminiRequest once the CRLF is seen, otherwise None.

        Raises:
            RequestTooLongError: Chunk, buffer or URL exceeds the limits.
            MalformedRequestError: The URL is not valid UTF-8.
        """
        if self._done:
            return None

        # ─────────────────────────────────────────────────────────────────
        # STEP 1: Per-chunk limit, checked before anything else
        # ─────────────────────────────────────────────────────────────────
        if len(chunk) > MAX_REQUEST_LENGTH:
            self._finish()
            raise RequestTooLongError(
                f"Request chunk too large: {len(chunk)} bytes"
            )

        # ─────────────────────────────────────────────────────────────────
        # STEP 2: Append and scan for CRLF
        # ─────────────────────────────────────────────────────────────────
        # Start one byte back so a CR ending the previous chunk pairs
        # with an LF starting this one.
        start = max(len(self._buffer) - 1, 0)
        self._buffer += chunk
        crlf_index = self._buffer.find(CRLF, start)

        if crlf_index == -1:
            if len(self._buffer) > MAX_URL_LENGTH + 1:
                self._finish()
                raise RequestTooLongError(
                    f"No CRLF within {len(self._buffer)} buffered bytes"
                )
            return None

        # ─────────────────────────────────────────────────────────────────
        # STEP 3: Slice out the URL and decode it
        # ─────────────────────────────────────────────────────────────────
        if crlf_index > MAX_URL_LENGTH:
            self._finish()
            raise RequestTooLongError(f"URL too long: {crlf_index} bytes")

        raw_url = bytes(self._buffer[:crlf_index])
        self._finish()  # single request per connection, drop the rest

        try:
            url = raw_url.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRequestError(f"Request is not valid UTF-8: {e}") from e

        return GeminiRequest(connection=self.connection, url=url)

    def feed_eof(self) -> None:
        """The peer closed before sending a complete request line."""
        self._finish()

    def _finish(self) -> None:
        self._done = True
        self._buffer.clear()


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(data: bytes, connection: Any = None) -> GeminiRequest:
    """
    Frame a complete request held in a single buffer.

    Convenience for tests and tools. Raises GeminiParseError when the data
    is not a complete, valid request line.
    """
    request = RequestFramer(connection).feed(data)
    if request is None:
        raise GeminiParseError("Incomplete request: no CRLF terminator")
    return request
