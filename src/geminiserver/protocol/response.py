"""
=============================================================================
GEMINI RESPONSES
=============================================================================

Both halves of the response wire format live here:

- ``GeminiResponse``  builds and writes a reply (server side)
- ``parse_response``  splits a received reply into its parts (client side)

=============================================================================
RESPONSE STRUCTURE
=============================================================================

    20 text/gemini\r\n          ← Header line: <status> SP <meta> CRLF
    # Hello\n                   ← Body: raw bytes until the server closes
    => /about About\n

That's it. No Content-Length, no chunked encoding: the body ends when the
connection ends. That's also why a Gemini response can only be sent once
per connection.

    ┌──────────┬──────────────────────────────────────────────────────────┐
    │ status   │ meta means                                              │
    ├──────────┼──────────────────────────────────────────────────────────┤
    │ 1x       │ prompt to show the user                                 │
    │ 2x       │ MIME type of the body (default text/gemini)             │
    │ 3x       │ URL to redirect to                                      │
    │ 4x/5x/6x │ human-readable error message                            │
    └──────────┴──────────────────────────────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Optional, Union

from ..errors import MalformedResponseError, ResponseAlreadySentError
from .request import CRLF
from .status_codes import GeminiStatus, Status, lookup_status, status_name


DEFAULT_MIME_TYPE = "text/gemini"


class GeminiResponse:
    """
    Stateful response writer for one connection.

    ==========================================================================
    TERMINAL METHODS
    ==========================================================================

    ``send()``, ``redirect()`` and ``send_status()`` each write to the
    connection and then close it. Exactly one of them may be called:

        response.set_head(20, "text/plain").send("hello")   # OK
        response.send()                                     # ResponseAlreadySentError

    ``set_head()`` and ``status()`` only record state and return ``self``
    so they can be chained.

    ==========================================================================
    TRANSPORT
    ==========================================================================

    The connection only needs two methods:

        send_response(data: bytes) -> bool   (False if the peer is gone)
        close() -> None

    ``core.connection.Connection`` provides both.

    ==========================================================================
    """

    def __init__(self, connection: Any):
        self.connection = connection
        self.header = ""
        self.status_code: Optional[int] = None
        self.status_message: Optional[str] = None
        self.sent_header: Optional[str] = None
        self.bytes_sent = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        """True once a terminal method has written and closed."""
        return self._finished

    @property
    def header_line(self) -> str:
        """The header that was (or would be) written, without CRLF."""
        return self.header[:-2] if self.header.endswith("\r\n") else self.header

    # =========================================================================
    # NON-TERMINAL METHODS
    # =========================================================================

    def set_head(self, status: int, message: str) -> "GeminiResponse":
        """
        Set the header line, replacing any previous one.

        Args:
            status: Two-digit status code (int or GeminiStatus).
            message: Meta text (MIME type, prompt, URL or error message).

        Returns:
            Self for method chaining
        """
        self.header = f"{int(status)} {message}\r\n"
        self.status_message = message
        return self

    def status(self, code: int) -> "GeminiResponse":
        """
        Record an informational status value.

        Metadata only: it does not change what ``send()`` writes.
        """
        self.status_code = int(code)
        return self

    # =========================================================================
    # TERMINAL METHODS
    # =========================================================================

    def send(self, body: Optional[Union[str, bytes]] = None) -> None:
        """
        Write the header and optional body, then close.

        Defaults the header to ``20 text/gemini`` when none was set.
        Strings are encoded as UTF-8.
        """
        self._ensure_not_finished()
        if not self.header:
            self.set_head(GeminiStatus.SUCCESS, DEFAULT_MIME_TYPE)

        if isinstance(body, str):
            body = body.encode("utf-8")

        self.sent_header = self.header_line
        if self._write(self.header.encode("utf-8")) and body:
            self._write(body)
        self._end()

    def redirect(self, target: str) -> None:
        """Permanent redirect (31) to ``target``."""
        self.set_head(GeminiStatus.REDIRECT_PERMANENT, target).send()

    def send_status(self, code: int) -> None:
        """
        Write a bare ``<code> <CANONICAL_NAME>`` line and close.

        Bypasses any header set with ``set_head()``. Used for protocol
        level short-circuits:

            response.send_status(51)   →   b"51 NOT_FOUND\\r\\n"

        Raises:
            UnknownStatusError: ``code`` is not in the registry. Nothing is
                                written in that case.
        """
        self._ensure_not_finished()
        line = f"{int(code)} {status_name(code)}\r\n"
        self.sent_header = line[:-2]
        self._write(line.encode("utf-8"))
        self._end()

    # Convenience wrappers, all terminal.

    def input(self, prompt: str, sensitive: bool = False) -> None:
        """Ask the client for a line of input (10, or 11 if sensitive)."""
        status = GeminiStatus.SENSITIVE_INPUT if sensitive else GeminiStatus.INPUT
        self.set_head(status, prompt).send()

    def not_found(self, message: str = "Not Found") -> None:
        self.set_head(GeminiStatus.NOT_FOUND, message).send()

    def error(self, status: int, message: str) -> None:
        """Send a failure status with a custom message."""
        self.set_head(status, message).send()

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _ensure_not_finished(self) -> None:
        if self._finished:
            raise ResponseAlreadySentError(
                f"Response already sent: {self.sent_header!r}"
            )

    def _write(self, data: bytes) -> bool:
        if self.connection.send_response(data):
            self.bytes_sent += len(data)
            return True
        return False

    def _end(self) -> None:
        self._finished = True
        self.connection.close()


# =============================================================================
# CLIENT SIDE: PARSING A RECEIVED RESPONSE
# =============================================================================

@dataclass(frozen=True)
class ClientResponse:
    """
    A complete response as received by the client.

    Attributes:
        url:         The URL that was requested.
        status_code: The two-digit code from the header.
        meta:        Header text after the code, whitespace-trimmed.
        body:        Raw bytes after the header's CRLF (not decoded).
    """

    url: str
    status_code: int
    meta: str
    body: bytes = b""

    @property
    def status(self) -> Status:
        """The registry entry, or an UnknownStatus variant."""
        return lookup_status(self.status_code)

    @property
    def is_success(self) -> bool:
        return self.status.is_success

    @property
    def is_redirect(self) -> bool:
        return self.status.is_redirect

    @property
    def mime_type(self) -> Optional[str]:
        """
        MIME type of the body, for 2x responses only.

        An empty meta on a success response means text/gemini.
        """
        if not self.is_success:
            return None
        mime = self.meta.split(";", 1)[0].strip().lower()
        return mime or DEFAULT_MIME_TYPE

    @property
    def charset(self) -> str:
        """charset parameter of the MIME type, utf-8 when absent."""
        for param in self.meta.split(";")[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"').lower()
        return "utf-8"

    @property
    def text(self) -> str:
        """Body decoded with the advertised charset."""
        return self.body.decode(self.charset, errors="replace")


def parse_response_header(line: str) -> tuple[int, str]:
    """
    Split a header line into (status_code, meta).

    The first two characters are the status; the rest, trimmed, is meta.

    Raises:
        MalformedResponseError: The first two characters aren't digits.
    """
    code = line[:2]
    if len(code) != 2 or not (code.isascii() and code.isdigit()):
        raise MalformedResponseError(f"Invalid status in header: {line!r}")
    return int(code), line[2:].strip()


def parse_response(data: bytes, url: str = "") -> ClientResponse:
    """
    Split a full response into header and body.

    Args:
        data: Everything read from the connection until it closed.
        url:  The requested URL, copied into the result.

    Returns:
        ClientResponse

    Raises:
        MalformedResponseError: No CRLF, header not UTF-8, or bad status.
    """
    crlf_index = data.find(CRLF)
    if crlf_index == -1:
        raise MalformedResponseError(
            f"Response has no header terminator ({len(data)} bytes received)",
            data=data,
        )

    try:
        header = data[:crlf_index].decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedResponseError(f"Response header is not UTF-8: {e}", data=data) from e

    status_code, meta = parse_response_header(header)
    return ClientResponse(
        url=url,
        status_code=status_code,
        meta=meta,
        body=data[crlf_index + len(CRLF):],
    )
