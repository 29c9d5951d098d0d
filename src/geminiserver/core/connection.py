"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

This module wraps one accepted TLS socket with the small API the Gemini
server needs: finish the handshake, read exactly one request line, write
the response, close.

=============================================================================
ONE CONNECTION, ONE REQUEST
=============================================================================

Gemini has no keep-alive. Every exchange looks like this:

    Client                                       Server
      │  ── TCP connect ───────────────────────►   │  accept()
      │  ◄─────────── TLS handshake ───────────►   │  handshake()
      │  ── gemini://host/path\r\n ────────────►   │  read_request()
      │  ◄── 20 text/gemini\r\n + body ─────────   │  send_response()
      │  ◄── close_notify + FIN ────────────────   │  close()

The end of the body IS the end of the connection, so closing cleanly
matters: a TLS close_notify tells the client it received everything.

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► HANDSHAKE ──► READING ──► PROCESSING ──► WRITING
     │          │            │                          │
     │          ▼            ▼                          ▼
     └───────────────────► CLOSING ◄────────────────────┘
                              │
                              ▼
                            CLOSED

=============================================================================
"""

import socket
import ssl
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid

from ..protocol.request import GeminiRequest, RequestFramer


logger = logging.getLogger(__name__)

# How long close() waits for the client's close_notify.
CLOSE_TIMEOUT = 0.5


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and idempotent close."""

    NEW = "new"                # Just accepted, TLS not negotiated yet
    HANDSHAKE = "handshake"    # TLS handshake in progress
    READING = "reading"        # Waiting for the request line
    PROCESSING = "processing"  # Handler is running
    WRITING = "writing"        # Sending header/body
    CLOSING = "closing"        # Shutdown sequence started
    CLOSED = "closed"          # Socket released


@dataclass
class Connection:
    """
    Represents one client connection.

    Attributes:
        socket: The client socket (an ``ssl.SSLSocket`` in production,
                a plain socket in some tests).
        address: Client's (ip, port) tuple.
        id: Short connection identifier used as a log prefix.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        last_activity: Timestamp of the last read or write.
        bytes_received: Total bytes read from the client.
        bytes_sent: Total bytes written to the client.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    bytes_received: int = 0
    bytes_sent: int = 0

    # Configuration (passed from ServerConfig)
    buffer_size: int = 4096
    timeout: Optional[float] = 30.0

    _framer: RequestFramer = field(init=False, repr=False)

    def __post_init__(self):
        self._framer = RequestFramer(connection=self)
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Get connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_tls(self) -> bool:
        return isinstance(self.socket, ssl.SSLSocket)

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # TLS HANDSHAKE
    # =========================================================================

    def handshake(self) -> None:
        """
        Complete the server side of the TLS handshake.

        The listening socket wraps accepted sockets with
        ``do_handshake_on_connect=False`` so the handshake runs here, in the
        worker thread, bounded by the connection timeout. A slow or broken
        client can't stall the accept loop.

        Raises:
            TimeoutError: The client didn't finish the handshake in time.
            ssl.SSLError: The handshake failed (bad client hello, no shared
                          cipher, client rejected our certificate, ...).
            OSError: The client disconnected mid-handshake.
        """
        if not self.is_tls:
            return

        self.state = ConnectionState.HANDSHAKE
        try:
            self.socket.do_handshake()
        except socket.timeout:
            raise TimeoutError("TLS handshake timeout")
        self.last_activity = time.time()

        logger.debug(
            f"[{self.id}] TLS established: {self.socket.version()} "
            f"{self.socket.cipher()[0] if self.socket.cipher() else '-'}"
        )

    # =========================================================================
    # READING: Frame one request line from the socket
    # =========================================================================

    def read_request(self) -> Optional[GeminiRequest]:
        """
        Read until the framer produces the request line.

        Each ``recv()`` result is fed to this connection's RequestFramer as
        one chunk, so the framer's per-chunk and cumulative limits apply to
        what actually came off the wire.

        Returns:
            The GeminiRequest, or None if the client closed first.

        Raises:
            GeminiParseError: The line is too long or not UTF-8.
            TimeoutError: No complete line within the timeout.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        try:
            while True:
                chunk = self._recv()
                if not chunk:
                    self._framer.feed_eof()
                    logger.debug(
                        f"[{self.id}] Client closed after {self.bytes_received} bytes"
                    )
                    return None

                request = self._framer.feed(chunk)
                if request is not None:
                    self.state = ConnectionState.PROCESSING
                    return request
        except socket.timeout:
            self._framer.feed_eof()
            raise TimeoutError("Request read timeout")

    def _recv(self) -> bytes:
        """
        Receive one chunk, treating an abrupt disconnect as end of stream.
        """
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        self.bytes_received += len(data)
        self.last_activity = time.time()
        return data

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response data to the client.

        Uses sendall() so a partial write never truncates the body.

        Returns:
            True if send succeeded, False if the connection was lost.
        """
        if self.closed:
            return False

        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

        self.bytes_sent += len(data)
        self.last_activity = time.time()
        return True

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection. Safe to call more than once.

        ┌─────────────────────────────────────────────────────────────────┐
        │                    TLS Close Sequence                            │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │   Server                              Client                     │
        │      │   close_notify ────────────────► │  (unwrap)             │
        │      │                                   │  recv() → b""        │
        │      │ ◄──────────────── close_notify   │  (or plain FIN)      │
        │      │   FIN ─────────────────────────► │  (shutdown SHUT_WR)  │
        │   (socket closed)                  (socket closed)               │
        │                                                                  │
        └─────────────────────────────────────────────────────────────────┘

        Many clients just drop the TCP connection instead of answering
        close_notify. That's fine: the wait is bounded by CLOSE_TIMEOUT and
        any error is ignored since the response is already out.
        """
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return

        self.state = ConnectionState.CLOSING
        sock = self.socket

        if self.is_tls:
            try:
                sock.settimeout(CLOSE_TIMEOUT)
                sock = sock.unwrap()
            except (ssl.SSLError, OSError, ValueError):
                pass  # No handshake, or the client already hung up

        try:
            sock.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        # Drain whatever the client still sends (e.g. the rest of an
        # over-long request) so close() doesn't turn into a RST that
        # discards the response on the client side.
        try:
            sock.settimeout(CLOSE_TIMEOUT)
            while sock.recv(1024):
                pass
        except OSError:
            pass

        try:
            sock.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed "
            f"(received={self.bytes_received}, sent={self.bytes_sent})"
        )

    def __enter__(self):
        """
        Context manager entry.

            with conn:
                conn.handshake()
                request = conn.read_request()
            # Connection closed here, even on error
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
