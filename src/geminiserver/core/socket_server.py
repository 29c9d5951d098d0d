"""
=============================================================================
TLS SOCKET SERVER
=============================================================================

The listening side of the server: bind, listen, accept, wrap each client
socket in TLS, hand it off. No protocol logic lives here.

=============================================================================
WHERE TLS FITS IN
=============================================================================

Gemini is TLS-only. The listening socket itself stays a plain TCP socket;
each ACCEPTED socket is wrapped:

    listening socket (plain TCP, 0.0.0.0:1965)
            │
            │ accept()
            ▼
    client socket ──wrap_socket(server_side=True,
                                do_handshake_on_connect=False)──► SSLSocket
            │
            ▼
    Connection(...)  ──► connection_handler(conn)  (thread pool)

The handshake is deferred (``do_handshake_on_connect=False``) so it runs
in a worker thread under the connection timeout, not in the accept loop.
One client stalling mid-handshake must not block everyone else.

=============================================================================
SIGNAL HANDLING FOR GRACEFUL SHUTDOWN
=============================================================================

SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd) trigger ``shutdown()``.
Python only allows installing signal handlers from the main thread, so a
server started in a background thread (as the tests do) skips this step.

=============================================================================
"""

import socket
import signal
import ssl
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TLS socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config, ssl_context)
        server.start(handle_connection)  # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig, ssl_context: Optional[ssl.SSLContext] = None):
        """
        Args:
            config: Server configuration (host, port, backlog, timeouts).
            ssl_context: Server-side context used to wrap accepted sockets.
                         ``None`` serves plain TCP, which is only useful in
                         tests of the framing layer.
        """
        self.config = config
        self.ssl_context = ssl_context

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._shutdown_event = threading.Event()
        self._ready_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        Once listening, this is the real socket address, so binding to
        port 0 reports the port the OS actually picked.
        """
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Restart without waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses are one short header plus a body; don't let Nagle hold
        # the header back.
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up every second to check the running flag
        sock.settimeout(1.0)
        return sock

    def _setup_signals(self):
        """Install SIGTERM/SIGINT handlers (main thread only)."""
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not in main thread, skipping signal handlers")
            return

        def shutdown_handler(signum, frame):
            signal_name = signal.Signals(signum).name
            logger.info(f"Received {signal_name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop. Blocks until ``shutdown()``.

        Args:
            connection_handler: Called with each new Connection. The
                                GeminiServer submits it to the thread pool.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._running = True
        self._shutdown_event.clear()
        self._setup_signals()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        self._ready_event.set()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # Periodic wake-up to check self._running
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            try:
                client_socket = self._wrap(client_socket)
            except (ssl.SSLError, OSError) as e:
                logger.warning(f"Failed to set up TLS for {client_address[0]}: {e}")
                client_socket.close()
                continue

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
            )
            connection_handler(conn)

    def _wrap(self, client_socket: socket.socket) -> socket.socket:
        if self.ssl_context is None:
            return client_socket
        return self.ssl_context.wrap_socket(
            client_socket,
            server_side=True,
            do_handshake_on_connect=False,
        )

    def shutdown(self):
        """Stop the accept loop. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Returns False on timeout."""
        return self._ready_event.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until ``shutdown()`` is called. Returns False on timeout."""
        return self._shutdown_event.wait(timeout)
