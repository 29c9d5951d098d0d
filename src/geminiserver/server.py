"""
=============================================================================
GEMINI SERVER
=============================================================================

Ties the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    GEMINI SERVER ARCHITECTURE                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │  GeminiServer   │                          │
    │                        │ (Orchestrator)  │                          │
    │                        └────────┬────────┘                          │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │  ThreadPool  │    │   handler    │        │
    │    │ (TLS accept) │    │ (Concurrency)│    │ (req, resp)  │        │
    │    └──────┬───────┘    └──────────────┘    └──────────────┘        │
    │           ▼                                                         │
    │    ┌──────────────┐    ┌──────────────┐                            │
    │    │  Connection  │───►│RequestFramer │                            │
    │    └──────────────┘    └──────────────┘                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. ACCEPT       SocketServer accepts TCP, wraps it in TLS
    2. QUEUE        Connection submitted to the ThreadPool
    3. HANDSHAKE    Worker completes TLS (bounded by config.timeout)
    4. FRAME        Chunks fed to the RequestFramer until the CRLF
                    └── too long / not UTF-8 → "59 ..." and close
    5. HANDLE       handler(request, response) calls ONE terminal method
                    └── raises → "42 An unexpected error occurred"
    6. CLOSE        TLS close_notify, socket closed, access log line

A handler is any callable taking (GeminiRequest, GeminiResponse):

    def hello(request, response):
        response.set_head(20, "text/gemini").send("# Hello\\n")

    server = GeminiServer(ServerConfig(port=1965), hello)
    server.run()

=============================================================================
"""

import logging
import ssl
from typing import Callable, Optional

from .access_log import AccessLogger
from .config import ServerConfig
from .core import (
    Connection,
    SocketServer,
    ThreadPool,
    create_server_context,
    generate_ad_hoc_certificate,
)
from .protocol import GeminiParseError, GeminiRequest, GeminiResponse, GeminiStatus


logger = logging.getLogger(__name__)

Handler = Callable[[GeminiRequest, GeminiResponse], None]

HANDLER_ERROR_META = "An unexpected error occurred"

# Used when the server is overloaded: short handshake, then "44 <seconds>"
REJECT_TIMEOUT = 2.0
SLOW_DOWN_SECONDS = 5


class GeminiServer:
    """
    Multi-threaded Gemini server.

    =========================================================================
    USAGE
    =========================================================================

        server = GeminiServer()

        @server.handle
        def app(request, response):
            if request.path == "/":
                response.send("# Welcome\\n")
            else:
                response.not_found()

        server.run()  # Blocks until Ctrl+C

    =========================================================================
    GUARANTEES PER CONNECTION
    =========================================================================

    - At most one request is read and at most one response is written.
    - The handler is never called for a request line that failed framing.
    - The connection is always closed, whatever the handler does.

    =========================================================================
    """

    def __init__(self, config: Optional[ServerConfig] = None, handler: Optional[Handler] = None):
        """
        Args:
            config: Server configuration. Uses defaults if not provided.
            handler: The request handler. Can also be set later with
                     ``handle()``.
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self.handler = handler

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._access_log = AccessLogger(log_format=self.config.log_format)
        self._running = False

    # =========================================================================
    # CONFIGURATION METHODS
    # =========================================================================

    def handle(self, handler: Handler) -> Handler:
        """
        Set the request handler. Usable as a decorator.

            @server.handle
            def app(request, response): ...
        """
        self.handler = handler
        return handler

    @property
    def address(self) -> tuple[str, int]:
        """The bound (host, port), with the real port once listening."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def run(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        setup_logging: bool = True,
        banner: bool = True,
    ):
        """
        Start the server (blocking until ``shutdown()`` or Ctrl+C).

        Args:
            host: Override config host.
            port: Override config port.
            setup_logging: Apply ``logging.basicConfig`` from the config.
            banner: Print the startup banner.

        Raises:
            RuntimeError: No handler has been set.
            OSError: The address couldn't be bound.
        """
        if self.handler is None:
            raise RuntimeError("No handler set; pass one to GeminiServer() or use handle()")

        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        if setup_logging:
            self._setup_logging()

        self._socket_server.ssl_context = self._create_ssl_context()
        self._thread_pool.start()
        self._running = True

        logger.info(f"Starting {self.config.server_name} on {self.config.host}:{self.config.port}")
        if banner:
            self._print_startup_banner()

        try:
            self._socket_server.start(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._socket_server.wait_until_ready(timeout)

    def shutdown(self):
        """Stop accepting connections. ``run()`` returns once workers finish."""
        self._socket_server.shutdown()

    def _print_startup_banner(self):
        host, port = self.config.host, self.config.port
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  {self.config.server_name} running")
        print(f"  gemini://{self.config.hostname}:{port}/  (bound to {host})")
        print(f"  Workers: {self.config.min_workers}-{self.config.max_workers} threads")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()

    def _setup_logging(self):
        """Configure logging based on config."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("geminiserver").setLevel(level)

    def _create_ssl_context(self) -> ssl.SSLContext:
        certfile, keyfile = self.config.certfile, self.config.keyfile
        if not certfile:
            certfile, keyfile = generate_ad_hoc_certificate(self.config.hostname)
            logger.warning(f"No certificate configured, using self-signed {certfile}")
        return create_server_context(certfile, keyfile)

    def _shutdown(self):
        logger.info("Shutting down server...")
        self._running = False
        self._thread_pool.shutdown(wait=True, timeout=self.config.timeout or 30.0)
        stats = self._thread_pool.stats
        logger.info(
            f"Server stopped (completed={stats['tasks']['completed']}, "
            f"failed={stats['tasks']['failed']}, expired={stats['tasks']['expired']})"
        )

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Queue a new connection for a worker (runs in the accept thread).
        """
        submitted = self._thread_pool.submit(
            self._process_connection,
            args=(conn,),
            timeout=self.config.timeout,
            on_expired=self._reject_connection,
        )

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._reject_connection(conn)

    def _reject_connection(self, conn: Connection):
        """Answer ``44 <seconds>`` (SLOW_DOWN) without reading the request."""
        with conn:
            try:
                conn.socket.settimeout(REJECT_TIMEOUT)
                conn.handshake()
                GeminiResponse(conn).set_head(GeminiStatus.SLOW_DOWN, str(SLOW_DOWN_SECONDS)).send()
            except OSError as e:
                logger.debug(f"[{conn.id}] Could not send SLOW_DOWN: {e}")

    def _process_connection(self, conn: Connection):
        """
        Run one complete exchange (worker thread).

        Network and TLS errors end the connection quietly: the client is
        gone or misbehaving and there is nobody to report to.
        """
        request: Optional[GeminiRequest] = None
        response: Optional[GeminiResponse] = None

        with conn:
            try:
                conn.handshake()

                request = conn.read_request()
                if request is None:
                    return

                response = GeminiResponse(conn)
                self._dispatch(conn, request, response)

            except GeminiParseError as e:
                logger.info(f"[{conn.id}] Rejected request: {e}")
                response = GeminiResponse(conn)
                response.set_head(e.status, e.meta).send()

            except TimeoutError as e:
                logger.info(f"[{conn.id}] {e}, closing")

            except ssl.SSLError as e:
                logger.warning(f"[{conn.id}] TLS error: {e}")

            except OSError as e:
                logger.warning(f"[{conn.id}] Connection error: {e}")

            finally:
                self._access_log.log_connection(conn, request, response)

    def _dispatch(self, conn: Connection, request: GeminiRequest, response: GeminiResponse):
        try:
            self.handler(request, response)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            if not response.finished:
                response.set_head(GeminiStatus.CGI_ERROR, HANDLER_ERROR_META).send()
            return

        if not response.finished:
            logger.warning(f"[{conn.id}] Handler returned without sending a response")


def create_server(config: Optional[ServerConfig] = None, handler: Optional[Handler] = None) -> GeminiServer:
    """
    Create a Gemini server.

    Example:
        server = create_server(ServerConfig(port=1966))

        @server.handle
        def app(request, response):
            response.send("# Hello\\n")

        server.run()
    """
    return GeminiServer(config, handler)
