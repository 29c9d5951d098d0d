"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the Gemini server.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m geminiserver --port 1966                        │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── GEMINI_PORT=1966 python -m geminiserver                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Validation happens once, at server construction, so a bad port or a
certificate without its key fails before any socket is opened.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_PORT = 1965


@dataclass
class ServerConfig:
    """
    Configuration for the Gemini server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    TLS
    - certfile, keyfile, hostname

    THREADING SETTINGS
    - min_workers, max_workers, queue_size

    CONTENT
    - static_dir

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces
    """

    port: int = DEFAULT_PORT
    """
    The port number to listen on. 1965 is the Gemini default.
    0 asks the OS for a free port (handy in tests).
    """

    backlog: int = 128
    """Maximum number of connections queued by the kernel before accept()."""

    buffer_size: int = 4096
    """
    Bytes requested per recv(). Each recv() result is one framer chunk, and
    chunks over 1026 bytes are rejected, so a client that sends an over-long
    line in one TLS record is refused straight away.
    """

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds, applied to the TLS handshake and to reading
    the request line. A client that never finishes its request is dropped.
    None disables it (not recommended).
    """

    # ─────────────────────────────────────────────────────────────────────
    # TLS
    # ─────────────────────────────────────────────────────────────────────

    certfile: Optional[str] = None
    """PEM certificate. If unset, an ad-hoc self-signed one is generated."""

    keyfile: Optional[str] = None
    """PEM private key for certfile."""

    hostname: str = "localhost"
    """Common name used for the ad-hoc certificate."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    max_workers: int = 16

    queue_size: int = 100
    """Connections waiting for a worker. Beyond this, new ones get 44 SLOW_DOWN."""

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    static_dir: Optional[str] = None
    """Directory served by the CLI's StaticFileHandler."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    server_name: str = "PyGemini/1.0"
    """Shown in the startup log line."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        GEMINI_HOST       Server host (default: 127.0.0.1)
        GEMINI_PORT       Server port (default: 1965)
        GEMINI_WORKERS    Max worker threads (default: 16). min_workers is
                          capped at this value.
        GEMINI_TIMEOUT    Handshake/request timeout in seconds (default: 30)
        GEMINI_CERTFILE   TLS certificate (default: ad-hoc)
        GEMINI_KEYFILE    TLS private key
        GEMINI_HOSTNAME   Hostname for the ad-hoc certificate (default: localhost)
        GEMINI_ROOT       Static files directory (default: None)
        GEMINI_LOG_LEVEL  Logging level (default: INFO)

        =====================================================================
        """
        max_workers = int(os.getenv("GEMINI_WORKERS", "16"))
        return cls(
            host=os.getenv("GEMINI_HOST", "127.0.0.1"),
            port=int(os.getenv("GEMINI_PORT", str(DEFAULT_PORT))),
            min_workers=min(cls.min_workers, max_workers),
            max_workers=max_workers,
            timeout=float(os.getenv("GEMINI_TIMEOUT", "30")),
            certfile=os.getenv("GEMINI_CERTFILE"),
            keyfile=os.getenv("GEMINI_KEYFILE"),
            hostname=os.getenv("GEMINI_HOSTNAME", "localhost"),
            static_dir=os.getenv("GEMINI_ROOT"),
            log_level=os.getenv("GEMINI_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: Describing the first invalid setting.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ValueError("queue_size must be >= 1")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if bool(self.certfile) != bool(self.keyfile):
            raise ValueError("certfile and keyfile must be given together")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format!r}. Use 'text' or 'json'.")
