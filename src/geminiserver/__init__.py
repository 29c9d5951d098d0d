"""
=============================================================================
GEMINISERVER - A Gemini Protocol Server and Client
=============================================================================

Gemini is a small application protocol over TLS:

    client ──► gemini://example.org/path\\r\\n
    client ◄── 20 text/gemini\\r\\n
               # A page
               => gemini://example.org/other A link
    (server closes)

This package implements both ends on plain Python sockets: a threaded
TLS server with a pluggable ``handler(request, response)``, and a client
that fetches a URL and parses the reply.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    geminiserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m geminiserver)
    ├── server.py            # GeminiServer
    ├── client.py            # GeminiClient, request(), gemini-fetch CLI
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Exception hierarchy
    ├── access_log.py        # One log line per connection
    ├── core/                # Networking plumbing
    │   ├── socket_server.py # TLS accept loop
    │   ├── connection.py    # Per-connection I/O
    │   ├── thread_pool.py   # Worker threads
    │   └── tls.py           # SSL contexts, ad-hoc certificates
    ├── protocol/            # Gemini wire format (no sockets)
    │   ├── request.py       # RequestFramer, GeminiRequest
    │   ├── response.py      # GeminiResponse, parse_response
    │   ├── status_codes.py  # GeminiStatus registry
    │   └── mime_types.py    # Extension → MIME type
    └── handlers/
        └── static.py        # Serve a directory

=============================================================================
QUICK START
=============================================================================

    from geminiserver import GeminiServer, ServerConfig

    server = GeminiServer(ServerConfig(port=1965))

    @server.handle
    def app(request, response):
        if request.path == "/":
            response.send("# Hello, Gemini!\\n")
        elif request.path == "/search" and not request.query:
            response.input("Search for?")
        else:
            response.not_found()

    server.run()

And from another process:

    from geminiserver import request
    print(request("gemini://localhost/").text)

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .server import GeminiServer, create_server
from .protocol import GeminiRequest, GeminiResponse, GeminiStatus
from .client import ClientConfig, ClientResponse, GeminiClient, request

__all__ = [
    "GeminiServer",
    "create_server",
    "ServerConfig",
    "GeminiRequest",
    "GeminiResponse",
    "GeminiStatus",
    "GeminiClient",
    "ClientConfig",
    "ClientResponse",
    "request",
    "__version__",
]
