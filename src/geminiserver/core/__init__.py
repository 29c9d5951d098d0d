"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the Gemini server:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SOCKET SERVER   bind/listen/accept, wraps each client in TLS        │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ new Connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ THREAD POOL     bounded queue + workers, one connection per task    │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ worker owns the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ CONNECTION      handshake → read one request line → write → close   │
    └─────────────────────────────────────────────────────────────────────┘

``tls`` builds the SSL contexts and the ad-hoc development certificate.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool
from .tls import create_server_context, create_client_context, generate_ad_hoc_certificate

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "create_server_context",
    "create_client_context",
    "generate_ad_hoc_certificate",
]
