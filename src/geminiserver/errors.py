"""
Exception hierarchy for geminiserver.

    GeminiError
    ├── UnknownStatusError        (also a ValueError)
    ├── ResponseAlreadySentError
    ├── GeminiParseError          (server side, see protocol.request)
    ├── ClientError
    │   ├── InvalidUrlError
    │   ├── InvalidRequestError
    │   └── MalformedResponseError
    └── TransportError
        ├── DnsFailureError
        ├── SocketConnectError
        ├── TlsHandshakeError
        ├── SocketWriteError
        └── SocketReadError

Transport errors always carry the description of the underlying OS or TLS
error and are raised with ``from`` so the original traceback is kept.
"""


class GeminiError(Exception):
    """Base exception for the geminiserver package."""
    pass


class UnknownStatusError(GeminiError, ValueError):
    """A status code has no entry in the status registry."""

    def __init__(self, code):
        super().__init__(f"Unknown Gemini status code: {code!r}")
        self.code = code


class ResponseAlreadySentError(GeminiError):
    """A second terminal method was called on the same response."""
    pass


# --- Client Errors ---

class ClientError(GeminiError):
    """A generic error occurred in the client logic."""
    pass


class InvalidUrlError(ClientError):
    """The URL has no host or an unparsable port."""
    pass


class InvalidRequestError(ClientError):
    """The request line would exceed 1024 bytes."""
    pass


class MalformedResponseError(ClientError):
    """The server reply has no usable header line."""

    def __init__(self, message: str, data: bytes = b""):
        super().__init__(message)
        self.data = data


# --- Transport Errors ---

class TransportError(GeminiError):
    """A generic error occurred in the transport layer."""
    pass


class DnsFailureError(TransportError):
    """The host name could not be resolved."""
    pass


class SocketConnectError(TransportError):
    """The TCP connection was refused, timed out or failed."""
    pass


class TlsHandshakeError(TransportError):
    """TLS negotiation with the server failed."""
    pass


class SocketWriteError(TransportError):
    """Sending the request line failed."""
    pass


class SocketReadError(TransportError):
    """The connection broke while reading the response."""
    pass
