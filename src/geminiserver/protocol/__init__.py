"""
=============================================================================
GEMINI PROTOCOL IMPLEMENTATION
=============================================================================

Everything that knows what Gemini bytes look like, and nothing that touches
a socket. Both the server and the client build on this package.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ REQUEST FRAMING (request.py)                                        │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Input:   b"gemini://exa", b"mple.org/\r", b"\n"   (any chunking)   │
    │ Output:  GeminiRequest(url="gemini://example.org/")                 │
    │ Errors:  59 for over-long or non-UTF-8 request lines                │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │ RESPONSES (response.py)                                             │
    │ ─────────────────────────────────────────────────────────────────── │
    │ Server:  GeminiResponse(conn).set_head(20, "text/plain").send(b)    │
    │ Client:  parse_response(b"20 text/gemini\r\n# Hi\n") → ClientResponse│
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │ STATUS CODES (status_codes.py)                                      │
    │ ─────────────────────────────────────────────────────────────────── │
    │ GeminiStatus.NOT_FOUND → 51, canonical name "NOT_FOUND"             │
    │ lookup_status(21)      → UnknownStatus(code=21)                     │
    └─────────────────────────────────────────────────────────────────────┘

    ┌─────────────────────────────────────────────────────────────────────┐
    │ MIME TYPES (mime_types.py)                                          │
    │ ─────────────────────────────────────────────────────────────────── │
    │ .gmi → text/gemini, used by the static file handler                 │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import (
    GeminiRequest,
    RequestFramer,
    GeminiParseError,
    RequestTooLongError,
    MalformedRequestError,
    parse_request,
    CRLF,
    MAX_URL_LENGTH,
    MAX_REQUEST_LENGTH,
)
from .response import GeminiResponse, ClientResponse, parse_response
from .status_codes import (
    GeminiStatus,
    StatusCategory,
    UnknownStatus,
    lookup_status,
    status_name,
    status_from_name,
)
from .mime_types import get_mime_type, get_meta

__all__ = [
    # Request framing
    "GeminiRequest",
    "RequestFramer",
    "GeminiParseError",
    "RequestTooLongError",
    "MalformedRequestError",
    "parse_request",
    "CRLF",
    "MAX_URL_LENGTH",
    "MAX_REQUEST_LENGTH",

    # Responses
    "GeminiResponse",
    "ClientResponse",
    "parse_response",

    # Status codes
    "GeminiStatus",
    "StatusCategory",
    "UnknownStatus",
    "lookup_status",
    "status_name",
    "status_from_name",

    # MIME types
    "get_mime_type",
    "get_meta",
]
