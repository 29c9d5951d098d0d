"""
=============================================================================
ACCESS LOGGING
=============================================================================

One line per connection, written after the response is finished:

    127.0.0.1 - - [19/Oct/2026:10:04:11 +0000] "gemini://localhost/docs/" 20 text/gemini 1432 3.18ms

or, with ``log_format="json"``:

    {"connection_id": "ab12cd34", "client_ip": "127.0.0.1", "url": ..., "status_code": 20, ...}

Requests that never produced a request line (timeouts, over-long lines,
failed handshakes) are logged too, with url "-" and the status that was
sent, if any.

The logger is namespaced so it can be routed separately:

    logging.getLogger("geminiserver.access").addHandler(file_handler)

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Optional


logger = logging.getLogger("geminiserver.access")


@dataclass
class RequestLog:
    """
    Structured log entry for one connection.

    connection_id:  Connection id, matches the [id] prefix of other log lines
    client_ip:      Client's IP address
    url:            Request line, or "-" if none was read
    status_code:    Status sent, or None if nothing was sent
    meta:           Meta of the header line sent
    bytes_sent:     Total bytes written (header + body)
    duration_ms:    Time from accept to close
    timestamp:      When the connection finished
    """

    connection_id: str
    client_ip: str
    url: str
    status_code: Optional[int]
    meta: str
    bytes_sent: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "connection_id": self.connection_id,
            "client_ip": self.client_ip,
            "url": self.url,
            "status_code": self.status_code,
            "meta": self.meta,
            "bytes_sent": self.bytes_sent,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        """Common-log-like line, with the Gemini URL in place of the request line."""
        status = self.status_code if self.status_code is not None else "-"
        meta = self.meta or "-"
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.url}" {status} {meta} '
            f'{self.bytes_sent} {self.duration_ms:.2f}ms'
        )


class AccessLogger:
    """
    Emits RequestLog entries on the ``geminiserver.access`` logger.

        access_log = AccessLogger(log_format="json")
        access_log.log(RequestLog(...))
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        self.log_format = log_format
        self.log_level = log_level

    def log(self, entry: RequestLog) -> None:
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

    def log_connection(self, conn, request=None, response=None) -> RequestLog:
        """
        Build and emit the entry for a finished connection.

        Args:
            conn: The Connection (for id, address, byte count and age).
            request: The GeminiRequest, if one was read.
            response: The GeminiResponse, if the handler got one.

        Returns:
            The emitted entry (tests inspect it).
        """
        status_code, meta = None, ""
        if response is not None and response.sent_header:
            code, _, meta = response.sent_header.partition(" ")
            status_code = int(code) if code.isdigit() else None

        entry = RequestLog(
            connection_id=conn.id,
            client_ip=conn.client_ip,
            url=request.url if request is not None else "-",
            status_code=status_code,
            meta=meta,
            bytes_sent=conn.bytes_sent,
            duration_ms=conn.age * 1000,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )
        self.log(entry)
        return entry
