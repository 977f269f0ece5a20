"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Accumulates the status, headers and body of ONE response and serializes
them onto the connection exactly once (RFC 7230 message syntax).

=============================================================================
HTTP RESPONSE ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    HTTP/1.1 200 OK\r\n                       ← status line           │
    │    Content-Type: text/plain\r\n              ← default if unset      │
    │    Connection: keep-alive\r\n                ← mirrors the request   │
    │    Content-Length: 3\r\n                     ← always recomputed     │
    │    \r\n                                      ← blank line            │
    │    abc                                       ← body bytes            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    HTTPServer                 handler                    socket
        │                         │                          │
        │  ResponseWriter(conn,   │                          │
        │    request) ──────────► │                          │
        │                         │ set_status(...)          │
        │                         │ set_header(...)          │
        │                         │ set_body(...)            │
        │                         │ write() ───────────────► │ one send()
        │                         │                          │
        │                         │ write() again → no-op    │

Content-Length is computed from the body at write time and overrides any
value a handler set, so the framing on the wire is always correct.

=============================================================================
"""

import logging
from typing import Optional, Protocol, Union

from .headers import Headers
from .request import HTTPRequest, WIRE_ENCODING
from .status_codes import HTTPStatus, reason_phrase


logger = logging.getLogger(__name__)


class ResponseWriteError(OSError):
    """
    Sending a response on the transport failed.

    Raised only for the transport, never for OSError coming out of handler
    code such as a failed file read.
    """


class Transport(Protocol):
    """Anything a response can be written to (core.Connection in practice)."""

    def send(self, data: bytes) -> None: ...


class ResponseWriter:
    """
    Builds and sends the response to one request.

    Setters return self, so calls chain:

        (writer.set_status(201)
               .set_header("Content-Type", "application/octet-stream")
               .set_body(data)
               .write())

    Attributes:
        status_code: Integer status code (default 200).
        status_text: Reason phrase for the status line.
        headers:     Outgoing headers.
        body:        Outgoing body bytes.
        version:     Protocol version written on the status line.
    """

    def __init__(self, connection: Transport, request: Optional[HTTPRequest] = None):
        """
        Args:
            connection: Transport the serialized response is sent on.
            request: The request being answered; its Connection header
                     decides the default Connection header of the response.
        """
        self.status_code: int = HTTPStatus.OK
        self.status_text: str = HTTPStatus.OK.phrase
        self.headers = Headers()
        self.body: bytes = b""
        self.version = "HTTP/1.1"

        self._connection = connection
        self._request = request
        self._written = False

    @property
    def written(self) -> bool:
        """True once write() has sent the response."""
        return self._written

    @property
    def request(self) -> Optional[HTTPRequest]:
        return self._request

    def set_status(self, code: int, text: Optional[str] = None) -> "ResponseWriter":
        """
        Set the status code and reason phrase.

        Args:
            code: Status code.
            text: Reason phrase; defaults to the standard phrase for code.
        """
        self.status_code = int(code)
        self.status_text = text if text is not None else reason_phrase(code)
        return self

    def set_header(self, name: str, value: str) -> "ResponseWriter":
        """Set a header, replacing previous values of the same field."""
        self.headers.set(name, value)
        return self

    def add_header(self, name: str, value: str) -> "ResponseWriter":
        """Add a header line, keeping previous values of the same field."""
        self.headers.add(name, value)
        return self

    def set_body(self, body: Union[str, bytes]) -> "ResponseWriter":
        """Set the body; strings are encoded as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = bytes(body)
        return self

    def get_body(self) -> bytes:
        return self.body

    @property
    def status_line(self) -> str:
        """Status line without its CRLF, e.g. "HTTP/1.1 200 OK"."""
        return f"{self.version} {self.status_code} {self.status_text}"

    def _finalize_headers(self) -> None:
        if "Content-Type" not in self.headers:
            self.headers.set("Content-Type", "text/plain")

        if "Connection" not in self.headers:
            if self._request is not None and self._request.wants_close:
                self.headers.set("Connection", "close")
            else:
                self.headers.set("Connection", "keep-alive")

        self.headers.set("Content-Length", str(len(self.body)))

    def to_bytes(self) -> bytes:
        """
        Apply the header defaults and serialize the full response.

        =====================================================================
        SERIALIZATION FORMAT
        =====================================================================

            HTTP/1.1 <code> <text>\\r\\n
            <Name>: <value>\\r\\n      ← one line per header value
            \\r\\n
            <body bytes>

        =====================================================================
        """
        self._finalize_headers()

        lines = [self.status_line]
        for name, value in self.headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        head = "\r\n".join(lines).encode(WIRE_ENCODING) + b"\r\n"
        return head + self.body

    def write(self) -> None:
        """
        Send the response in a single operation.

        Only the first call reaches the wire; later calls are ignored.

        Raises:
            ResponseWriteError: The transport failed; the connection cannot
                                be reused.
        """
        if self._written:
            logger.warning(
                f"Response {self.status_code} already written; ignoring extra write()"
            )
            return

        data = self.to_bytes()
        self._written = True
        try:
            self._connection.send(data)
        except OSError as e:
            raise ResponseWriteError(f"failed writing response: {e}") from e
