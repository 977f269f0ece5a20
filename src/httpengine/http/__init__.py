"""
=============================================================================
HTTP PROTOCOL ENGINE
=============================================================================

Translates bytes from a TCP stream into structured HTTP/1.1 messages and
back. Nothing in this package touches sockets directly: the parser reads
from any buffered byte stream and the writer sends through any object
with a send(bytes) method, which keeps every piece testable in memory.

=============================================================================
MODULE COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │ HEADERS (headers.py)                                                │
    │   Ordered multi-value map, canonical case-insensitive keys          │
    ├─────────────────────────────────────────────────────────────────────┤
    │ BOUNDED READER (reader.py)                                          │
    │   Byte-budgeted read wrapper; body reads stop at Content-Length     │
    ├─────────────────────────────────────────────────────────────────────┤
    │ REQUEST PARSER (request.py)                                         │
    │   stream → HTTPRequest | None (clean close) | HTTPParseError        │
    ├─────────────────────────────────────────────────────────────────────┤
    │ RESPONSE WRITER (response.py)                                       │
    │   status + headers + body → one send() on the connection            │
    ├─────────────────────────────────────────────────────────────────────┤
    │ ROUTER (router.py)                                                  │
    │   exact paths and "/prefix/" patterns, longest prefix wins          │
    ├─────────────────────────────────────────────────────────────────────┤
    │ STATUS CODES (status_codes.py)                                      │
    │   HTTPStatus enum with reason phrases                               │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .headers import Headers, canonical_key
from .reader import BoundedReader
from .request import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    BodyTooLargeError,
    parse_request,
)
from .response import ResponseWriter, ResponseWriteError
from .router import Router, Route, Handler, RouteConflictError
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Headers
    "Headers",
    "canonical_key",

    # Request parsing
    "BoundedReader",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "BodyTooLargeError",
    "parse_request",

    # Response writing
    "ResponseWriter",
    "ResponseWriteError",

    # Routing
    "Router",
    "Route",
    "Handler",
    "RouteConflictError",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
