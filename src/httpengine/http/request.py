"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Reads one HTTP/1.1 request message off a buffered byte stream and turns it
into an immutable HTTPRequest. Implements the message syntax of RFC 7230
for a single Content-Length-bounded body (no chunked encoding).

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /files/notes.txt?v=2 HTTP/1.1\r\n     ← request line         │
    │    ─┬── ────────┬─────────── ────┬───                                │
    │     │           │                │                                   │
    │   Method   request-target     Version                                │
    │            (kept verbatim,                                           │
    │             query included)                                          │
    │                                                                      │
    │    Host: localhost:4221\r\n                   ← header lines         │
    │    Content-Length: 5\r\n                                             │
    │    \r\n                                       ← blank line           │
    │    hello                                      ← body (5 bytes)       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
WHY PARSE FROM A STREAM?
=============================================================================

On a keep-alive connection the socket carries request after request.
The parser consumes exactly one message and leaves the stream positioned
at the first byte of the next one:

    stream:  [ request 1 ][ request 2 ][ request 3 ] ...
              ▲            ▲
              │            └── position after parse() returns
              └─────────────── position before parse()

That is why the body is read through a BoundedReader (see reader.py):
the stream must never be advanced past Content-Length.

=============================================================================
SIZE BOUNDS
=============================================================================

    max_line_length    request line and each header line (default 8 KiB)
    max_header_count   number of header lines (default 100)
    max_body_size      Content-Length ceiling (default 1 MiB)

A Content-Length above max_body_size is rejected with 413 BEFORE any body
byte is read: the check is preventive, not a truncation after the fact.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import io
import re

from .headers import Headers
from .reader import BoundedReader
from .status_codes import HTTPStatus


MAX_BODY_SIZE = 1024 * 1024
MAX_LINE_LENGTH = 8192
MAX_HEADER_COUNT = 100

# Request and header bytes are ISO-8859-1 on the wire; decoding with
# latin-1 maps every byte to one character and back without loss.
WIRE_ENCODING = "latin-1"


class HTTPParseError(Exception):
    """
    Raised when a request cannot be parsed.

    Carries the status code the server answers with before closing the
    connection:

        400 Bad Request        - malformed request line, invalid method,
                                 bad or duplicate headers, short body
        413 Payload Too Large  - see BodyTooLargeError
    """

    def __init__(self, message: str, status_code: int = HTTPStatus.BAD_REQUEST):
        super().__init__(message)
        self.status_code = status_code


class BodyTooLargeError(HTTPParseError):
    """Content-Length exceeds the configured maximum body size."""

    def __init__(self, content_length: int, max_body_size: int):
        super().__init__(
            f"request body too large: {content_length} > {max_body_size} bytes",
            status_code=HTTPStatus.PAYLOAD_TOO_LARGE,
        )
        self.content_length = content_length
        self.max_body_size = max_body_size


@dataclass(frozen=True)
class HTTPRequest:
    """
    A parsed HTTP request.

    Frozen: created once per parse cycle and never mutated afterwards.
    Handlers read it, the ResponseWriter consults its Connection header.

    Attributes:
        method:         Request method token ("GET", "POST", ...).
        path:           Raw request-target, not normalized or decoded.
        version:        Protocol version string from the request line.
        headers:        Received headers (canonical keys, all values).
        body:           Body bytes, present only when Content-Length > 0.
        client_address: (ip, port) of the peer, for logging.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Headers = field(default_factory=Headers)
    body: Optional[bytes] = None
    client_address: tuple[str, int] = ("", 0)

    @property
    def content_length(self) -> int:
        """Declared body length; 0 when absent or not a decimal integer."""
        return _parse_content_length(self.headers.get("Content-Length"))

    @property
    def host(self) -> str:
        return self.headers.get("Host")

    @property
    def user_agent(self) -> str:
        return self.headers.get("User-Agent")

    @property
    def wants_close(self) -> bool:
        """True when the client sent `Connection: close` (any case)."""
        return self.headers.get("Connection").strip().lower() == "close"

    def get_header(self, name: str, default: str = "") -> str:
        """First value of a header (case-insensitive lookup)."""
        return self.headers.get(name, default)


class RequestParser:
    """
    Reads HTTPRequest objects from a buffered byte stream.

    ==========================================================================
    PARSER ARCHITECTURE
    ==========================================================================

        buffered stream (socket.makefile("rb") or io.BytesIO)
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Request line ───────────────────────────────────────────────► │
        │     │  EOF before any byte? → None (client closed, not an error)  │
        │     │  METHOD SP TARGET SP VERSION, method must be a token        │
        │     ▼                                                             │
        │  2. Header lines until the blank line ──────────────────────────► │
        │     │  "Name: value", folded continuation lines, one Host only    │
        │     ▼                                                             │
        │  3. Content-Length check ───────────────────────────────────────► │
        │     │  > max_body_size? → BodyTooLargeError (413), nothing read   │
        │     ▼                                                             │
        │  4. Body through BoundedReader ─────────────────────────────────► │
        │        short read? → HTTPParseError (400)                         │
        └───────────────────────────────────────────────────────────────────┘
              │
              ▼
        HTTPRequest (frozen dataclass)

    ==========================================================================
    """

    # tchar from RFC 7230 3.2.6; methods and header names are tokens
    TOKEN_PATTERN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

    def __init__(
        self,
        max_body_size: int = MAX_BODY_SIZE,
        max_line_length: int = MAX_LINE_LENGTH,
        max_header_count: int = MAX_HEADER_COUNT,
    ):
        """
        Args:
            max_body_size: Largest Content-Length accepted, in bytes.
            max_line_length: Longest request/header line, terminator excluded.
            max_header_count: Most header lines accepted per request.
        """
        self.max_body_size = max_body_size
        self.max_line_length = max_line_length
        self.max_header_count = max_header_count

    def parse(
        self,
        stream: BinaryIO,
        client_address: tuple[str, int] = ("", 0),
    ) -> Optional[HTTPRequest]:
        """
        Parse the next request from the stream.

        Args:
            stream: Buffered byte stream positioned at a message start.
            client_address: Peer (ip, port), copied into the request.

        Returns:
            The parsed request, or None if the stream ended cleanly before
            the first byte of a new message.

        Raises:
            BodyTooLargeError: Content-Length above max_body_size.
            HTTPParseError: Any other malformed input.
            OSError: Transport failure while waiting for the request line.
        """
        # =====================================================================
        # STEP 1: Request line
        # =====================================================================
        line = self._read_line(stream)
        if line is None:
            return None

        method, path, version = self._parse_request_line(line)

        # =====================================================================
        # STEP 2: Headers
        # =====================================================================
        try:
            headers = self._read_headers(stream)
        except OSError as e:
            raise HTTPParseError(f"failed reading headers: {e}") from e

        if len(headers.get_all("Host")) > 1:
            raise HTTPParseError("too many Host headers")

        # =====================================================================
        # STEP 3: Size check before touching the body
        # =====================================================================
        content_length = _parse_content_length(headers.get("Content-Length"))
        if content_length > self.max_body_size:
            raise BodyTooLargeError(content_length, self.max_body_size)

        # =====================================================================
        # STEP 4: Body, exactly Content-Length bytes
        # =====================================================================
        body = None
        if content_length > 0:
            body = self._read_body(stream, content_length)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=body,
            client_address=client_address,
        )

    def _read_line(self, stream: BinaryIO) -> Optional[str]:
        """
        Read one CRLF-terminated line (bare LF tolerated) without the
        terminator.

        Returns None only for end of stream before any byte.
        """
        raw = stream.readline(self.max_line_length + 2)
        if not raw:
            return None

        if not raw.endswith(b"\n"):
            if len(raw) >= self.max_line_length + 2:
                raise HTTPParseError(f"line exceeds {self.max_line_length} bytes")
            raise HTTPParseError("unexpected end of stream inside a line")

        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        if len(raw) > self.max_line_length:
            raise HTTPParseError(f"line exceeds {self.max_line_length} bytes")

        return raw.decode(WIRE_ENCODING)

    def _parse_request_line(self, line: str) -> tuple[str, str, str]:
        """
        Split "METHOD SP TARGET SP VERSION".

        Splits on the first space, then on the next one. Both delimiters
        must be present; the target may be empty and any further spaces
        stay in the version token.
        """
        method, sep1, rest = line.partition(" ")
        path, sep2, version = rest.partition(" ")
        if not sep1 or not sep2:
            raise HTTPParseError(f"malformed HTTP request: {line!r}")

        if not self.TOKEN_PATTERN.match(method):
            raise HTTPParseError(f"malformed HTTP request: invalid method {method!r}")

        return method, path, version

    def _read_headers(self, stream: BinaryIO) -> Headers:
        """
        Read header lines up to and including the blank line.

        Continuation lines (leading space or tab) extend the previous
        header's value, as a MIME header reader does.
        """
        headers = Headers()
        last_name: Optional[str] = None
        count = 0

        while True:
            line = self._read_line(stream)
            if line is None:
                raise HTTPParseError("unexpected end of stream before blank line")
            if line == "":
                return headers

            if line[0] in (" ", "\t"):
                if last_name is None:
                    raise HTTPParseError(f"malformed header continuation: {line!r}")
                headers.append_to_last(last_name, line.strip())
                continue

            count += 1
            if count > self.max_header_count:
                raise HTTPParseError(f"more than {self.max_header_count} header lines")

            name, sep, value = line.partition(":")
            if not sep:
                raise HTTPParseError(f"malformed header line: {line!r}")

            name = name.strip()
            if not self.TOKEN_PATTERN.match(name):
                raise HTTPParseError(f"invalid header name: {name!r}")

            headers.add(name, value.strip())
            last_name = name

    def _read_body(self, stream: BinaryIO, content_length: int) -> bytes:
        reader = BoundedReader(stream, content_length)
        try:
            body = reader.read_exactly(content_length)
        except OSError as e:
            raise HTTPParseError(f"failed reading body: {e}") from e

        if len(body) != content_length:
            raise HTTPParseError(
                f"incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        return body


# Decimal digits with an optional leading "+"; anything else counts as 0
_DIGITS = re.compile(r"\+?[0-9]+")


def _parse_content_length(value: str) -> int:
    value = value.strip()
    if not _DIGITS.fullmatch(value):
        return 0
    return int(value)


# =============================================================================
# CONVENIENCE FUNCTION
# =============================================================================

def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_body_size: int = MAX_BODY_SIZE,
) -> Optional[HTTPRequest]:
    """
    Parse a complete request held in memory.

    Wraps the bytes in a stream and runs a RequestParser over it. Useful in
    tests and tools; the server parses straight from the socket.
    """
    parser = RequestParser(max_body_size=max_body_size)
    return parser.parse(io.BytesIO(data), client_address)
