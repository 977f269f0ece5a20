"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted TCP socket for the lifetime of a keep-alive session.

=============================================================================
CONNECTION LIFECYCLE
=============================================================================

    accept()
       │
       ▼
    AWAIT_REQUEST ◄──────────────────────────────┐
       │                                         │
       │ parser returned a request               │ keep-alive
       ▼                                         │
    DISPATCH ── handler writes response ─────────┘
       │
       │ Connection: close / parse error /
       │ client EOF / transport error
       ▼
    CLOSING ──► CLOSED

    (a parse error sends 400/413, then CLOSING)

=============================================================================
WHY A BUFFERED READER?
=============================================================================

TCP delivers bytes in arbitrary chunks; one recv() may hold half a
request line or three pipelined requests. socket.makefile("rb") gives a
buffered stream with readline() and read(n), which is exactly what the
request parser needs. Bytes that belong to the next request stay in the
buffer for the next parse() call.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import BinaryIO, Optional
import uuid


logger = logging.getLogger(__name__)

# Budget for discarding unread client bytes on close
DRAIN_TIMEOUT = 0.5
DRAIN_LIMIT = 64 * 1024


class ConnectionState(Enum):
    """Per-connection serving states."""
    AWAIT_REQUEST = "await_request"  # Waiting for / parsing the next request
    DISPATCH = "dispatch"            # Handler running, response being written
    CLOSING = "closing"              # Shutdown sequence in progress
    CLOSED = "closed"                # Socket released


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier used as a log prefix.
        state: Current ConnectionState.
        created_at: Timestamp when the connection was accepted.
        requests_handled: Requests answered on this connection.
        buffer_size: Size of the read buffer behind `reader`.
        timeout: Socket deadline in seconds; None blocks indefinitely.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.AWAIT_REQUEST
    created_at: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = None

    _reader: Optional[BinaryIO] = field(default=None, repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)
        self._reader = self.socket.makefile("rb", buffering=self.buffer_size)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def client_port(self) -> int:
        return self.address[1]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def reader(self) -> BinaryIO:
        """Buffered byte stream over the socket, shared by all requests."""
        return self._reader

    @property
    def closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    def send(self, data: bytes) -> None:
        """
        Send bytes to the client in one sendall() call.

        Raises:
            OSError: The peer went away (reset, broken pipe, timeout).
        """
        self.socket.sendall(data)

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN so the client sees end of response
        2. drain what the client still sends, for at most DRAIN_TIMEOUT
           seconds in total and at most DRAIN_LIMIT bytes; unread bytes at
           close() make the kernel reset the connection
        3. close the buffered reader and the socket
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        self._drain()

        try:
            if self._reader is not None:
                self._reader.close()
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def _drain(self) -> int:
        """Discard pending client bytes within the drain budget; returns the count."""
        deadline = time.monotonic() + DRAIN_TIMEOUT
        drained = 0
        try:
            while drained < DRAIN_LIMIT:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self.socket.settimeout(remaining)
                chunk = self.socket.recv(min(4096, DRAIN_LIMIT - drained))
                if not chunk:
                    break
                drained += len(chunk)
        except OSError:
            pass  # timeout or reset while draining
        return drained

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Always release the socket, whatever ended the session."""
        self.close()
        return False
