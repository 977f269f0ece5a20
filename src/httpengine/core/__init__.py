"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

Transport layer of the server: sockets in, Connection objects out.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SocketServer  - listening socket, accept loop, signal handling     │
    │  Connection    - one client socket: buffered reader, send, close    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THREAD-PER-CONNECTION
=============================================================================

The accept loop runs on one thread and never parses or handles requests.
HTTPServer starts one thread per accepted Connection; inside that thread
the connection's requests are handled strictly one after another, so a
Connection is never touched by two threads at once.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState

__all__ = [
    "SocketServer",     # Listening socket and accept loop
    "Connection",       # Wrapper for one client socket
    "ConnectionState",  # Per-connection serving states
]
