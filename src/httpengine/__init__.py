"""
=============================================================================
HTTPENGINE - HTTP/1.1 Server Over Raw Sockets
=============================================================================

A small HTTP/1.1 server: it accepts TCP connections, parses requests from
the byte stream, dispatches them through a prefix router and writes
responses back, keeping each connection open for as many requests as the
client sends.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpengine/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m httpengine)
    ├── server.py            # HTTPServer: per-connection keep-alive loop
    ├── config.py            # ServerConfig dataclass
    ├── core/                # Transport
    │   ├── socket_server.py # Listening socket and accept loop
    │   └── connection.py    # One client socket
    ├── http/                # Protocol
    │   ├── headers.py       # Canonical multi-value header map
    │   ├── reader.py        # Byte-budget reader for bodies
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Write-once response writer
    │   ├── router.py        # Exact and prefix routing
    │   └── status_codes.py  # Status codes and reason phrases
    └── handlers/            # Built-in routes
        ├── basic.py         # /, /echo/, /user-agent
        └── files.py         # /files/ read and write

=============================================================================
QUICK START
=============================================================================

    from httpengine import HTTPServer, ServerConfig, Router

    router = Router()

    @router.route("/hello")
    def hello(writer, request):
        writer.set_body("Hello, World!").write()

    HTTPServer(router, ServerConfig(port=8080)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .http import HTTPRequest, ResponseWriter, Router
from .server import HTTPServer

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "Router",
    "ResponseWriter",
    "HTTPRequest",
    "__version__",
]
