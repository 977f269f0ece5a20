"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Every tunable of the server in one typed, validated dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m httpengine --port 3000 --directory ./files       │
    │                                                                      │
    │   2. Environment variables (ServerConfig.from_env)                  │
    │      └── HTTP_PORT=3000 python -m httpengine                        │
    │                                                                      │
    │   3. Default values (in this dataclass)                             │
    └─────────────────────────────────────────────────────────────────────┘

Validation runs once at startup (HTTPServer.__init__), so a bad value
stops the process before it binds a port rather than on the first request.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK      host, port, backlog, buffer_size, timeout
    PARSER       max_body_size, max_line_length, max_header_count
    HANDLERS     directory
    LOGGING      log_level

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind; "0.0.0.0" listens on every interface."""

    port: int = 4221
    """Port to listen on. 0 lets the OS pick a free port (tests)."""

    backlog: int = 128
    """Accept queue length passed to listen()."""

    buffer_size: int = 8192
    """Read buffer of each connection's stream, in bytes."""

    timeout: Optional[float] = None
    """
    Read/write deadline on client sockets, in seconds.
    None = no deadline: an idle keep-alive client holds its connection
    (and its thread) until it disconnects.
    """

    # ─────────────────────────────────────────────────────────────────────
    # PARSER LIMITS
    # ─────────────────────────────────────────────────────────────────────

    max_body_size: int = 1024 * 1024  # 1 MiB
    """Largest Content-Length accepted; larger requests get 413."""

    max_line_length: int = 8192
    """Longest request line or header line, in bytes."""

    max_header_count: int = 100
    """Most header lines accepted in one request."""

    # ─────────────────────────────────────────────────────────────────────
    # HANDLERS
    # ─────────────────────────────────────────────────────────────────────

    directory: str = "/tmp/"
    """Directory served and written by the /files/ handler."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        HTTP_HOST           Server host (default: 127.0.0.1)
        HTTP_PORT           Server port (default: 4221)
        HTTP_TIMEOUT        Client socket timeout in seconds (default: none)
        HTTP_MAX_BODY_SIZE  Largest request body in bytes (default: 1048576)
        HTTP_DIRECTORY      Directory for /files/ (default: /tmp/)
        HTTP_LOG_LEVEL      Logging level (default: INFO)

        =====================================================================
        """
        timeout = os.getenv("HTTP_TIMEOUT")
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "4221")),
            timeout=float(timeout) if timeout else None,
            max_body_size=int(os.getenv("HTTP_MAX_BODY_SIZE", str(1024 * 1024))),
            directory=os.getenv("HTTP_DIRECTORY", "/tmp/"),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: Describing the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0 or None")

        if self.max_body_size < 0:
            raise ValueError("max_body_size must be >= 0")

        if self.max_line_length < 64:
            raise ValueError("max_line_length must be >= 64")

        if self.max_header_count < 1:
            raise ValueError("max_header_count must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(
                f"Invalid log_level: {self.log_level}. Must be one of {', '.join(LOG_LEVELS)}."
            )
