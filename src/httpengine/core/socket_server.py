"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. It knows nothing about
HTTP: every accepted socket is wrapped in a Connection and handed to a
callback, which HTTPServer uses to start the keep-alive loop on its own
thread.

=============================================================================
SOCKET LIFECYCLE
=============================================================================

    bind()                      serve(handler)                 shutdown()
      │                              │                              │
      ├──► socket()                  └──► while running:            └──► running = False
      ├──► setsockopt()                     accept()  (1s timeout)
      ├──► bind((host, port))               Connection(...)
      └──► listen(backlog)                  handler(conn)         close() after loop

The 1-second accept timeout lets the loop notice shutdown() without a
second wake-up mechanism.

=============================================================================
"""

import socket
import signal
import logging
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            ...

        server = SocketServer(config)
        server.bind()
        server.serve(handle_connection)  # Blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        """
        Args:
            config: Server configuration (host, port, backlog, buffer size,
                    client timeout).
        """
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        After bind() the port is the real one, which matters when the
        configured port is 0.
        """
        if self._socket is not None:
            host, port = self._socket.getsockname()[:2]
            return (host, port)
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """Create the listening socket with the server's socket options."""
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind immediately after a restart instead of waiting out TIME_WAIT
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Responses go out in a single send(); disable Nagle's algorithm
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up every second to check the running flag
        sock.settimeout(1.0)

        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Create the socket, bind it and start listening.

        Returns:
            The bound (host, port).

        Raises:
            OSError: The address is in use or not permitted.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)
        self._running = True

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")
        return host, port

    def install_signal_handlers(self):
        """
        Turn SIGTERM and SIGINT into a graceful shutdown().

        Only valid from the main thread; run() calls it, tests that serve
        from a background thread do not.
        """
        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Run the accept loop until shutdown() is called.

        Args:
            connection_handler: Called with each new Connection. It must
                                return quickly; the loop does not accept
                                again until it does.
        """
        if self._socket is None:
            self.bind()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                # A failed accept affects that one client only
                logger.error(f"Accept error: {e}")
                continue

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            try:
                conn = Connection(
                    socket=client_socket,
                    address=client_address,
                    buffer_size=self.config.buffer_size,
                    timeout=self.config.timeout,
                )
            except OSError as e:
                logger.error(f"Failed to set up connection from {client_address[0]}: {e}")
                client_socket.close()
                continue

            connection_handler(conn)

    def shutdown(self):
        """Stop accepting connections. Safe to call more than once."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        logger.info("Socket server stopped")
