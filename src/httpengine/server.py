"""
=============================================================================
HTTP SERVER - THE KEEP-ALIVE LOOP
=============================================================================

Ties the pieces together:

    SocketServer ──accept──► Connection ──thread──► _process_connection()
                                                         │
                       ┌─────────────────────────────────┘
                       ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                     PER-CONNECTION LOOP                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   AWAIT_REQUEST                                                      │
    │     parser.parse(conn.reader)                                        │
    │       ├── None ─────────────────────────────► close (client left)    │
    │       ├── BodyTooLargeError ──► 413 ────────► close                  │
    │       ├── HTTPParseError ─────► 400 ────────► close                  │
    │       └── HTTPRequest                                                │
    │             │                                                        │
    │   DISPATCH  ▼                                                        │
    │     writer = ResponseWriter(conn, request)                           │
    │     router.serve(writer, request)   (404 if nothing matches)         │
    │             │                                                        │
    │     Connection: close? ──yes──────────────────► close                │
    │             │ no                                                     │
    │             └──────────────► back to AWAIT_REQUEST on the same socket│
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ERROR POLICY
=============================================================================

    parse errors        always answered (400/413), then the connection closes
    route not found     answered 404 by the router, connection stays open
    handler exception   500 if nothing was written yet, logged with traceback;
                        this includes OSError from handler code (file I/O)
    transport errors    OSError reading the socket, ResponseWriteError when
                        sending (error responses included); they end that
                        connection only, are logged, never retried, and
                        never reach the accept loop

=============================================================================
"""

import logging
import threading
from typing import Optional

from .config import ServerConfig
from .core import SocketServer, Connection, ConnectionState
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    ResponseWriter, ResponseWriteError, HTTPStatus, Router, Headers, reason_phrase,
)


logger = logging.getLogger(__name__)


class HTTPServer:
    """
    HTTP/1.1 server with persistent connections.

    The router is injected fully populated and frozen here, so the route
    table is read-only while connection threads use it.

    =========================================================================
    USAGE
    =========================================================================

        router = Router()

        @router.route("/echo/")
        def echo(writer, request):
            writer.set_body(request.path[len("/echo/"):]).write()

        server = HTTPServer(router, ServerConfig(port=4221))
        server.run()  # blocks until Ctrl+C / SIGTERM

    Embedding (tests, tools):

        server.start()                                   # bind + listen
        threading.Thread(target=server.serve_forever).start()
        host, port = server.address
        ...
        server.shutdown()

    =========================================================================
    """

    def __init__(self, router: Router, config: Optional[ServerConfig] = None):
        """
        Args:
            router: Populated router; frozen by this call.
            config: Server configuration. Defaults to ServerConfig().
        """
        self.config = config or ServerConfig()
        self.config.validate()

        self._router = router.freeze()
        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(
            max_body_size=self.config.max_body_size,
            max_line_length=self.config.max_line_length,
            max_header_count=self.config.max_header_count,
        )

        self._running = False

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); meaningful after start()."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running

    # =========================================================================
    # SERVER LIFECYCLE
    # =========================================================================

    def start(self) -> tuple[str, int]:
        """
        Bind and listen without blocking.

        Returns:
            The bound (host, port).
        """
        address = self._socket_server.bind()
        self._running = True
        return address

    def serve_forever(self):
        """Run the accept loop until shutdown(). Calls start() if needed."""
        if not self._running:
            self.start()
        try:
            self._socket_server.serve(self._handle_connection)
        finally:
            self._running = False

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Configure logging and signals, then serve (blocking).

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        self._setup_logging()
        self.start()
        self._socket_server.install_signal_handlers()

        try:
            self.serve_forever()
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self.shutdown()
            logger.info("Server stopped")

    def shutdown(self):
        """
        Stop accepting connections.

        Connections already being served finish their current request and
        then close.
        """
        self._running = False
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("httpengine").setLevel(level)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Start the keep-alive loop for a new connection on its own thread.

        Called from the accept loop; returns immediately.
        """
        thread = threading.Thread(
            target=self._process_connection,
            args=(conn,),
            name=f"conn-{conn.id}",
            daemon=True,
        )
        thread.start()

    def _process_connection(self, conn: Connection):
        """Serve requests on one connection until it closes (worker thread)."""
        logger.debug(f"[{conn.id}] Connection opened from {conn.client_ip}:{conn.client_port}")

        with conn:
            while self._running:
                try:
                    if not self._serve_one(conn):
                        break
                except OSError as e:
                    logger.warning(f"[{conn.id}] Transport error: {e}")
                    break
                except Exception:
                    logger.exception(f"[{conn.id}] Connection error")
                    break

    def _serve_one(self, conn: Connection) -> bool:
        """
        Run one AWAIT_REQUEST → DISPATCH cycle.

        Returns:
            True to keep the connection open for another request.

        Raises:
            OSError: Reading or writing the socket failed.
        """
        # ─────────────────────────────────────────────────────────────────
        # AWAIT_REQUEST
        # ─────────────────────────────────────────────────────────────────
        conn.state = ConnectionState.AWAIT_REQUEST
        try:
            request = self._parser.parse(conn.reader, conn.address)
        except HTTPParseError as e:
            logger.warning(f"[{conn.id}] Rejecting request ({e.status_code}): {e}")
            self._send_error(conn, e.status_code)
            return False
        except TimeoutError:
            logger.debug(f"[{conn.id}] Idle timeout")
            return False

        if request is None:
            logger.debug(f"[{conn.id}] Client closed the connection")
            return False

        # ─────────────────────────────────────────────────────────────────
        # DISPATCH
        # ─────────────────────────────────────────────────────────────────
        conn.state = ConnectionState.DISPATCH
        writer = ResponseWriter(conn, request)
        self._dispatch(conn, writer, request)
        conn.requests_handled += 1

        status = writer.status_code
        log = logger.warning if status >= 500 else logger.info
        log(f"[{conn.id}] {request.method} {request.path} -> {status}")

        # ─────────────────────────────────────────────────────────────────
        # KEEP-ALIVE OR CLOSE
        # ─────────────────────────────────────────────────────────────────
        if request.wants_close:
            return False
        if writer.headers.get("Connection").lower() == "close":
            return False
        return True

    def _dispatch(self, conn: Connection, writer: ResponseWriter, request: HTTPRequest):
        """
        Route the request and make sure exactly one response goes out.

        Raises:
            ResponseWriteError: The response could not be written.
        """
        try:
            self._router.serve(writer, request)
        except ResponseWriteError:
            raise
        except Exception:
            logger.exception(f"[{conn.id}] Handler error for {request.method} {request.path}")
            if writer.written:
                return
            writer.headers = Headers()
            (writer.set_status(HTTPStatus.INTERNAL_SERVER_ERROR)
                .set_body(HTTPStatus.INTERNAL_SERVER_ERROR.phrase)
                .write())
            return

        if not writer.written:
            logger.warning(
                f"[{conn.id}] Handler for {request.path} returned without write(); finalizing"
            )
            writer.write()

    def _send_error(self, conn: Connection, status: int):
        """
        Answer a request that could not be parsed.

        The response always carries `Connection: close`; the caller closes
        the connection afterwards.

        Raises:
            ResponseWriteError: The error response could not be written.
        """
        conn.state = ConnectionState.DISPATCH
        (ResponseWriter(conn)
            .set_status(status)
            .set_header("Connection", "close")
            .set_body(reason_phrase(status))
            .write())
