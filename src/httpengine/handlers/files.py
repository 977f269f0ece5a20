"""
=============================================================================
FILE HANDLER
=============================================================================

Reads and writes files inside one directory under a URL prefix:

    GET  /files/notes.txt   → 200 + file bytes (application/octet-stream)
                              404 if the file does not exist
    POST /files/notes.txt   → request body written to <directory>/notes.txt
                              201 Created
    other methods           → 405 Method Not Allowed (Allow: GET, POST)

=============================================================================
PATH TRAVERSAL
=============================================================================

The file name comes straight from the request-target, so it may try to
climb out of the directory:

    GET /files/../../etc/passwd

Every name is resolved (following ".." and symlinks) and must still lie
inside the configured directory; anything else gets 403 Forbidden.

=============================================================================
"""

import logging
from pathlib import Path
from typing import Optional

from ..http.request import HTTPRequest
from ..http.response import ResponseWriter
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


class FileHandler:
    """
    Serve and store files under a URL prefix.

    Usage:
        files = FileHandler("/srv/files", url_prefix="/files/")
        router.handle("/files/", files)
    """

    ALLOWED_METHODS = ("GET", "POST")

    def __init__(self, directory: str, url_prefix: str = "/files/"):
        """
        Args:
            directory: Directory to read from and write into. Injected as
                       an opaque string; it does not have to exist until
                       the first request.
            url_prefix: Prefix stripped from the request path to get the
                        file name.
        """
        self.directory = Path(directory).resolve()
        self.url_prefix = url_prefix

    def __call__(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        self.handle(writer, request)

    def handle(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        if request.method not in self.ALLOWED_METHODS:
            (writer.set_status(HTTPStatus.METHOD_NOT_ALLOWED)
                .set_header("Allow", ", ".join(self.ALLOWED_METHODS))
                .set_body(HTTPStatus.METHOD_NOT_ALLOWED.phrase)
                .write())
            return

        path = self._resolve(request.path)
        if path is None:
            logger.warning(f"Path traversal attempt: {request.path}")
            writer.set_status(HTTPStatus.FORBIDDEN).set_body("Forbidden").write()
            return

        if request.method == "POST":
            self._store(writer, request, path)
        else:
            self._serve(writer, path)

    def _resolve(self, url_path: str) -> Optional[Path]:
        """Map a request path to a file inside the directory, or None."""
        name = url_path[len(self.url_prefix):] if url_path.startswith(self.url_prefix) else url_path
        name = name.lstrip("/")
        if not name:
            return None

        full_path = (self.directory / name).resolve()
        try:
            full_path.relative_to(self.directory)
        except ValueError:
            return None
        return full_path

    def _serve(self, writer: ResponseWriter, path: Path) -> None:
        try:
            contents = path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            writer.set_status(HTTPStatus.NOT_FOUND).set_body("Not Found").write()
            return
        except PermissionError as e:
            logger.error(f"Cannot read {path}: {e}")
            writer.set_status(HTTPStatus.FORBIDDEN).set_body("Forbidden").write()
            return
        except OSError as e:
            # ENAMETOOLONG, ELOOP, EIO, ...
            logger.error(f"Cannot read {path}: {e}")
            (writer.set_status(HTTPStatus.INTERNAL_SERVER_ERROR)
                .set_body(HTTPStatus.INTERNAL_SERVER_ERROR.phrase)
                .write())
            return

        (writer.set_status(HTTPStatus.OK)
            .set_header("Content-Type", "application/octet-stream")
            .set_body(contents)
            .write())

    def _store(self, writer: ResponseWriter, request: HTTPRequest, path: Path) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(request.body or b"")
        except OSError as e:
            # Filesystem failure, not a transport one: answer 500 here
            logger.error(f"Cannot write {path}: {e}")
            (writer.set_status(HTTPStatus.INTERNAL_SERVER_ERROR)
                .set_body(HTTPStatus.INTERNAL_SERVER_ERROR.phrase)
                .write())
            return

        logger.info(f"Stored {len(request.body or b'')} bytes in {path}")
        writer.set_status(HTTPStatus.CREATED).write()
