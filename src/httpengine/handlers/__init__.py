"""
=============================================================================
REQUEST HANDLERS
=============================================================================

Handlers are plain callables taking (writer, request). Each one sets the
status, headers and body on the writer and calls writer.write() once.

    ┌────────────────┬─────────┬──────────────────────────────────────────┐
    │  pattern       │  kind   │  handler                                 │
    ├────────────────┼─────────┼──────────────────────────────────────────┤
    │  /             │  exact  │  basic.index       200, empty body       │
    │  /echo/        │  prefix │  basic.echo        body = rest of path   │
    │  /user-agent   │  exact  │  basic.user_agent  body = User-Agent     │
    │  /files/       │  prefix │  FileHandler       GET read / POST write │
    └────────────────┴─────────┴──────────────────────────────────────────┘

=============================================================================
"""

from ..http.router import Router
from .basic import index, echo, user_agent
from .files import FileHandler


def create_router(directory: str) -> Router:
    """
    Build the default route table.

    Args:
        directory: Directory handed to the /files/ handler.

    Returns:
        A populated (not yet frozen) Router.
    """
    router = Router()
    router.handle("/", index)
    router.handle("/echo/", echo)
    router.handle("/user-agent", user_agent)
    router.handle("/files/", FileHandler(directory, url_prefix="/files/"))
    return router


__all__ = ["create_router", "FileHandler", "index", "echo", "user_agent"]
