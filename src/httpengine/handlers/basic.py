"""
Small built-in handlers: root, echo and user-agent.
"""

from ..http.request import HTTPRequest, WIRE_ENCODING
from ..http.response import ResponseWriter


def index(writer: ResponseWriter, request: HTTPRequest) -> None:
    """`/` answers 200 with an empty body."""
    writer.set_status(200, "OK").set_body(b"").write()


def echo(writer: ResponseWriter, request: HTTPRequest) -> None:
    """
    `/echo/<text>` answers with <text>.

    The text is sent back byte for byte as it appeared in the request
    line (no percent-decoding).
    """
    text = request.path[len("/echo/"):]
    writer.set_status(200, "OK").set_body(text.encode(WIRE_ENCODING)).write()


def user_agent(writer: ResponseWriter, request: HTTPRequest) -> None:
    """`/user-agent` answers with the User-Agent header value."""
    writer.set_status(200, "OK").set_body(request.user_agent.encode(WIRE_ENCODING)).write()
