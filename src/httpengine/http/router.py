"""
=============================================================================
PREFIX ROUTER (SERVE MUX)
=============================================================================

Maps request paths to handlers. Two kinds of pattern:

    EXACT    "/user-agent"   matches only the path "/user-agent"
    PREFIX   "/files/"       matches "/files/", "/files/a.txt",
                             "/files/x/y", ... (any path starting with it)

A pattern is a prefix pattern when it ends in "/" (the bare root "/" is
exact only, otherwise it would swallow every unmatched path).

=============================================================================
LOOKUP ORDER
=============================================================================

    find_handler(request)
        │
        ├──► 1. exact table: dict lookup of request.path       O(1)
        │        hit → done
        │
        └──► 2. prefix list, longest pattern first             O(prefixes)
                 first pattern that request.path starts with → done
                 none → None (caller answers 404)

Keeping the prefix list sorted longest-first makes the most specific
prefix win when patterns overlap:

    registered:  "/a/", "/a/b/"
    prefix list: ["/a/b/", "/a/"]
    "/a/b/c"  →  "/a/b/"

New prefixes are placed with a binary search (bisect) on pattern length.
An entry is inserted before existing entries of equal length, so among
equal-length prefixes the most recently registered is tried first.

The prefix scan is linear in the number of prefix routes. That is fine
for the handful of routes a server like this carries; a large registry
would want a trie instead.

=============================================================================
CONCURRENCY
=============================================================================

Routes are registered once at startup. HTTPServer calls freeze() before
accepting connections; after that the tables are only read, so worker
threads share the router without locks.

=============================================================================
"""

from bisect import bisect_left
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging

from .request import HTTPRequest
from .response import ResponseWriter
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


# Handler: called with the writer and the request; must call writer.write()
Handler = Callable[[ResponseWriter, HTTPRequest], None]


class RouteConflictError(Exception):
    """The same pattern was registered twice."""


@dataclass(frozen=True)
class Route:
    """A registered pattern and its handler."""

    pattern: str
    handler: Handler

    @property
    def is_prefix(self) -> bool:
        return len(self.pattern) > 1 and self.pattern.endswith("/")


class Router:
    """
    Exact-path and prefix request router.

    Usage:
        router = Router()

        @router.route("/echo/")
        def echo(writer, request):
            writer.set_body(request.path[len("/echo/"):]).write()

        router.handle("/user-agent", user_agent_handler)
    """

    def __init__(self):
        self._exact: Dict[str, Route] = {}
        self._prefixes: List[Route] = []  # longest pattern first
        self._frozen = False

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def handle(self, pattern: str, handler: Handler) -> Route:
        """
        Register a handler for a pattern.

        Args:
            pattern: Exact path, or a prefix when it ends in "/".
            handler: Callable taking (writer, request).

        Returns:
            The registered Route.

        Raises:
            RouteConflictError: The pattern is already registered.
            RuntimeError: The router has been frozen.
        """
        if self._frozen:
            raise RuntimeError(f"cannot register {pattern!r}: router is frozen")
        if not pattern:
            raise ValueError("route pattern must not be empty")
        if not callable(handler):
            raise TypeError(f"handler for {pattern!r} is not callable")
        if pattern in self._exact:
            raise RouteConflictError(f"multiple registrations for {pattern!r}")

        route = Route(pattern=pattern, handler=handler)
        self._exact[pattern] = route

        if route.is_prefix:
            index = bisect_left(
                self._prefixes, -len(pattern), key=lambda r: -len(r.pattern)
            )
            self._prefixes.insert(index, route)

        logger.debug(f"Registered {'prefix' if route.is_prefix else 'exact'} route {pattern}")
        return route

    def route(self, pattern: str) -> Callable[[Handler], Handler]:
        """Decorator form of handle()."""
        def decorator(handler: Handler) -> Handler:
            self.handle(pattern, handler)
            return handler
        return decorator

    def freeze(self) -> "Router":
        """Make the route table read-only. Idempotent."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def match(self, path: str) -> Optional[Route]:
        """Resolve a raw request path to a Route, or None."""
        route = self._exact.get(path)
        if route is not None:
            return route

        for route in self._prefixes:
            if path.startswith(route.pattern):
                return route

        return None

    def find_handler(self, request: HTTPRequest) -> Optional[Route]:
        """Resolve a request to the Route that should serve it."""
        return self.match(request.path)

    def serve(self, writer: ResponseWriter, request: HTTPRequest) -> None:
        """
        Dispatch a request.

        Calls the matching handler, or writes 404 Not Found without
        invoking any handler.
        """
        route = self.find_handler(request)
        if route is None:
            (writer.set_status(HTTPStatus.NOT_FOUND)
                .set_body(HTTPStatus.NOT_FOUND.phrase)
                .write())
            return

        route.handler(writer, request)

    @property
    def routes(self) -> List[Route]:
        """All routes in registration order."""
        return list(self._exact.values())

    @property
    def prefix_routes(self) -> List[Route]:
        """Prefix routes in lookup order (longest first)."""
        return list(self._prefixes)
