"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler function.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   DELETE /user/65a1f0c2e4b0a1b2c3d4e5f6                              │
    │        │                                                             │
    │        ▼  split into segments: ("user", "65a1f0c2e4b0a1b2c3d4e5f6")  │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  GET    ("user", ":id")   → UserHandler.get_user            │   │
    │   │  POST   ("user",)         → UserHandler.create_user         │   │
    │   │  DELETE ("user", ":id")   → UserHandler.delete_user ← MATCH │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   request.path_params == {"id": "65a1f0c2e4b0a1b2c3d4e5f6"}          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A literal segment must match exactly; a ":name" segment matches any one
non-empty segment and captures it. Leading and trailing slashes are
ignored, so "/user" and "/user/" are the same path.

Routes are tried in registration order. When nothing matches:

    path matches under another method   → 405 + Allow
    path matches nothing at all         → 404 "404 page not found"

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple
import logging

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]

NOT_FOUND_MESSAGE = "404 page not found"


def split_path(path: str) -> Tuple[str, ...]:
    """ "/user/42/" → ("user", "42"); "/" → () """
    trimmed = path.strip("/")
    return tuple(trimmed.split("/")) if trimmed else ()


@dataclass
class Route:
    method: str
    path: str
    handler: Handler
    name: Optional[str] = None
    segments: Tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self):
        self.method = self.method.upper()
        self.segments = split_path(self.path)

    def capture(self, segments: Tuple[str, ...]) -> Optional[Dict[str, str]]:
        """Path parameters if the segments fit this route's pattern, else None."""
        if len(segments) != len(self.segments):
            return None

        params: Dict[str, str] = {}
        for pattern, actual in zip(self.segments, segments):
            if pattern.startswith(":"):
                if not actual:
                    return None
                params[pattern[1:]] = actual
            elif pattern != actual:
                return None
        return params


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


class Router:
    """
    Method + path dispatch.

        router = Router()
        router.add_route("/user/:id", handler.get_user, method="GET")
        router.add_route("/user", handler.create_user, method="POST")
    """

    def __init__(self):
        self._routes: List[Route] = []

    def add_route(self, path: str, handler: Handler, method: str, name: Optional[str] = None) -> Route:
        route = Route(method=method, path=path, handler=handler, name=name)
        self._routes.append(route)
        return route

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        method = method.upper()
        segments = split_path(path)

        for route in self._routes:
            if route.method != method:
                continue
            params = route.capture(segments)
            if params is not None:
                return RouteMatch(route, params)
        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Sorted methods that some route accepts for this path."""
        segments = split_path(path)
        return sorted({route.method for route in self._routes if route.capture(segments) is not None})

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Run the matching handler with request.path_params filled in."""
        found = self.match(request.method, request.path)
        if found is not None:
            request.path_params = found.params
            return found.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)
        return not_found(NOT_FOUND_MESSAGE)

    def routes(self) -> List[Route]:
        return list(self._routes)

    def log_routes(self, level: int = logging.INFO) -> None:
        """
        One line per route, in registration order:

              GET      /user/:id
              POST     /user
              DELETE   /user/:id
        """
        for route in self._routes:
            logger.log(level, f"  {route.method:8} {route.path}")
