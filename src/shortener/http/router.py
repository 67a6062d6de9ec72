"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) to a handler function.

=============================================================================
PATTERN SYNTAX
=============================================================================

    /               exact root
    /:code          one path segment, captured as path_params["code"]
    /*path          everything after the slash, captured as path_params["path"]

Patterns compile to anchored regexes:

    "/:code"   →  ^/(?P<code>[^/]+)$
    "/*path"   →  ^/(?P<path>.*)$
    "/"        →  ^/$

=============================================================================
DISPATCH
=============================================================================

    ┌─────────────────────────────────────────────────────────────────┐
    │  for route in routes (registration order):                      │
    │      method matches and pattern matches → call handler          │
    │                                                                  │
    │  no match:                                                       │
    │      path matches under other methods → 405 + Allow header      │
    │      otherwise                         → 404                    │
    └─────────────────────────────────────────────────────────────────┘

Order matters: register specific patterns before catch-alls.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, Any, List
import re
import logging

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A URL pattern bound to a handler."""

    path: str
    method: Optional[str]           # None = any method
    handler: Handler
    name: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """A matched route and the parameters extracted from the path."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Request router with ``:param`` and ``*wildcard`` segments.

        router = Router()
        router.add_route("/:code", follow, "GET", name="follow")
        router.handle(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
        **meta: Any
    ) -> Route:
        """
        Register a route.

        Args:
            path: URL pattern, e.g. "/:code".
            handler: Callable taking an HTTPRequest and returning an HTTPResponse.
            method: HTTP method, or None for any.
            name: Optional label, shown in debug logs.
            **meta: Free-form metadata kept on the Route.
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method.upper() if method else None,
            handler=handler,
            name=name,
            meta=meta,
            _pattern=pattern,
            _param_names=param_names,
        )

        self._routes.append(route)

        logger.debug(f"Registered route {route.method or '*'} {path} ({name or handler.__name__})")
        return route

    def _compile_pattern(self, path: str) -> tuple[re.Pattern, List[str]]:
        """
        Compile a route pattern into an anchored regex.

            "/:code/*rest"  →  ^/(?P<code>[^/]+)/(?P<rest>.*)$

        Returns:
            (compiled regex, parameter names in order)
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        for segment in path.split("/"):
            if not segment:
                continue

            regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")
            elif segment.startswith("*"):
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break
            else:
                regex_parts.append(re.escape(segment))

        if len(regex_parts) == 1:
            # Root pattern "/"
            regex_parts.append("/")

        regex_parts.append("$")
        return re.compile("".join(regex_parts)), param_names

    @staticmethod
    def _normalize(path: str) -> str:
        """"/abc/" → "/abc", "" → "/"."""
        return "/" + path.strip("/") if path != "/" else "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching method and path.

        Returns:
            RouteMatch, or None if nothing matches.
        """
        path = self._normalize(path)

        for route in self._routes:
            if route.method and route.method != method.upper():
                continue

            if route._pattern:
                match = route._pattern.match(path)
                if match:
                    return RouteMatch(route=route, params=match.groupdict())

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a path, for the Allow header of a 405."""
        path = self._normalize(path)
        methods = set()

        for route in self._routes:
            if route._pattern and route._pattern.match(path):
                if route.method:
                    methods.add(route.method)
                else:
                    return ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

        return sorted(methods)

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Dispatch a request to its handler, or answer 405/404."""
        match = self.match(request.method, request.path)

        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)

        return not_found(f"No route matches {request.path}")
