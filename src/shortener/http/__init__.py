"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Turns bytes from TCP into requests, and responses back into bytes.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw bytes → HTTPRequest (narrow HTTP/1.1 subset)   │
    │ response.py      HTTPResponse, ResponseBuilder, ok/found/see_other  │
    │ router.py        (method, path) → handler                           │
    │ status_codes.py  HTTPStatus enum with reason phrases                │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    found,
    see_other,
    bad_request,
    unauthorized,
    not_found,
    method_not_allowed,
    error_response,
    internal_error,
)
from .router import Router, Route, RouteMatch
from .status_codes import HTTPStatus

__all__ = [
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    "HTTPResponse",
    "ResponseBuilder",

    "ok",
    "found",
    "see_other",
    "bad_request",
    "unauthorized",
    "not_found",
    "method_not_allowed",
    "error_response",
    "internal_error",

    "Router",
    "Route",
    "RouteMatch",

    "HTTPStatus",
]
