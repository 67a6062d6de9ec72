"""
=============================================================================
MIDDLEWARE
=============================================================================

Code that runs between parsing a request and the router:

    LoggingMiddleware     access line per request, X-Request-ID header
    BasicAuthMiddleware   401 for POSTs without the configured credentials

Each middleware receives the request and a ``next`` callable. It can
answer directly or pass the request on and adjust the response.

=============================================================================
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .auth import BasicAuthMiddleware
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",

    "BasicAuthMiddleware",
    "LoggingMiddleware",
    "RequestLog",
]
