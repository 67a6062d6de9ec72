"""
=============================================================================
BASIC AUTH GATE
=============================================================================

Only the configured user may create short links. Following them is public.

    POST /...  ──► credentials ok? ──yes──► next(request)
                         │
                         no
                         │
                         ▼
                 401 Unauthorized
                 WWW-Authenticate: Basic realm="shortener"

Other methods pass straight through.

=============================================================================
"""

import logging
from typing import Iterable

from .base import Middleware, NextHandler
from ..auth import Credentials
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, unauthorized


logger = logging.getLogger(__name__)


class BasicAuthMiddleware(Middleware):
    """
    Rejects unauthenticated requests for protected methods.

    Args:
        credentials: The expected username/password.
        realm: Realm announced in the WWW-Authenticate challenge.
        protected_methods: Methods that require credentials.
    """

    def __init__(
        self,
        credentials: Credentials,
        realm: str = "shortener",
        protected_methods: Iterable[str] = ("POST",),
    ):
        self.credentials = credentials
        self.realm = realm
        self.protected_methods = {m.upper() for m in protected_methods}

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        if request.method not in self.protected_methods:
            return next(request)

        if not self.credentials.authorize(request.authorization):
            # Never log the header itself
            logger.warning(
                f"Rejected unauthenticated {request.method} {request.path} "
                f"from {request.client_address[0] or 'unknown'}"
            )
            return unauthorized(realm=self.realm)

        return next(request)
