"""
=============================================================================
LINK HANDLERS
=============================================================================

The shortener's endpoints.

    ┌────────┬──────────┬──────────────────────────────────────────────────┐
    │ Method │ Pattern  │ Response                                         │
    ├────────┼──────────┼──────────────────────────────────────────────────┤
    │ GET    │ /        │ 200 usage text                                   │
    │ GET    │ /:code   │ 302 → stored URL, or 303 → / for unknown codes   │
    │ GET    │ /*path   │ 303 → / (nested paths are never codes)           │
    │ POST   │ /*path   │ shorten {"url": ...}, 200 {"code", "short_url"}  │
    └────────┴──────────┴──────────────────────────────────────────────────┘

Registration order matters: ``/:code`` must be tried before ``/*path``.
Credentials for POST are checked by BasicAuthMiddleware before any of
this runs.

=============================================================================
SHORTEN FLOW
=============================================================================

    body ──► {"url": "<string>"}? ──no──► 400
                    │
                   yes
                    ▼
            hash_url(url) ──► store.insert_or_get(code, url) ──► 200

The same URL always yields the same code, so resubmitting is harmless.
When a different URL lands on an occupied code the first one is kept and
its code is returned.

=============================================================================
"""

import logging
import re
from typing import Optional

from ..exceptions import BodyFormatError
from ..hasher import hash_url, is_short_code
from ..http.request import HTTPRequest, HTTPParseError
from ..http.response import HTTPResponse, ok, found, see_other, bad_request
from ..http.router import Router
from ..store import CodeStore


logger = logging.getLogger(__name__)

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


USAGE = """\
URL shortener

Shorten a URL (requires HTTP Basic credentials):

    curl -u user:pass -d '{"url": "https://example.com/"}' http://HOST/

Follow a short link:

    curl -i http://HOST/<code>
"""


def extract_url(request: HTTPRequest) -> str:
    """
    Pull the target URL out of a shorten request.

    The URL must survive being sent back as a Location header, so control
    characters and text that cannot be encoded as UTF-8 (lone surrogates
    from ``\\ud800``-style escapes) are rejected.

    Raises:
        BodyFormatError: If the body is not a JSON object with a string "url",
            or the URL cannot be redirected to.
    """
    try:
        payload = request.json
    except HTTPParseError as e:
        raise BodyFormatError(str(e)) from e

    if not isinstance(payload, dict):
        raise BodyFormatError('Body must be a JSON object like {"url": "..."}')

    if "url" not in payload:
        raise BodyFormatError('Missing "url" field')

    url = payload["url"]
    if not isinstance(url, str):
        raise BodyFormatError('"url" must be a string')

    try:
        url.encode("utf-8")
    except UnicodeEncodeError as e:
        raise BodyFormatError('"url" is not valid UTF-8') from e

    if _CONTROL_CHARS.search(url):
        raise BodyFormatError('"url" must not contain control characters')

    return url


class LinkHandler:
    """
    Shorten and redirect endpoints backed by a CodeStore.

        store = CodeStore()
        links = LinkHandler(store, base_url="https://sho.rt")
        links.register(router)

    Args:
        store: Where codes are stored and looked up.
        base_url: Public prefix for returned short URLs. Without one,
            ``short_url`` is just the path ``/<code>``.
    """

    def __init__(self, store: CodeStore, base_url: Optional[str] = None):
        self.store = store
        self.base_url = (base_url or "").rstrip("/")

    def register(self, router: Router) -> None:
        router.add_route("/", self.index, "GET", name="index")
        router.add_route("/:code", self.follow, "GET", name="follow")
        router.add_route("/*path", self.fallback, "GET", name="fallback")
        router.add_route("/*path", self.shorten, "POST", name="shorten")

    def short_url(self, code: str) -> str:
        return f"{self.base_url}/{code}"

    def index(self, request: HTTPRequest) -> HTTPResponse:
        return ok(USAGE)

    def follow(self, request: HTTPRequest) -> HTTPResponse:
        """302 to the stored URL, 303 to / when the code is unknown."""
        code = request.path_params.get("code", "")
        entry = self.store.get(code) if is_short_code(code) else None

        if entry is None:
            logger.debug(f"Unknown code {code!r}, redirecting to /")
            return see_other("/")

        logger.debug(f"Redirecting {code} → {entry.target}")
        return found(entry.target)

    def fallback(self, request: HTTPRequest) -> HTTPResponse:
        return see_other("/")

    def shorten(self, request: HTTPRequest) -> HTTPResponse:
        try:
            url = extract_url(request)
        except BodyFormatError as e:
            return bad_request(str(e))

        code = self.store.insert_or_get(hash_url(url), url)
        logger.info(f"Shortened {url!r} → {code}")

        return ok({"code": code, "short_url": self.short_url(code)})
