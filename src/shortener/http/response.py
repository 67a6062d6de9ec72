"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Response model plus the helpers handlers use to create responses.

=============================================================================
SERIALIZED FORM
=============================================================================

    HTTP/1.1 302 Found\r\n                        ← status line
    Location: https://www.theobeers.com/\r\n     ← handler headers
    Content-Length: 0\r\n                         ← always added
    Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n       ← always added
    Server: shortener/1.0\r\n                     ← always added
    \r\n                                          ← end of headers
    <body bytes>

Content-Length is always present, so clients never need chunked decoding
or connection close to find the end of a body.

=============================================================================
REDIRECTS USED BY THE SHORTENER
=============================================================================

    302 Found      GET /<known code>    → Location: <stored URL>
    303 See Other  GET /<unknown code>  → Location: /

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, Union
import json
import re

from .status_codes import HTTPStatus


DEFAULT_SERVER_NAME = "shortener/1.0"

_FORBIDDEN_HEADER_CHARS = re.compile(r"[\r\n\x00]")


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized.

    Build these with ResponseBuilder or the helper functions below.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 303 See Other"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize to wire format.

        Adds Content-Length, Date and Server when the handler did not set them.

        Returns:
            Status line, headers, blank line and body, ready for sendall().

        Raises:
            ValueError: If a header name or value contains CR, LF or NUL,
                which would let it end the header line early.
        """
        response_headers = dict(self.headers)

        response_headers["Content-Length"] = str(len(self.body))

        if "Date" not in response_headers:
            response_headers["Date"] = format_http_date(datetime.now(timezone.utc))

        if "Server" not in response_headers:
            response_headers["Server"] = server_name

        lines = [self.status_line]
        for name, value in response_headers.items():
            if _FORBIDDEN_HEADER_CHARS.search(name) or _FORBIDDEN_HEADER_CHARS.search(value):
                raise ValueError(f"Illegal character in header {name!r}")
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"code": "k902KW0"})
            .no_cache()
            .build())

    Every method except build() returns the builder.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str, content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = content_type
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Serialize ``data`` as a UTF-8 JSON body.

        ensure_ascii=False keeps non-ASCII URLs readable in responses.
        """
        self._body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = "application/json; charset=utf-8"
        return self

    def redirect(
        self,
        location: str,
        status: HTTPStatus = HTTPStatus.FOUND
    ) -> "ResponseBuilder":
        """
        Point the client somewhere else.

        Args:
            location: Value for the Location header.
            status: 302 Found (default), 303 See Other or 301.
        """
        if not status.is_redirect:
            raise ValueError(f"Not a redirect status: {status}")
        self._status = status
        self._headers["Location"] = location
        return self

    def no_cache(self) -> "ResponseBuilder":
        """
        Forbid caching.

        Redirects for codes must not be cached by browsers, otherwise a
        code shortened after a 303 would keep bouncing to /.
        """
        self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        self._headers["Pragma"] = "no-cache"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231), e.g.
    "Sun, 18 Oct 2026 12:00:00 GMT". Always GMT.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok({"code": code})
#     return found(entry.target)
#     return see_other("/")
#     return unauthorized(realm="shortener")
#
# =============================================================================

def ok(body: Union[str, bytes, dict, list] = "", content_type: Optional[str] = None) -> HTTPResponse:
    """
    200 OK.

    dict/list → JSON, str → text/plain, bytes → as-is.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)

    if isinstance(body, (dict, list)):
        builder.json(body)
    elif isinstance(body, str):
        builder.text(body, content_type or "text/plain; charset=utf-8")
    else:
        builder.body(body)
        if content_type:
            builder.content_type(content_type)

    return builder.build()


def found(location: str) -> HTTPResponse:
    """302 Found, uncached."""
    return ResponseBuilder().redirect(location, HTTPStatus.FOUND).no_cache().build()


def see_other(location: str) -> HTTPResponse:
    """303 See Other, uncached."""
    return ResponseBuilder().redirect(location, HTTPStatus.SEE_OTHER).no_cache().build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    """400 Bad Request with a JSON error body."""
    return ResponseBuilder().status(HTTPStatus.BAD_REQUEST).json({"error": message}).build()


def unauthorized(message: str = "Unauthorized", realm: str = "shortener") -> HTTPResponse:
    """
    401 Unauthorized with a Basic challenge.

    The WWW-Authenticate header is what makes browsers and curl prompt
    for credentials.
    """
    return (ResponseBuilder()
        .status(HTTPStatus.UNAUTHORIZED)
        .header("WWW-Authenticate", f'Basic realm="{realm}", charset="UTF-8"')
        .json({"error": message})
        .build())


def not_found(message: str = "Not Found") -> HTTPResponse:
    """404 Not Found."""
    return ResponseBuilder().status(HTTPStatus.NOT_FOUND).json({"error": message}).build()


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 Method Not Allowed with the Allow header RFC 7231 requires."""
    return (ResponseBuilder()
        .status(HTTPStatus.METHOD_NOT_ALLOWED)
        .header("Allow", ", ".join(allowed_methods))
        .json({"error": "Method Not Allowed", "allowed": allowed_methods})
        .build())


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """
    Any error status with a JSON body and ``Connection: close``.

    Used by the connection loop for failures that happen before a handler
    runs (parse errors, timeouts, overload).
    """
    return (ResponseBuilder()
        .status(status)
        .json({"error": message})
        .close_connection()
        .build())


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 Internal Server Error. Keep the message generic."""
    return ResponseBuilder().status(HTTPStatus.INTERNAL_SERVER_ERROR).json({"error": message}).build()
