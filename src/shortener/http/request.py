"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into HTTPRequest objects.

The parser is deliberately narrow. It understands exactly what a
URL shortener's clients send:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     SUPPORTED REQUEST SHAPE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   POST /anything HTTP/1.1\r\n            ← request line             │
    │   Host: sho.rt\r\n                       ← headers                  │
    │   Authorization: Basic dXNlcjpwYXNz\r\n                             │
    │   Content-Type: application/json\r\n                                │
    │   Content-Length: 33\r\n                 ← body length              │
    │   \r\n                                   ← end of headers           │
    │   {"url": "https://example.com/x"}       ← exactly 33 bytes         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Anything outside that subset fails closed with HTTPParseError:

    ┌─────────────────────────────────┬─────────────────────────────────┐
    │ Input                           │ Status                          │
    ├─────────────────────────────────┼─────────────────────────────────┤
    │ Garbled request line            │ 400 Bad Request                 │
    │ Header section not UTF-8        │ 400 Bad Request                 │
    │ Header line without a colon     │ 400 Bad Request                 │
    │ Folded (continuation) header    │ 400 Bad Request                 │
    │ Non-numeric Content-Length      │ 400 Bad Request                 │
    │ Transfer-Encoding (chunked)     │ 400 Bad Request                 │
    │ Body shorter than declared      │ 400 Bad Request                 │
    │ Unknown method token            │ 405 Method Not Allowed          │
    │ Request over the size limit     │ 413 Payload Too Large           │
    │ HTTP/2.0, HTTP/0.9, ...         │ 505 HTTP Version Not Supported  │
    └─────────────────────────────────┴─────────────────────────────────┘

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import parse_qs, urlparse, unquote
import re
import json


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code the server should answer with, so the
    connection loop can turn any parse failure into a response without
    knowing which check failed.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, POST, ...
        path:           Request path without the query string, URL-decoded
        version:        "HTTP/1.1" or "HTTP/1.0"
        headers:        Header names lower-cased → values
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           Exactly Content-Length bytes
        path_params:    Filled in by the router ("/:code" → {"code": ...})
        client_address: (ip, port) of the peer
        raw:            The bytes the request was parsed from

    =========================================================================
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)
    raw: bytes = field(default=b"", repr=False)

    _body_json: Optional[Any] = field(default=None, repr=False)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json; charset=utf-8" → "application/json")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def authorization(self) -> Optional[str]:
        """The raw Authorization header, or None if the client sent none."""
        return self.headers.get("authorization")

    @property
    def json(self) -> Any:
        """
        The body decoded as JSON.

        Parsed once on first access and cached. An empty body is None.

        Raises:
            HTTPParseError: If the body is not valid UTF-8 JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1: open unless "Connection: close"
            HTTP/1.0: closed unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Turns raw request bytes into an HTTPRequest.

    ==========================================================================
    PARSING STEPS
    ==========================================================================

        1. Size check                    → 413
        2. Split at \\r\\n\\r\\n             → 400 if missing
        3. Request line                  → 400 / 405 / 505
        4. Header lines                  → 400 on malformed lines
        5. Framing (Content-Length only) → 400 on chunked / bad length
        6. Body slice                    → 400 if truncated

    ==========================================================================
    """

    VALID_METHODS = {
        "GET",
        "POST",
        "PUT",
        "DELETE",
        "PATCH",
        "HEAD",
        "OPTIONS",
        "TRACE",
        "CONNECT",
    }

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+):[ \t]*(.*?)[ \t]*$")

    def __init__(self, max_request_size: int = 1024 * 1024):
        """
        Args:
            max_request_size: Largest accepted request in bytes (headers + body).
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Args:
            data: Raw request bytes, as returned by Connection.read_request().
            client_address: Peer (ip, port) for logging.

        Returns:
            The parsed request.

        Raises:
            HTTPParseError: If the request is outside the supported subset.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        try:
            header_section = data[:header_end].decode("utf-8")
        except UnicodeDecodeError as e:
            raise HTTPParseError(f"Failed to decode request: {e}")

        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request line")

        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])
        content_length = self._parse_framing(headers)

        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
            raw=data,
        )

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Parse ``METHOD SP REQUEST-TARGET SP HTTP-VERSION``.

        Returns:
            (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line[:100]!r}")

        method, target, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(
                f"Invalid method: {method}",
                status_code=405
            )

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        # Origin-form ("/abc?x=1") and absolute-form ("http://host/abc")
        parsed = urlparse(target)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse ``Name: value`` lines into a dict with lower-cased names.

        Repeated headers are joined with ", " (RFC 7230 section 3.2.2).
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                raise HTTPParseError("Obsolete header line folding is not supported")

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line[:100]!r}")

            name, value = match.groups()
            name = name.lower()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _parse_framing(self, headers: Dict[str, str]) -> int:
        """
        Work out the body length.

        Only Content-Length framing is supported. A repeated header is
        accepted when every copy carries the same value.
        """
        if "transfer-encoding" in headers:
            raise HTTPParseError(
                f"Unsupported Transfer-Encoding: {headers['transfer-encoding']}"
            )

        raw_length = headers.get("content-length")
        if raw_length is None:
            return 0

        values = {v.strip() for v in raw_length.split(",")}
        if len(values) != 1:
            raise HTTPParseError(f"Conflicting Content-Length values: {raw_length}")

        value = values.pop()
        if not value.isdigit():
            raise HTTPParseError(f"Invalid Content-Length: {value!r}")

        content_length = int(value)
        if content_length > self.max_request_size:
            raise HTTPParseError(
                f"Declared body too large: {content_length} bytes",
                status_code=413
            )
        return content_length


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse a request with a one-off RequestParser."""
    parser = RequestParser(max_request_size=max_size)
    return parser.parse(data, client_address)
