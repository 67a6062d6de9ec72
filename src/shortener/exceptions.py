"""
Exceptions shared across the shortener package.

Protocol errors live next to the parser (``http.request.HTTPParseError``)
because they carry an HTTP status code; the ones here are raised before a
request exists or deep inside a handler.
"""


class ShortenerError(Exception):
    """Base class for shortener errors."""


class ConfigError(ShortenerError, ValueError):
    """Raised at startup when configuration is missing or malformed."""


class BodyFormatError(ShortenerError, ValueError):
    """Raised when a shorten request body is not ``{"url": "<string>"}``."""
