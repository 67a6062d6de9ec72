"""
=============================================================================
HTTP BASIC AUTHENTICATION
=============================================================================

Shortening is restricted to one configured user. Clients authenticate with
the standard Basic scheme (RFC 7617):

    Authorization: Basic dXNlcjpwYXNz
                   ──┬── ─────┬─────
                     │        │
                  Scheme    base64("user:pass")

The check is stateless: decode, split on the first colon, compare both
halves with the expected pair.

=============================================================================
FAILURE IS A BOOLEAN
=============================================================================

A missing header, a Bearer token, broken base64 and a wrong password all
end the same way: authorize() returns False and the caller answers 401.
Nothing here raises for bad client input, and nothing tells the client
which half was wrong.

Comparison goes through hmac.compare_digest so response timing does not
leak how many leading bytes matched.

=============================================================================
"""

import base64
import binascii
import hmac
from dataclasses import dataclass, field
from typing import Optional

from .exceptions import ConfigError


@dataclass(frozen=True)
class Credentials:
    """
    The expected username/password pair.

    Held as bytes because the comparison is byte-for-byte.
    """

    username: bytes
    password: bytes = field(repr=False)

    @classmethod
    def from_string(cls, value: str) -> "Credentials":
        """
        Parse ``username:password`` (the BASIC_AUTH format).

        Only the first colon separates the fields, so passwords may contain
        colons.

        Raises:
            ConfigError: If there is no colon or the username is empty.
        """
        username, sep, password = value.partition(":")
        if not sep:
            raise ConfigError("Credentials must have the form username:password")
        if not username:
            raise ConfigError("Credentials username must not be empty")
        return cls(username=username.encode("utf-8"), password=password.encode("utf-8"))

    def authorize(self, header: Optional[str]) -> bool:
        """Check an Authorization header value against these credentials."""
        return authorize(header, self)


def decode_basic_auth(header: Optional[str]) -> Optional[tuple[bytes, bytes]]:
    """
    Extract (username, password) from a Basic Authorization header value.

    Returns:
        The decoded pair, or None if the header is missing or malformed.
    """
    if not header:
        return None

    scheme, _, payload = header.strip().partition(" ")
    if scheme.lower() != "basic" or not payload:
        return None

    try:
        decoded = base64.b64decode(payload.strip(), validate=True)
    except (binascii.Error, ValueError):
        return None

    username, sep, password = decoded.partition(b":")
    if not sep:
        return None
    return username, password


def authorize(header: Optional[str], expected: Credentials) -> bool:
    """
    Validate a Basic Authorization header.

    Args:
        header: Raw ``Authorization`` header value (None if absent).
        expected: The configured credentials.

    Returns:
        True only if both username and password match exactly.
    """
    pair = decode_basic_auth(header)
    if pair is None:
        return False

    username, password = pair
    # Both comparisons always run
    username_ok = hmac.compare_digest(username, expected.username)
    password_ok = hmac.compare_digest(password, expected.password)
    return username_ok and password_ok


def encode_basic_auth(username: str, password: str) -> str:
    """Build an Authorization header value (used by clients and tests)."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
