"""
Unit tests for HTTP Basic credential checks.
"""

import base64

import pytest

from shortener.auth import Credentials, authorize, decode_basic_auth, encode_basic_auth
from shortener.exceptions import ConfigError


def basic(raw: bytes) -> str:
    return "Basic " + base64.b64encode(raw).decode("ascii")


class TestCredentials:
    """Tests for loading credentials."""

    def test_from_string(self):
        creds = Credentials.from_string("admin:hunter2")
        assert creds.username == b"admin"
        assert creds.password == b"hunter2"

    def test_password_may_contain_colons(self):
        creds = Credentials.from_string("admin:a:b:c")
        assert creds.password == b"a:b:c"

    def test_empty_password_allowed(self):
        assert Credentials.from_string("admin:").password == b""

    def test_missing_colon_rejected(self):
        with pytest.raises(ConfigError):
            Credentials.from_string("adminhunter2")

    def test_empty_username_rejected(self):
        with pytest.raises(ConfigError):
            Credentials.from_string(":hunter2")

    def test_password_not_in_repr(self):
        assert "hunter2" not in repr(Credentials.from_string("admin:hunter2"))


class TestAuthorize:
    """Tests for header validation."""

    @pytest.fixture
    def creds(self) -> Credentials:
        return Credentials.from_string("admin:hunter2")

    def test_valid(self, creds: Credentials):
        assert authorize(encode_basic_auth("admin", "hunter2"), creds)
        assert creds.authorize(encode_basic_auth("admin", "hunter2"))

    def test_scheme_is_case_insensitive(self, creds: Credentials):
        token = base64.b64encode(b"admin:hunter2").decode()
        assert authorize(f"basic {token}", creds)
        assert authorize(f"BASIC {token}", creds)

    @pytest.mark.parametrize("header", [
        None,
        "",
        "Basic",
        "Basic ",
        "Bearer abc.def.ghi",
        "Basic !!!not-base64!!!",
        basic(b"adminhunter2"),
        basic(b"admin:wrong"),
        basic(b"wrong:hunter2"),
        basic(b"admin:hunter2 "),
        basic(b"Admin:hunter2"),
        basic(b":"),
    ])
    def test_rejected(self, creds: Credentials, header):
        assert authorize(header, creds) is False

    def test_decode(self):
        assert decode_basic_auth(basic(b"u:p:q")) == (b"u", b"p:q")
        assert decode_basic_auth("Digest abc") is None

    def test_non_ascii_credentials(self):
        creds = Credentials.from_string("jürgen:pässword")
        assert authorize(encode_basic_auth("jürgen", "pässword"), creds)
