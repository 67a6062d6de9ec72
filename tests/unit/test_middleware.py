"""
Unit tests for the middleware pipeline, auth gate and access logging.
"""

import json
import logging

import pytest

from shortener.auth import Credentials
from shortener.http.request import HTTPRequest
from shortener.http.response import HTTPResponse, ok
from shortener.middleware import (
    Middleware,
    MiddlewarePipeline,
    BasicAuthMiddleware,
    LoggingMiddleware,
)


class Recorder(Middleware):
    """Appends its tag on the way in and out."""

    def __init__(self, tag: str, trail: list):
        self.tag = tag
        self.trail = trail

    def __call__(self, request, next):
        self.trail.append(f"{self.tag}>")
        response = next(request)
        self.trail.append(f"<{self.tag}")
        return response


def final(request: HTTPRequest) -> HTTPResponse:
    return ok("done")


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_order(self):
        trail = []
        pipeline = MiddlewarePipeline()
        pipeline.add(Recorder("a", trail)).add(Recorder("b", trail))

        handler = pipeline.wrap(final)
        response = handler(HTTPRequest(method="GET", path="/"))

        assert response.body == b"done"
        assert trail == ["a>", "b>", "<b", "<a"]
        assert len(pipeline) == 2

    def test_empty_pipeline_is_handler(self):
        assert MiddlewarePipeline().wrap(final) is final


class TestBasicAuthMiddleware:
    """Tests for the POST credential gate."""

    @pytest.fixture
    def gate(self, credentials: Credentials) -> BasicAuthMiddleware:
        return BasicAuthMiddleware(credentials, realm="test")

    @pytest.fixture
    def calls(self) -> list:
        return []

    @pytest.fixture
    def handler(self, calls: list):
        def inner(request):
            calls.append(request)
            return ok("in")
        return inner

    def test_get_passes_without_credentials(self, gate, handler, calls):
        response = gate(HTTPRequest(method="GET", path="/abc"), handler)

        assert response.status == 200
        assert len(calls) == 1

    def test_post_with_valid_credentials(self, gate, handler, calls, auth_header):
        request = HTTPRequest(method="POST", path="/", headers={"authorization": auth_header})

        assert gate(request, handler).status == 200
        assert len(calls) == 1

    @pytest.mark.parametrize("headers", [
        {},
        {"authorization": "Basic d3Jvbmc6d3Jvbmc="},
        {"authorization": "Bearer token"},
    ])
    def test_post_rejected(self, gate, handler, calls, headers):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers=headers,
            client_address=("10.0.0.7", 5555),
        )

        response = gate(request, handler)

        assert response.status == 401
        assert response.headers["WWW-Authenticate"].startswith('Basic realm="test"')
        assert calls == []

    def test_rejection_logged_without_secret(self, gate, handler, caplog):
        request = HTTPRequest(
            method="POST",
            path="/",
            headers={"authorization": "Basic d3Jvbmc6c2VjcmV0"},
            client_address=("10.0.0.7", 5555),
        )

        with caplog.at_level(logging.WARNING, logger="shortener.middleware.auth"):
            gate(request, handler)

        assert "10.0.0.7" in caplog.text
        assert "d3Jvbmc6c2VjcmV0" not in caplog.text


class TestLoggingMiddleware:
    """Tests for access logging."""

    def test_text_line(self, caplog):
        middleware = LoggingMiddleware()
        request = HTTPRequest(method="GET", path="/abc", client_address=("1.2.3.4", 1))

        with caplog.at_level(logging.INFO, logger="shortener.access"):
            response = middleware(request, final)

        assert len(response.headers["X-Request-ID"]) == 8
        assert '1.2.3.4 - - [' in caplog.text
        assert '"GET /abc" 200 4' in caplog.text

    def test_json_line(self, caplog):
        middleware = LoggingMiddleware(log_format="json", include_request_id=False)
        request = HTTPRequest(method="POST", path="/", client_address=("1.2.3.4", 1))

        with caplog.at_level(logging.INFO, logger="shortener.access"):
            response = middleware(request, final)

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["method"] == "POST"
        assert entry["status_code"] == 200
        assert "X-Request-ID" not in response.headers

    def test_skip_paths(self, caplog):
        middleware = LoggingMiddleware(skip_paths=["/"])

        with caplog.at_level(logging.INFO, logger="shortener.access"):
            middleware(HTTPRequest(method="GET", path="/"), final)

        assert caplog.records == []

    def test_handler_errors_logged_and_reraised(self, caplog):
        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="shortener.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware()(HTTPRequest(method="GET", path="/x"), broken)

        assert "RuntimeError: boom" in caplog.text

    def test_unknown_format_rejected(self):
        with pytest.raises(ValueError):
            LoggingMiddleware(log_format="xml")
