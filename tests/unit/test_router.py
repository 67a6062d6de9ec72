"""
Unit tests for URL routing.
"""

import pytest

from shortener.http.request import HTTPRequest
from shortener.http.response import HTTPResponse, ok
from shortener.http.router import Router


def named(name: str):
    def handler(request: HTTPRequest) -> HTTPResponse:
        return ok({"handler": name, "params": request.path_params})
    return handler


@pytest.fixture
def router() -> Router:
    """Router with the shortener's route shape."""
    r = Router()
    r.add_route("/", named("index"), "GET", name="index")
    r.add_route("/:code", named("follow"), "GET", name="follow")
    r.add_route("/*path", named("fallback"), "GET")
    r.add_route("/*path", named("shorten"), "POST")
    return r


class TestRouterMatching:
    """Tests for route matching."""

    def test_root_matches_only_root(self, router: Router):
        match = router.match("GET", "/")
        assert match.route.name == "index"

    def test_param_segment(self, router: Router):
        match = router.match("GET", "/k902KW0")

        assert match.route.name == "follow"
        assert match.params == {"code": "k902KW0"}

    def test_trailing_slash_normalized(self, router: Router):
        assert router.match("GET", "/k902KW0/").params == {"code": "k902KW0"}

    def test_multi_segment_falls_through_to_wildcard(self, router: Router):
        match = router.match("GET", "/a/b/c")

        assert match.route.path == "/*path"
        assert match.params == {"path": "a/b/c"}

    def test_post_matches_any_path(self, router: Router):
        for path in ("/", "/anything", "/a/b"):
            assert router.match("POST", path).route.method == "POST"

    def test_method_case_insensitive(self, router: Router):
        assert router.match("get", "/").route.name == "index"

    def test_no_match_for_other_methods(self, router: Router):
        assert router.match("DELETE", "/abc") is None

    def test_first_registered_wins(self):
        r = Router()
        r.add_route("/:a", named("first"), "GET")
        r.add_route("/:b", named("second"), "GET")

        assert r.match("GET", "/x").params == {"a": "x"}

    def test_literal_segments_escaped(self):
        r = Router()
        r.add_route("/v1.0/:id", named("v"), "GET")

        assert r.match("GET", "/v1.0/7") is not None
        assert r.match("GET", "/v1x0/7") is None

    def test_any_method_route(self):
        r = Router()
        r.add_route("/x", named("any"))

        assert r.match("PATCH", "/x") is not None


class TestRouterDispatch:
    """Tests for Router.handle."""

    def test_handler_receives_path_params(self, router: Router):
        request = HTTPRequest(method="GET", path="/abc")
        response = router.handle(request)

        assert response.status == 200
        assert request.path_params == {"code": "abc"}

    def test_405_with_allow_header(self, router: Router):
        response = router.handle(HTTPRequest(method="PUT", path="/abc"))

        assert response.status == 405
        assert response.headers["Allow"] == "GET, POST"

    def test_404_when_nothing_matches(self):
        r = Router()
        r.add_route("/only", named("only"), "GET")

        assert r.handle(HTTPRequest(method="GET", path="/other")).status == 404

    def test_allowed_methods(self, router: Router):
        assert router.get_allowed_methods("/abc") == ["GET", "POST"]

