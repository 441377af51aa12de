"""
Test: Request and Response (request.py, response.py, _datastructures.py)
"""

import json

import pytest

from accipiter._datastructures import Headers, MultiDict, ParsedContentType
from accipiter.faults import InvalidBodyError
from accipiter.request import Request
from accipiter.response import Response
from tests.conftest import ResponseCapture, make_receive, make_request, make_scope


# ============================================================================
# Request
# ============================================================================

class TestRequestProperties:

    def test_method_and_path(self):
        req = make_request(method="PATCH", path="/users/1")
        assert req.method == "PATCH"
        assert req.path == "/users/1"

    def test_query_params(self):
        req = make_request(query_string="a=1&a=2&b=")
        assert req.query_param("a") == "1"
        assert req.query_params.get_all("a") == ["1", "2"]
        assert req.query_param("b") == ""
        assert req.query_param("missing", "dflt") == "dflt"

    def test_headers_case_insensitive(self):
        req = make_request(headers=[("Content-Type", "application/json"), ("X-Multi", "a"), ("x-multi", "b")])
        assert req.header("content-type") == "application/json"
        assert req.headers.get_all("X-MULTI") == ["a", "b"]
        assert req.headers.to_dict()["x-multi"] == "a, b"

    @pytest.mark.parametrize("headers, expected", [
        ([("x-forwarded-for", "203.0.113.7, 10.0.0.1")], "203.0.113.7"),
        ([("x-real-ip", "198.51.100.2")], "198.51.100.2"),
        ([("x-forwarded-for", " ")], "127.0.0.1"),
        (None, "127.0.0.1"),
    ])
    def test_client_ip(self, headers, expected):
        assert make_request(headers=headers).client_ip == expected

    def test_client_ip_without_peer(self):
        scope = make_scope()
        del scope["client"]
        assert Request(scope).client_ip == "unknown"

    def test_user_agent(self):
        assert make_request(headers=[("User-Agent", "curl/8.0")]).user_agent == "curl/8.0"
        assert make_request().user_agent == "unknown"

    @pytest.mark.parametrize("content_type, expected", [
        ("application/json", True),
        ("application/json; charset=utf-8", True),
        ("application/vnd.api+json", True),
        ("text/plain", False),
        (None, False),
    ])
    def test_is_json(self, content_type, expected):
        headers = [("content-type", content_type)] if content_type else None
        assert make_request(headers=headers).is_json() is expected


class TestRequestBody:

    @pytest.mark.asyncio
    async def test_chunked_body(self):
        req = Request(make_scope(method="POST"), make_receive(chunks=[b"ab", b"cd"]))
        assert await req.body() == b"abcd"
        assert await req.body() == b"abcd"

    @pytest.mark.asyncio
    async def test_json_cached(self):
        req = make_request(method="POST", body=b'{"a": 1}')
        first = await req.json()
        assert first == {"a": 1}
        assert await req.json() is first

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        req = make_request(method="POST", body=b"{nope")
        with pytest.raises(InvalidBodyError) as exc_info:
            await req.json()
        assert "detail" in exc_info.value.metadata

    @pytest.mark.asyncio
    async def test_invalid_utf8(self):
        req = make_request(method="POST", body=b"\xff\xfe")
        with pytest.raises(InvalidBodyError):
            await req.json()

    @pytest.mark.asyncio
    async def test_empty_body_is_invalid_json(self):
        with pytest.raises(InvalidBodyError):
            await make_request(method="POST").json()

    @pytest.mark.asyncio
    async def test_text_uses_charset(self):
        req = make_request(
            method="POST",
            headers=[("content-type", "text/plain; charset=latin-1")],
            body="café".encode("latin-1"),
        )
        assert await req.text() == "café"


# ============================================================================
# Response
# ============================================================================

class TestResponse:

    def test_media_type_detection(self):
        assert Response({"a": 1}).headers["content-type"].startswith("application/json")
        assert Response("hi").headers["content-type"].startswith("text/plain")
        assert Response(b"x").headers["content-type"] == "application/octet-stream"

    def test_json_serializes_sets_and_tuples(self):
        body = json.loads(Response.json({"s": {1}, "t": (1, 2)}).body)
        assert body == {"s": [1], "t": [1, 2]}

    def test_header_names_lowercased(self):
        assert Response(b"", headers={"X-Custom": "1"}).headers["x-custom"] == "1"

    @pytest.mark.asyncio
    async def test_send_asgi(self):
        send = ResponseCapture()
        await Response.text("hello", status=201).send_asgi(send)

        assert send.status == 201
        assert send.body == b"hello"
        assert send.headers["content-length"] == "5"


class TestDatastructures:

    def test_multidict_to_dict(self):
        md = MultiDict([("a", "1"), ("a", "2"), ("b", "3")])
        assert md.to_dict() == {"a": "1", "b": "3"}
        assert md.to_dict(multi=True) == {"a": ["1", "2"], "b": ["3"]}

    def test_headers_getitem(self):
        headers = Headers(raw=[(b"x-a", b"1")])
        assert headers["X-A"] == "1"
        assert "x-a" in headers
        with pytest.raises(KeyError):
            headers["missing"]

    def test_parsed_content_type(self):
        parsed = ParsedContentType.parse('Application/JSON; Charset="UTF-8"')
        assert parsed.media_type == "application/json"
        assert parsed.charset == "UTF-8"
        assert parsed.is_json
