"""
Test: default middleware (middleware.py)
"""

import json
import logging

import pytest

from accipiter.context import RequestContext
from accipiter.faults import ConfigurationError, InvalidBodyError, RouteNotFound
from accipiter.middleware import ExceptionMiddleware, LoggingMiddleware, compose
from accipiter.response import Response
from tests.conftest import make_request


def raising(exc):
    async def handler(request, ctx):
        raise exc

    return handler


async def run(mw, handler, **request_kwargs):
    request = make_request(**request_kwargs)
    return await mw(request, RequestContext(request=request), handler)


class TestCompose:

    @pytest.mark.asyncio
    async def test_first_is_outermost(self):
        log = []

        def step(name):
            async def mw(request, ctx, next):
                log.append(f"{name}:in")
                response = await next(request, ctx)
                log.append(f"{name}:out")
                return response
            return mw

        async def handler(request, ctx):
            log.append("handler")
            return Response.text("ok")

        chain = compose([step("a"), step("b")], handler)
        request = make_request()
        await chain(request, RequestContext(request=request))

        assert log == ["a:in", "b:in", "handler", "b:out", "a:out"]

    @pytest.mark.asyncio
    async def test_empty_chain_is_handler(self):
        async def handler(request, ctx):
            return Response.text("bare")

        request = make_request()
        response = await compose([], handler)(request, RequestContext(request=request))
        assert response.body == b"bare"


class TestExceptionMiddleware:

    @pytest.mark.asyncio
    async def test_public_fault_keeps_status(self):
        response = await run(ExceptionMiddleware(), raising(RouteNotFound("GET", "/x")))
        assert response.status == 404
        assert json.loads(response.body) == {"error": {"code": "NOT_FOUND", "message": "Not Found"}}

    @pytest.mark.asyncio
    async def test_invalid_body_is_400(self):
        response = await run(ExceptionMiddleware(), raising(InvalidBodyError()))
        assert response.status == 400
        assert json.loads(response.body)["error"]["message"] == "Invalid JSON body"

    @pytest.mark.asyncio
    async def test_private_fault_hidden(self):
        response = await run(ExceptionMiddleware(), raising(ConfigurationError("secret detail")))
        body = json.loads(response.body)
        assert response.status == 500
        assert body["error"]["code"] == "CONFIGURATION_ERROR"
        assert body["error"]["message"] == "Internal server error"

    @pytest.mark.asyncio
    async def test_private_fault_shown_in_debug(self):
        response = await run(ExceptionMiddleware(debug=True), raising(ConfigurationError("secret detail")))
        assert json.loads(response.body)["error"]["message"] == "secret detail"

    @pytest.mark.asyncio
    async def test_unknown_exception_is_500_and_logged(self, caplog):
        with caplog.at_level(logging.ERROR, logger="accipiter.exceptions"):
            response = await run(ExceptionMiddleware(), raising(KeyError("x")))

        body = json.loads(response.body)
        assert response.status == 500
        assert "detail" not in body
        assert "Unhandled exception" in caplog.text

    @pytest.mark.asyncio
    async def test_debug_includes_detail(self):
        response = await run(ExceptionMiddleware(debug=True), raising(ValueError("bad value")))
        body = json.loads(response.body)
        assert body["detail"] == "bad value"
        assert "traceback" in body

    @pytest.mark.asyncio
    async def test_passthrough(self):
        async def handler(request, ctx):
            return Response.text("fine")

        response = await run(ExceptionMiddleware(), handler)
        assert response.body == b"fine"


class TestLoggingMiddleware:

    @pytest.mark.asyncio
    async def test_access_line(self, caplog):
        async def handler(request, ctx):
            return Response.text("ok", status=201)

        with caplog.at_level(logging.INFO, logger="accipiter.requests"):
            await run(LoggingMiddleware(), handler, method="POST", path="/items")

        assert "POST /items - 201" in caplog.text

    @pytest.mark.asyncio
    async def test_no_response_logs_204(self, caplog):
        async def handler(request, ctx):
            return None

        with caplog.at_level(logging.INFO, logger="accipiter.requests"):
            response = await run(LoggingMiddleware(), handler, path="/fire")

        assert response is None
        assert "GET /fire - 204" in caplog.text

    @pytest.mark.asyncio
    async def test_slow_request_warning(self, caplog):
        async def handler(request, ctx):
            return Response.text("ok")

        with caplog.at_level(logging.INFO, logger="accipiter.requests"):
            await run(LoggingMiddleware(slow_threshold_ms=-1), handler)

        assert "Slow request" in caplog.text
