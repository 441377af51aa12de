"""
Shared test fixtures and helpers for the Accipiter test suite.
"""

from typing import Dict, List, Optional

import pytest

from accipiter.context import RequestContext
from accipiter.di import Container
from accipiter.metadata import MetadataRegistry
from accipiter.request import Request
from accipiter.router import Router


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": query_string.encode("utf-8") if isinstance(query_string, str) else query_string,
        "headers": raw_headers,
        "scheme": "http",
        "server": ("127.0.0.1", 8000),
        "client": ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b"", *, chunks: Optional[List[bytes]] = None):
    """Create an ASGI receive callable from body bytes or chunked list."""
    if chunks:
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks)
        ]
    else:
        messages = [{"type": "http.request", "body": body, "more_body": False}]

    idx = 0

    async def receive():
        nonlocal idx
        if idx < len(messages):
            msg = messages[idx]
            idx += 1
            return msg
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    path_params: Optional[Dict[str, str]] = None,
) -> Request:
    """Build a full Request object for testing."""
    scope = make_scope(method=method, path=path, query_string=query_string, headers=headers)
    return Request(scope, make_receive(body), path_params=path_params)


def make_context(
    method: str = "GET",
    path: str = "/",
    query_string: str = "",
    headers: Optional[List[tuple]] = None,
    body: bytes = b"",
    path_params: Optional[Dict[str, str]] = None,
    scope: Optional[Container] = None,
) -> RequestContext:
    """Build a RequestContext around a test request."""
    request = make_request(
        method=method,
        path=path,
        query_string=query_string,
        headers=headers,
        body=body,
        path_params=path_params,
    )
    return RequestContext(request=request, scope=scope)


JSON_HEADERS = [("content-type", "application/json")]


class ResponseCapture:
    """Captures what gets sent through ASGI ``send``."""

    def __init__(self):
        self.messages: list = []
        self.status: Optional[int] = None
        self.headers: Dict[str, str] = {}
        self.body = b""

    async def __call__(self, message: dict):
        self.messages.append(message)
        if message["type"] == "http.response.start":
            self.status = message["status"]
            for name, value in message.get("headers", []):
                self.headers[name.decode("latin-1").lower()] = value.decode("latin-1")
        elif message["type"] == "http.response.body":
            self.body += message.get("body", b"")


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def registry() -> MetadataRegistry:
    """Fresh registry so tests never touch ``default_registry``."""
    return MetadataRegistry()


@pytest.fixture
def container() -> Container:
    return Container(scope="app")


@pytest.fixture
def router() -> Router:
    return Router()
