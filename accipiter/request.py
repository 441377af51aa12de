"""
Request - ASGI request wrapper.

Provides:
- Typed access to the ASGI scope (method, path, query, headers)
- Idempotent body reading with caching
- JSON parsing that raises ``InvalidBodyError`` on malformed payloads
- Path parameters populated by the router on match
"""

from __future__ import annotations

import json as stdlib_json
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from ._datastructures import Headers, MultiDict, ParsedContentType
from .faults import InvalidBodyError


class Request:
    """
    Request object for one ASGI HTTP call.

    Args:
        scope: ASGI scope dict
        receive: ASGI receive callable
        path_params: Values captured from ``:name`` path segments
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Optional[Callable[[], Awaitable[dict]]] = None,
        *,
        path_params: Optional[Dict[str, str]] = None,
    ):
        self.scope = scope
        self._receive = receive
        self.path_params: Dict[str, str] = path_params or {}

        self._body: Optional[bytes] = None
        self._json: Any = None
        self._json_parsed = False
        self._query_params: Optional[MultiDict] = None
        self._headers: Optional[Headers] = None

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("latin-1")

    @property
    def query_params(self) -> MultiDict:
        """Parsed query string, repeated keys preserved."""
        if self._query_params is None:
            self._query_params = MultiDict(parse_qsl(self.query_string, keep_blank_values=True))
        return self._query_params

    def query_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.query_params.get(name, default)

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", ())))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name, default)

    def content_type(self) -> Optional[str]:
        return self.headers.get("content-type")

    @property
    def client_ip(self) -> str:
        """First ``X-Forwarded-For`` hop, then ``X-Real-IP``, then the peer address."""
        forwarded = self.header("x-forwarded-for")
        if forwarded and forwarded.split(",")[0].strip():
            return forwarded.split(",")[0].strip()
        real_ip = self.header("x-real-ip")
        if real_ip and real_ip.strip():
            return real_ip.strip()
        client = self.scope.get("client")
        if client:
            return str(client[0])
        return "unknown"

    @property
    def user_agent(self) -> str:
        return self.header("user-agent") or "unknown"

    def is_json(self) -> bool:
        """True when the declared Content-Type is JSON."""
        parsed = ParsedContentType.parse(self.content_type())
        return parsed is not None and parsed.is_json

    # ========================================================================
    # Body
    # ========================================================================

    async def body(self) -> bytes:
        """Read the full request body (idempotent)."""
        if self._body is not None:
            return self._body

        chunks = []
        if self._receive is not None:
            while True:
                message = await self._receive()
                if message["type"] == "http.disconnect":
                    break
                chunks.append(message.get("body", b""))
                if not message.get("more_body", False):
                    break

        self._body = b"".join(chunks)
        return self._body

    async def text(self) -> str:
        parsed = ParsedContentType.parse(self.content_type())
        encoding = parsed.charset if parsed else "utf-8"
        return (await self.body()).decode(encoding)

    async def json(self) -> Any:
        """
        Parse the body as JSON.

        Raises:
            InvalidBodyError: If the payload is not valid UTF-8 JSON
        """
        if self._json_parsed:
            return self._json

        body_bytes = await self.body()
        try:
            self._json = stdlib_json.loads(body_bytes.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise InvalidBodyError(detail=f"Invalid UTF-8 in JSON payload: {e}")
        except stdlib_json.JSONDecodeError as e:
            raise InvalidBodyError(detail=f"Invalid JSON: {e}")

        self._json_parsed = True
        return self._json

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
