"""
Response - HTTP response builder with ASGI sending.

Provides:
- bytes / str / JSON bodies with automatic media type detection
- Case-insensitive header storage (lower-cased names)
- ``send_asgi()`` for ASGI 3 ``http.response.start`` / ``http.response.body``
"""

from __future__ import annotations

import dataclasses
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

import orjson


def _json_default_serializer(o: Any) -> Any:
    """Fallback JSON encoding for types orjson does not handle natively."""
    if isinstance(o, (set, frozenset, tuple)):
        return list(o)
    if dataclasses.is_dataclass(o) and not isinstance(o, type):
        return dataclasses.asdict(o)
    if hasattr(o, "to_dict"):
        return o.to_dict()
    if hasattr(o, "isoformat"):
        return o.isoformat()
    return str(o)


def dumps(obj: Any) -> bytes:
    """Serialize ``obj`` to JSON bytes."""
    return orjson.dumps(obj, default=_json_default_serializer)


class Response:
    """
    HTTP response.

    Args:
        content: Body (bytes, str, or a dict/list serialized as JSON)
        status: HTTP status code
        headers: Extra headers
        media_type: Content-Type override
    """

    def __init__(
        self,
        content: Any = b"",
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        media_type: Optional[str] = None,
    ):
        self.status = status
        self._content = content
        self._headers: Dict[str, str] = {}
        if headers:
            for key, value in headers.items():
                self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers:
            self._headers["content-type"] = self._detect_media_type(content)

    @property
    def headers(self) -> Dict[str, str]:
        return self._headers

    @property
    def body(self) -> bytes:
        """Encoded body bytes."""
        return self._encode_body(self._content)

    def _detect_media_type(self, content: Any) -> str:
        if isinstance(content, (dict, list)):
            return "application/json; charset=utf-8"
        if isinstance(content, str):
            return "text/plain; charset=utf-8"
        return "application/octet-stream"

    def _encode_body(self, content: Any) -> bytes:
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode("utf-8")
        if isinstance(content, (dict, list)):
            return dumps(content)
        return str(content).encode("utf-8")

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Create a JSON response."""
        return cls(
            content=dumps(obj),
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        """Create a plain text response."""
        return cls(
            content=content,
            status=status,
            media_type="text/plain; charset=utf-8",
            **kwargs,
        )

    @classmethod
    def empty(cls, status: int = 204) -> "Response":
        return cls(b"", status=status, media_type="text/plain; charset=utf-8")

    # ========================================================================
    # ASGI
    # ========================================================================

    def _prepare_headers(self, body: bytes) -> List[tuple]:
        headers = dict(self._headers)
        headers.setdefault("content-length", str(len(body)))
        return [(k.encode("latin-1"), v.encode("latin-1")) for k, v in headers.items()]

    async def send_asgi(self, send: Callable[[dict], Awaitable[None]]) -> None:
        """Send this response through an ASGI ``send`` callable."""
        body = self.body
        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": self._prepare_headers(body),
        })
        await send({"type": "http.response.body", "body": body})

    def __repr__(self) -> str:
        return f"<Response status={self.status} content-type={self._headers.get('content-type')!r}>"
