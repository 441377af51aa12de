"""
Security middleware - cross-origin resource sharing and response
hardening headers.

Provides:
- CORSMiddleware:            Fetch-standard CORS with preflight handling
- SecurityHeadersMiddleware: Helmet-style catch-all security headers

Both follow the router step signature:
    async def __call__(self, request, ctx, next) -> Response

They are meant to run as router steps (``App.use``) so preflight
requests and error responses are covered too.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from typing import TYPE_CHECKING, Dict, List, Optional, Pattern, Set, Union

from ..middleware import Handler
from ..request import Request
from ..response import Response

if TYPE_CHECKING:
    from ..context import RequestContext

logger = logging.getLogger("accipiter.security")


def _materialize(response: Optional[Response], ctx: "RequestContext") -> Response:
    """Turn "no value" into the response the ASGI layer would send."""
    if response is not None:
        return response
    if ctx.response is not None:
        return ctx.response
    return Response.empty(204)


# ============================================================================
# CORS
# ============================================================================

class _OriginMatcher:
    """Exact, glob (``*.example.com``) and regex origin matching with an LRU cache."""

    __slots__ = ("_allow_all", "_exact", "_regex_patterns", "_cache", "_cache_limit")

    def __init__(self, origins: List[Union[str, Pattern]], cache_size: int = 512):
        self._allow_all = False
        self._exact: Set[str] = set()
        self._regex_patterns: List[Pattern] = []
        self._cache: "OrderedDict[str, bool]" = OrderedDict()
        self._cache_limit = cache_size

        for origin in origins:
            if isinstance(origin, str):
                if origin == "*":
                    self._allow_all = True
                elif "*" in origin:
                    # *.example.com -> ^[^.]+\.example\.com$
                    escaped = re.escape(origin).replace(r"\*", "[^.]+")
                    self._regex_patterns.append(re.compile(f"^{escaped}$", re.IGNORECASE))
                else:
                    self._exact.add(origin.lower())
            else:
                self._regex_patterns.append(origin)

    @property
    def is_wildcard(self) -> bool:
        return self._allow_all

    def matches(self, origin: str) -> bool:
        if self._allow_all:
            return True

        origin_lower = origin.lower()
        cached = self._cache.get(origin_lower)
        if cached is not None:
            self._cache.move_to_end(origin_lower)
            return cached

        result = origin_lower in self._exact or any(p.match(origin_lower) for p in self._regex_patterns)

        self._cache[origin_lower] = result
        if len(self._cache) > self._cache_limit:
            self._cache.popitem(last=False)
        return result


class CORSMiddleware:
    """
    CORS middleware.

    Preflight requests (``OPTIONS`` carrying
    ``Access-Control-Request-Method``) are answered here with 204 and never
    reach routing. Other requests run normally and get the CORS headers
    added on the way out. Disallowed origins get no ``Access-Control-*``
    headers, which makes the browser block the response.

    Args:
        allow_origins: Allowed origins (strings, globs, or compiled regex)
        allow_methods: Methods for Access-Control-Allow-Methods
        allow_headers: Headers for Access-Control-Allow-Headers
        expose_headers: Headers for Access-Control-Expose-Headers
        allow_credentials: Allow credentials (cookies, Authorization)
        max_age: Preflight cache duration (seconds)

    Example:
        app.use(CORSMiddleware(allow_origins=["https://*.example.com"], allow_credentials=True))
    """

    def __init__(
        self,
        allow_origins: Optional[List[Union[str, Pattern]]] = None,
        allow_methods: Optional[List[str]] = None,
        allow_headers: Optional[List[str]] = None,
        expose_headers: Optional[List[str]] = None,
        allow_credentials: bool = False,
        max_age: int = 600,
    ):
        self._matcher = _OriginMatcher(list(allow_origins or ["*"]))
        self._allow_methods = [m.upper() for m in (allow_methods or ["GET", "POST", "PUT", "DELETE", "OPTIONS"])]
        self._allow_headers = allow_headers or ["Content-Type", "Authorization"]
        self._expose_headers = expose_headers or []
        self._allow_credentials = allow_credentials
        self._max_age = max_age

        self._methods_str = ", ".join(self._allow_methods)
        self._headers_str = ", ".join(self._allow_headers)
        self._expose_str = ", ".join(self._expose_headers)

    async def __call__(self, request: Request, ctx: "RequestContext", next: Handler) -> Response:
        origin = request.header("origin")

        if not origin:
            response = _materialize(await next(request, ctx), ctx)
            self._add_vary(response.headers, "Origin")
            return response

        allowed = self._matcher.matches(origin)
        if not allowed:
            logger.debug("CORS origin rejected: %s", origin)

        if request.method == "OPTIONS" and request.header("access-control-request-method"):
            return self._preflight(origin, allowed)

        response = _materialize(await next(request, ctx), ctx)
        if allowed:
            self._set_origin_header(response.headers, origin)
            if self._allow_credentials:
                response.headers["access-control-allow-credentials"] = "true"
            if self._expose_str:
                response.headers["access-control-expose-headers"] = self._expose_str
        self._add_vary(response.headers, "Origin")
        return response

    def _preflight(self, origin: str, allowed: bool) -> Response:
        headers: Dict[str, str] = {}
        if allowed:
            self._set_origin_header(headers, origin)
            headers["access-control-allow-methods"] = self._methods_str
            headers["access-control-allow-headers"] = self._headers_str
            headers["access-control-max-age"] = str(self._max_age)
            if self._allow_credentials:
                headers["access-control-allow-credentials"] = "true"

        headers["vary"] = "Origin, Access-Control-Request-Method, Access-Control-Request-Headers"
        return Response(b"", status=204, headers=headers)

    def _set_origin_header(self, headers: Dict[str, str], origin: str) -> None:
        # A wildcard is not allowed together with credentials
        if self._allow_credentials or not self._matcher.is_wildcard:
            headers["access-control-allow-origin"] = origin
        else:
            headers["access-control-allow-origin"] = "*"

    @staticmethod
    def _add_vary(headers: Dict[str, str], value: str) -> None:
        existing = headers.get("vary", "")
        if value.lower() not in existing.lower():
            headers["vary"] = f"{existing}, {value}" if existing else value


# ============================================================================
# Security headers
# ============================================================================

class SecurityHeadersMiddleware:
    """
    Applies default security headers to every response.

    Headers already set by the handler are kept.

    Args:
        frame_options: "DENY" or "SAMEORIGIN"
        referrer_policy: Referrer-Policy value
        hsts_max_age: Strict-Transport-Security max-age; 0 disables the header
        permissions_policy: Permissions-Policy directives
        cross_origin_opener_policy: COOP value
        cross_origin_resource_policy: CORP value
        remove_server_header: Drop the Server header
    """

    def __init__(
        self,
        frame_options: str = "SAMEORIGIN",
        referrer_policy: str = "no-referrer",
        hsts_max_age: int = 15552000,
        permissions_policy: Optional[Dict[str, str]] = None,
        cross_origin_opener_policy: str = "same-origin",
        cross_origin_resource_policy: str = "same-origin",
        remove_server_header: bool = True,
    ):
        self._headers: Dict[str, str] = {
            "x-content-type-options": "nosniff",
            "x-frame-options": frame_options,
            # Legacy XSS auditor is off in modern browsers
            "x-xss-protection": "0",
            "x-dns-prefetch-control": "off",
            "x-download-options": "noopen",
            "x-permitted-cross-domain-policies": "none",
            "referrer-policy": referrer_policy,
            "cross-origin-opener-policy": cross_origin_opener_policy,
            "cross-origin-resource-policy": cross_origin_resource_policy,
            "origin-agent-cluster": "?1",
        }
        if hsts_max_age > 0:
            self._headers["strict-transport-security"] = f"max-age={hsts_max_age}; includeSubDomains"
        if permissions_policy:
            self._headers["permissions-policy"] = ", ".join(
                f"{key}={value}" for key, value in permissions_policy.items()
            )
        self._remove_server = remove_server_header

    @property
    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    async def __call__(self, request: Request, ctx: "RequestContext", next: Handler) -> Response:
        response = _materialize(await next(request, ctx), ctx)

        for name, value in self._headers.items():
            response.headers.setdefault(name, value)

        if self._remove_server:
            response.headers.pop("server", None)

        return response
