"""
Middleware system - composable, async-first onion middleware.

A middleware is any async callable ``(request, ctx, next)``. It may
return ``await next(request, ctx)``, or short-circuit by returning a
response without calling ``next``.
"""

from __future__ import annotations

import logging
import time
import traceback
from typing import TYPE_CHECKING, Awaitable, Callable, Optional, Sequence

from .faults import Fault
from .request import Request
from .response import Response

if TYPE_CHECKING:
    from .context import RequestContext

Handler = Callable[[Request, "RequestContext"], Awaitable[Optional[Response]]]
Middleware = Callable[[Request, "RequestContext", Handler], Awaitable[Optional[Response]]]


def compose(middleware: Sequence[Middleware], final_handler: Handler) -> Handler:
    """
    Build the chain wrapping ``final_handler``.

    The first middleware in ``middleware`` is the outermost.
    """
    handler = final_handler
    for mw in reversed(middleware):
        handler = _wrap_middleware(mw, handler)
    return handler


def _wrap_middleware(middleware: Middleware, next_handler: Handler) -> Handler:
    async def wrapped(request: Request, ctx: "RequestContext") -> Optional[Response]:
        return await middleware(request, ctx, next_handler)

    return wrapped


def _status_of(response: Optional[Response], ctx: "RequestContext") -> int:
    if response is not None:
        return response.status
    if ctx.response is not None:
        return ctx.response.status
    return 204


# Default middleware implementations

class ExceptionMiddleware:
    """
    Catches exceptions and converts them to JSON error responses.

    Faults keep their own status and code. Messages of non-public faults
    are hidden unless ``debug`` is set. Anything that is not a fault is a
    500.
    """

    def __init__(self, debug: bool = False):
        self.debug = debug
        self.logger = logging.getLogger("accipiter.exceptions")

    async def __call__(self, request: Request, ctx: "RequestContext", next: Handler) -> Optional[Response]:
        try:
            return await next(request, ctx)

        except Fault as e:
            status = e.status if e.public else 500
            message = e.message if (e.public or self.debug) else "Internal server error"

            if status >= 500:
                self.logger.error("Fault %s: %s", e.code, e.message)
            else:
                self.logger.warning("Fault %s: %s", e.code, e.message)

            return Response.json(
                {
                    "error": {
                        "code": e.code,
                        "message": message,
                    }
                },
                status=status,
            )

        except Exception as e:
            self.logger.error("Unhandled exception: %s", e, exc_info=True)

            error_data = {"error": {"code": "INTERNAL_ERROR", "message": "Internal server error"}}
            if self.debug:
                error_data["detail"] = str(e)
                error_data["traceback"] = traceback.format_exc()

            return Response.json(error_data, status=500)


class LoggingMiddleware:
    """Logs one access line per request with timing."""

    def __init__(self, slow_threshold_ms: float = 1000.0):
        self.logger = logging.getLogger("accipiter.requests")
        self.slow_threshold_ms = slow_threshold_ms

    async def __call__(self, request: Request, ctx: "RequestContext", next: Handler) -> Optional[Response]:
        if not self.logger.isEnabledFor(logging.INFO):
            return await next(request, ctx)

        start = time.monotonic()
        response = await next(request, ctx)
        elapsed_ms = (time.monotonic() - start) * 1000.0

        self.logger.info(
            "%s %s - %d (%.1fms)",
            request.method, request.path, _status_of(response, ctx), elapsed_ms,
        )

        if elapsed_ms > self.slow_threshold_ms:
            self.logger.warning(
                "Slow request: %s %s took %.1fms",
                request.method, request.path, elapsed_ms,
            )

        return response
