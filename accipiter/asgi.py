"""
ASGI adapter - bridges the ASGI protocol to the router.

For each HTTP call the adapter builds the ``Request`` and its
``RequestContext``, runs the router, and sends whatever response the
chain produced. A chain that produced nothing falls back to the response
stored on the context, then to ``204 No Content``.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .context import RequestContext
from .request import Request
from .response import Response
from .router import Router

LifespanHook = Callable[[], Awaitable[Any]]


class ASGIAdapter:
    """
    ASGI 3 application.

    Args:
        router: Router with the compiled routes
        on_startup: Coroutines awaited on ``lifespan.startup``
        on_shutdown: Coroutines awaited on ``lifespan.shutdown``
    """

    __slots__ = ("router", "on_startup", "on_shutdown", "logger")

    def __init__(
        self,
        router: Router,
        on_startup: Sequence[LifespanHook] = (),
        on_shutdown: Sequence[LifespanHook] = (),
    ):
        self.router = router
        self.on_startup: List[LifespanHook] = list(on_startup)
        self.on_shutdown: List[LifespanHook] = list(on_shutdown)
        self.logger = logging.getLogger("accipiter.asgi")

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            self.logger.warning("Unsupported ASGI scope type: %s", scope_type)

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        request = Request(scope, receive)
        ctx = RequestContext(request=request)

        try:
            response: Optional[Response] = await self.router.dispatch(request, ctx)
        except Exception as e:
            self.logger.error("Critical error in request pipeline: %s", e, exc_info=True)
            response = Response.json({"error": "Internal server error"}, status=500)

        if response is None:
            response = ctx.response if ctx.response is not None else Response.empty(204)

        await response.send_asgi(send)

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    for hook in self.on_startup:
                        await hook()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    self.logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    for hook in self.on_shutdown:
                        await hook()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    self.logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break
