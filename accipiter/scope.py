"""
Request-scope factory.

A router-level step that gives every request its own child container
and tears it down once the response has been produced.
"""

from __future__ import annotations

import logging
from typing import Optional

from .context import RequestContext, reset_current_context, set_current_context
from .di import Container
from .middleware import Handler
from .request import Request
from .response import Response

logger = logging.getLogger("accipiter.scope")


class RequestScopeMiddleware:
    """
    Creates a request scope, places it on ``ctx.scope`` and makes ``ctx``
    the current context for the duration of the request.

    The scope is owned by the request: it is never stored anywhere else,
    and ``shutdown()`` runs in ``finally`` whether the chain returned or
    raised.

    Args:
        container: Root container the scopes are derived from
    """

    __slots__ = ("container",)

    def __init__(self, container: Container):
        self.container = container

    async def __call__(self, request: Request, ctx: RequestContext, next: Handler) -> Optional[Response]:
        scope = self.container.create_request_scope()
        scope.register_instance(RequestContext, ctx)
        scope.register_instance(Request, request)
        ctx.scope = scope
        token = set_current_context(ctx)
        try:
            return await next(request, ctx)
        finally:
            await scope.shutdown()
            reset_current_context(token)
            logger.debug("Closed request scope for %s %s", request.method, request.path)

    def __repr__(self) -> str:
        return f"RequestScopeMiddleware({self.container!r})"
