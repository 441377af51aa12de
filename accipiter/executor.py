"""
Dispatch executor - the per-route terminal handler.

Runs once per request, after the middleware chain:

    scope on ctx -> resolve controller -> extract args -> call -> normalize
"""

from __future__ import annotations

import dataclasses
import inspect
import logging
from typing import Any, Optional, Tuple

from .context import RequestContext
from .extractors import Extractor
from .faults import InvalidBodyError
from .request import Request
from .response import Response

logger = logging.getLogger("accipiter.executor")

_TEXT_TYPES = (str, int, float, bool, bytes)


def to_response(result: Any) -> Optional[Response]:
    """
    Normalize a handler return value.

    - ``None`` stays ``None`` (nothing produced here)
    - ``Response`` passes through
    - primitives become ``text/plain``
    - everything else is serialized as JSON
    """
    if result is None:
        return None
    if isinstance(result, Response):
        return result
    if isinstance(result, bytes):
        return Response(result, media_type="text/plain; charset=utf-8")
    if isinstance(result, bool):
        return Response.text("true" if result else "false")
    if isinstance(result, _TEXT_TYPES):
        return Response.text(str(result))
    if dataclasses.is_dataclass(result) and not isinstance(result, type):
        return Response.json(dataclasses.asdict(result))
    return Response.json(result)


class DispatchExecutor:
    """
    Terminal handler for one compiled route.

    Holds only what was decided at compile time: the controller class,
    the handler name and the extractor tuple.

    Args:
        controller: Controller class, resolved per request from the scope
        handler_name: Method to call on the resolved instance
        extractors: Argument extractors in index order
    """

    __slots__ = ("controller", "handler_name", "extractors")

    def __init__(self, controller: type, handler_name: str, extractors: Tuple[Extractor, ...] = ()):
        self.controller = controller
        self.handler_name = handler_name
        self.extractors = extractors

    async def __call__(self, request: Request, ctx: RequestContext) -> Optional[Response]:
        scope = ctx.scope
        if scope is None:
            raise RuntimeError(
                f"No request scope on context for {self.controller.__name__}.{self.handler_name}; "
                "is RequestScopeMiddleware installed?"
            )

        instance = await scope.resolve_async(self.controller)

        args = []
        try:
            for extract in self.extractors:
                value = extract(ctx)
                if inspect.isawaitable(value):
                    value = await value
                args.append(value)
        except InvalidBodyError as exc:
            logger.debug("Rejected body for %s %s: %s", request.method, request.path, exc.metadata)
            return Response.json({"error": exc.message}, status=400)

        result = getattr(instance, self.handler_name)(*args)
        if inspect.isawaitable(result):
            result = await result

        return to_response(result)

    def __repr__(self) -> str:
        return f"<DispatchExecutor {self.controller.__name__}.{self.handler_name}>"
