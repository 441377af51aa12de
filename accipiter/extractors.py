"""
Extractor compiler - turns parameter descriptors into argument closures.

Each handler gets one tuple of extractors built at startup. At request
time the executor calls them in order with the ``RequestContext``; no
descriptor is looked at again.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Iterable, Tuple, Union

from .context import RequestContext
from .faults import ParameterIndexError
from .metadata import ParameterDescriptor, ParamKind

Extractor = Callable[[RequestContext], Union[Any, Awaitable[Any]]]


def compile_extractors(
    descriptors: Iterable[ParameterDescriptor],
    handler: str = "<handler>",
) -> Tuple[Extractor, ...]:
    """
    Compile the parameter descriptors of one handler.

    Args:
        descriptors: Bindings recorded for the handler, in any order
        handler: Qualified handler name, used in error messages

    Returns:
        Extractors in argument order

    Raises:
        ParameterIndexError: If indices are not exactly ``0..N-1``
    """
    ordered = sorted(descriptors, key=lambda d: d.index)
    indices = [d.index for d in ordered]

    if len(set(indices)) != len(indices):
        raise ParameterIndexError(handler, indices, "duplicate index")
    if indices != list(range(len(indices))):
        raise ParameterIndexError(handler, indices, "indices must be contiguous from 0")

    return tuple(compile_extractor(d) for d in ordered)


def compile_extractor(descriptor: ParameterDescriptor) -> Extractor:
    """Build the closure for a single parameter binding."""
    kind = descriptor.kind
    name = descriptor.name

    if kind is ParamKind.CONTEXT:
        return _extract_context
    if kind is ParamKind.BODY:
        return _extract_body
    if kind is ParamKind.PATH:
        return _named(lambda ctx: ctx.request.path_params, name)
    if kind is ParamKind.QUERY:
        if name is None:
            return lambda ctx: ctx.request.query_params.to_dict()
        return lambda ctx: ctx.request.query_params.get(name)
    if kind is ParamKind.HEADER:
        if name is None:
            return lambda ctx: ctx.request.headers.to_dict()
        return lambda ctx: ctx.request.headers.get(name)

    raise ValueError(f"Unknown parameter kind: {kind!r}")


def _named(source: Callable[[RequestContext], Dict[str, Any]], name: str | None) -> Extractor:
    if name is None:
        return lambda ctx: dict(source(ctx))
    return lambda ctx: source(ctx).get(name)


def _extract_context(ctx: RequestContext) -> RequestContext:
    return ctx


async def _extract_body(ctx: RequestContext) -> Any:
    # Bodies not declared as JSON bind to an empty mapping
    if not ctx.request.is_json():
        return {}
    return await ctx.request.json()
