"""
Router - verb + path matching with ``:name`` segments.

Static paths are matched with an O(1) dict lookup per verb; paths with
parameters fall back to compiled regexes tried in registration order.

Execution order for a matched request:

    router steps (``use``) -> route chain -> handler

Unmatched requests run the router steps around a terminal that raises
``RouteNotFound``, so router-level error handling still sees them.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .faults import RouteNotFound
from .middleware import Handler, Middleware, compose
from .paths import normalize
from .request import Request
from .response import Response

logger = logging.getLogger("accipiter.router")

_PARAM_SEGMENT = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")


def compile_path(path: str) -> Tuple[Optional["re.Pattern[str]"], List[str]]:
    """
    Compile a route path.

    Returns ``(None, [])`` for static paths, else the anchored regex and
    the parameter names in order.

    Example:
        compile_path("/users/:id") -> (re"^/users/(?P<id>[^/]+)$", ["id"])
    """
    names = _PARAM_SEGMENT.findall(path)
    if not names:
        return None, []

    pattern = []
    pos = 0
    for match in _PARAM_SEGMENT.finditer(path):
        pattern.append(re.escape(path[pos:match.start()]))
        pattern.append(f"(?P<{match.group(1)}>[^/]+)")
        pos = match.end()
    pattern.append(re.escape(path[pos:]))
    return re.compile("^" + "".join(pattern) + "$"), names


@dataclass
class RouterEntry:
    """One registered ``(verb, path)`` with its chain and handler."""

    verb: str
    path: str
    chain: Tuple[Middleware, ...]
    handler: Handler
    regex: Optional["re.Pattern[str]"] = None
    param_names: List[str] = field(default_factory=list)
    pipeline: Optional[Handler] = None


class Router:
    """
    Host router used by the compiler.

    Example:
        router = Router()
        router.use(ExceptionMiddleware())
        router.add("GET", "/users/:id", [auth], show_user)
        response = await router.dispatch(request, ctx)
    """

    def __init__(self) -> None:
        self._steps: List[Middleware] = []
        self._static: Dict[str, Dict[str, RouterEntry]] = {}
        self._dynamic: Dict[str, List[RouterEntry]] = {}
        self._entries: List[RouterEntry] = []
        self._not_found: Optional[Handler] = None

    # ========================================================================
    # Registration
    # ========================================================================

    def use(self, step: Middleware, *, first: bool = False, before: Optional[Middleware] = None) -> None:
        """
        Add a router-level step run for every request.

        Args:
            step: Middleware ``(request, ctx, next)``
            first: Insert ahead of the steps already installed
            before: Insert just ahead of this installed step
        """
        if first:
            self._steps.insert(0, step)
        elif before is not None and before in self._steps:
            self._steps.insert(self._steps.index(before), step)
        else:
            self._steps.append(step)
        self._invalidate()

    def add(self, verb: str, path: str, chain: Sequence[Middleware], handler: Handler) -> RouterEntry:
        """Register ``handler`` behind ``chain`` for ``verb path``."""
        verb = verb.upper()
        path = normalize(path)
        regex, names = compile_path(path)
        entry = RouterEntry(
            verb=verb,
            path=path,
            chain=tuple(chain),
            handler=handler,
            regex=regex,
            param_names=names,
        )

        if regex is None:
            static = self._static.setdefault(verb, {})
            if path in static:
                logger.warning("Route %s %s registered twice; first registration wins", verb, path)
                return static[path]
            static[path] = entry
        else:
            self._dynamic.setdefault(verb, []).append(entry)

        self._entries.append(entry)
        return entry

    @property
    def steps(self) -> Tuple[Middleware, ...]:
        return tuple(self._steps)

    @property
    def routes(self) -> Tuple[RouterEntry, ...]:
        return tuple(self._entries)

    # ========================================================================
    # Matching
    # ========================================================================

    def match(self, verb: str, path: str) -> Optional[Tuple[RouterEntry, Dict[str, str]]]:
        """Find the entry for ``verb path`` and the captured parameters."""
        verb = verb.upper()
        path = normalize(path)

        entry = self._static.get(verb, {}).get(path)
        if entry is not None:
            return entry, {}

        for entry in self._dynamic.get(verb, ()):
            m = entry.regex.match(path)
            if m is not None:
                return entry, m.groupdict()
        return None

    async def dispatch(self, request: Request, ctx: Any) -> Optional[Response]:
        """Run the router steps and the matched route for ``request``."""
        found = self.match(request.method, request.path)
        if found is None:
            return await self._not_found_pipeline()(request, ctx)

        entry, params = found
        request.path_params = params
        if entry.pipeline is None:
            entry.pipeline = compose([*self._steps, *entry.chain], entry.handler)
        return await entry.pipeline(request, ctx)

    def _not_found_pipeline(self) -> Handler:
        if self._not_found is None:
            async def _raise_not_found(request: Request, ctx: Any) -> Optional[Response]:
                raise RouteNotFound(request.method, request.path)

            self._not_found = compose(self._steps, _raise_not_found)
        return self._not_found

    def _invalidate(self) -> None:
        for entry in self._entries:
            entry.pipeline = None
        self._not_found = None

    def __repr__(self) -> str:
        return f"<Router routes={len(self._entries)} steps={len(self._steps)}>"
