"""
Route Compiler - turns controller declarations into a dispatch table.

Runs once, before the server accepts traffic:

1. Install the request-scope step on the router (once per compiler)
2. For every controller: bind it into the container if needed
3. For every route: build the full path and the middleware chain,
   compile the extractors and the executor, register with the router

Everything decided here is frozen; nothing reads the registry at
request time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from .di import Container
from .executor import DispatchExecutor
from .extractors import Extractor, compile_extractors
from .faults import UnknownHandlerError
from .metadata import ControllerDescriptor, MetadataRegistry, RouteDescriptor
from .paths import build_full_path
from .router import Router
from .scope import RequestScopeMiddleware

logger = logging.getLogger("accipiter.compiler")


@dataclass(frozen=True)
class CompiledRoute:
    """
    One dispatch table entry.

    ``middleware`` is in execution order: global, controller,
    method-annotation, then route-specific.
    """

    controller: type
    verb: str
    full_path: str
    handler_name: str
    middleware: Tuple[Any, ...]
    extractors: Tuple[Extractor, ...]
    handler: DispatchExecutor

    def to_dict(self) -> Dict[str, Any]:
        return {
            "controller": f"{self.controller.__module__}:{self.controller.__qualname__}",
            "handler": self.handler_name,
            "method": self.verb,
            "path": self.full_path,
            "middleware": len(self.middleware),
            "params": len(self.extractors),
        }


@dataclass(frozen=True)
class DispatchTable:
    """Immutable list of compiled routes, in registration order."""

    routes: Tuple[CompiledRoute, ...] = ()

    def __iter__(self) -> Iterator[CompiledRoute]:
        return iter(self.routes)

    def __len__(self) -> int:
        return len(self.routes)

    def find(self, verb: str, full_path: str) -> Optional[CompiledRoute]:
        verb = verb.upper()
        for route in self.routes:
            if route.verb == verb and route.full_path == full_path:
                return route
        return None

    def for_controller(self, controller: type) -> Tuple[CompiledRoute, ...]:
        return tuple(r for r in self.routes if r.controller is controller)

    def __add__(self, other: "DispatchTable") -> "DispatchTable":
        return DispatchTable(self.routes + other.routes)


class RouteCompiler:
    """
    Compiles registered controllers onto a router.

    Args:
        registry: Where the declarations were recorded
        container: Root container; unbound controllers are bound with
            ``request`` scope
        router: Host router receiving ``(verb, path, chain, handler)``
        prefix: Path prefix for every route
        global_middleware: Middleware placed at the head of every chain
        debug: Log each compiled route at INFO

    Example:
        compiler = RouteCompiler(default_registry, container, router, prefix="/api")
        table = compiler.compile([UsersController, OrdersController])
    """

    def __init__(
        self,
        registry: MetadataRegistry,
        container: Container,
        router: Router,
        *,
        prefix: str = "",
        global_middleware: Sequence[Any] = (),
        debug: bool = False,
    ):
        self.registry = registry
        self.container = container
        self.router = router
        self.prefix = prefix
        self.global_middleware = tuple(global_middleware)
        self.debug = debug
        self._scope_installed = False

    def compile(self, controllers: Optional[Iterable[type]] = None) -> DispatchTable:
        """
        Compile ``controllers`` (all registered ones when omitted).

        Every route is compiled before any of them is bound or added to
        the router, so a failing controller leaves the container and the
        router exactly as they were.

        Raises:
            ConfigurationError: On an unknown handler or bad parameter
                indices.
        """
        if controllers is None:
            controllers = self.registry.controllers()

        declared: List[type] = []
        compiled: List[CompiledRoute] = []
        for cls in controllers:
            descriptor = self.registry.controller(cls)
            if descriptor is None:
                logger.warning(
                    "%s has no controller declaration; skipping (missing @controller?)",
                    getattr(cls, "__qualname__", cls),
                )
                continue

            declared.append(cls)
            compiled.extend(self._compile_route(descriptor, route) for route in self.registry.routes(cls))

        if not self._scope_installed:
            self.router.use(RequestScopeMiddleware(self.container), first=True)
            self._scope_installed = True

        for cls in declared:
            if not self.container.is_bound(cls):
                self.container.bind(cls, scope="request")

        for route in compiled:
            self.router.add(route.verb, route.full_path, route.middleware, route.handler)
            if self.debug:
                logger.info(
                    "Mapped %s %s -> %s.%s",
                    route.verb, route.full_path, route.controller.__name__, route.handler_name,
                )

        return DispatchTable(tuple(compiled))

    def _compile_route(self, descriptor: ControllerDescriptor, route: RouteDescriptor) -> CompiledRoute:
        cls = descriptor.controller
        name = route.handler_name

        if not callable(getattr(cls, name, None)):
            raise UnknownHandlerError(cls, name)

        full_path = build_full_path(self.prefix, descriptor.base_path, route.path)
        chain = (
            *self.global_middleware,
            *descriptor.middleware,
            *self.registry.method_middleware(cls, name),
            *route.middleware,
        )
        extractors = compile_extractors(
            self.registry.parameters(cls, name),
            handler=f"{cls.__qualname__}.{name}",
        )

        return CompiledRoute(
            controller=cls,
            verb=route.verb,
            full_path=full_path,
            handler_name=name,
            middleware=chain,
            extractors=extractors,
            handler=DispatchExecutor(cls, name, extractors),
        )
