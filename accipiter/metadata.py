"""
Controller Metadata Registry

Descriptors produced by the declaration API and read by the compiler.

Descriptors are frozen: once attached they are never mutated, only
replaced (controller) or appended to (routes, parameters, middleware).
The registry is written at class-definition time and read once at
startup, so it needs no locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .paths import normalize


class ParamKind(str, Enum):
    """Where a handler argument is extracted from."""

    CONTEXT = "context"
    BODY = "body"
    PATH = "path"
    QUERY = "query"
    HEADER = "header"


HTTP_METHODS = frozenset(("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"))


@dataclass(frozen=True)
class ControllerDescriptor:
    """
    A class acting as a route group.

    Attributes:
        controller: The controller class
        base_path: Normalized base path for every route of the class
        middleware: Controller-level middleware, in execution order
    """

    controller: type
    base_path: str = "/"
    middleware: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class RouteDescriptor:
    """
    One handler method exposed as an HTTP route.

    Attributes:
        verb: Upper-case HTTP method
        path: Normalized path relative to the controller base path
        handler_name: Name of the method on the controller
        middleware: Route-specific middleware, in execution order
    """

    verb: str
    path: str
    handler_name: str
    middleware: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class ParameterDescriptor:
    """
    Binding intent for one positional handler argument.

    Attributes:
        index: Positional index (0 is the first argument after ``self``)
        kind: Extraction kind
        name: Single named value to extract; ``None`` binds the whole mapping
    """

    index: int
    kind: ParamKind
    name: Optional[str] = None


class MetadataRegistry:
    """
    Process-wide store of controller descriptors.

    Keyed by controller class, and by (class, method name) for parameter
    and method-middleware metadata.

    Example:
        registry = MetadataRegistry()
        registry.attach_controller(UsersController, "/users")
        registry.attach_route(UsersController, "show", "GET", "/:id")
        registry.attach_parameter(UsersController, "show", 0, ParamKind.PATH, "id")
    """

    def __init__(self) -> None:
        self._controllers: Dict[type, ControllerDescriptor] = {}
        self._routes: Dict[type, List[RouteDescriptor]] = {}
        self._params: Dict[Tuple[type, str], List[ParameterDescriptor]] = {}
        self._method_middleware: Dict[Tuple[type, str], List[Any]] = {}

    # ========================================================================
    # Declaration
    # ========================================================================

    def attach_controller(
        self,
        cls: type,
        base_path: str = "",
        middleware: Iterable[Any] = (),
    ) -> ControllerDescriptor:
        """Write (or overwrite) the controller descriptor for ``cls``."""
        descriptor = ControllerDescriptor(
            controller=cls,
            base_path=normalize(base_path),
            middleware=tuple(middleware),
        )
        self._controllers[cls] = descriptor
        return descriptor

    def attach_route(
        self,
        cls: type,
        method_name: str,
        verb: str,
        path: str = "/",
        middleware: Iterable[Any] = (),
    ) -> RouteDescriptor:
        """Append a route to ``cls``; re-attaching an identical route is a no-op."""
        verb = verb.upper()
        if verb not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {verb}")

        descriptor = RouteDescriptor(
            verb=verb,
            path=normalize(path),
            handler_name=method_name,
            middleware=tuple(middleware),
        )
        routes = self._routes.setdefault(cls, [])
        if descriptor not in routes:
            routes.append(descriptor)
        return descriptor

    def attach_parameter(
        self,
        cls: type,
        method_name: str,
        index: int,
        kind: ParamKind | str,
        name: Optional[str] = None,
    ) -> ParameterDescriptor:
        """
        Append a parameter binding for ``cls.method_name``.

        Identical bindings are recorded once. Conflicting bindings for the
        same index are kept and rejected by the compiler.
        """
        if index < 0:
            raise ValueError(f"Parameter index must be >= 0, got {index}")

        descriptor = ParameterDescriptor(index=index, kind=ParamKind(kind), name=name)
        params = self._params.setdefault((cls, method_name), [])
        if descriptor not in params:
            params.append(descriptor)
        return descriptor

    def attach_method_middleware(
        self,
        cls: type,
        method_name: str,
        middleware: Iterable[Any],
    ) -> None:
        """Prepend method-annotation middleware for ``cls.method_name``."""
        key = (cls, method_name)
        self._method_middleware[key] = [*middleware, *self._method_middleware.get(key, ())]

    def forget(self, cls: type) -> None:
        """Drop every descriptor registered for ``cls``."""
        self._controllers.pop(cls, None)
        self._routes.pop(cls, None)
        for key in [k for k in self._params if k[0] is cls]:
            del self._params[key]
        for key in [k for k in self._method_middleware if k[0] is cls]:
            del self._method_middleware[key]

    # ========================================================================
    # Lookup (compile time only)
    # ========================================================================

    def controller(self, cls: type) -> Optional[ControllerDescriptor]:
        return self._controllers.get(cls)

    def routes(self, cls: type) -> Tuple[RouteDescriptor, ...]:
        return tuple(self._routes.get(cls, ()))

    def parameters(self, cls: type, method_name: str) -> Tuple[ParameterDescriptor, ...]:
        return tuple(self._params.get((cls, method_name), ()))

    def method_middleware(self, cls: type, method_name: str) -> Tuple[Any, ...]:
        return tuple(self._method_middleware.get((cls, method_name), ()))

    def controllers(self) -> List[type]:
        """Registered controller classes, in registration order."""
        return list(self._controllers)

    def __contains__(self, cls: type) -> bool:
        return cls in self._controllers


default_registry = MetadataRegistry()
