"""
Declaration API - decorators for controllers and handler methods.

Method decorators only record what they were asked to declare on the
function object. The ``@controller`` class decorator replays those
records, in the order the decorators were applied, onto a
``MetadataRegistry`` through its ``attach_*`` methods. Nothing is
registered for a class until ``@controller`` runs on it.

Example:
    from accipiter import controller, GET, POST, ctx, body, param

    @controller("/users", middleware=[auth_required])
    class UsersController:
        def __init__(self, repo: UserRepo):
            self.repo = repo

        @GET("/:id")
        @param(0, "id")
        async def show(self, user_id):
            return await self.repo.get(user_id)

        @POST("/")
        @middleware(audit_log)
        @ctx(0)
        @body(1)
        async def create(self, context, payload):
            ...
"""

from typing import Any, Callable, List, Optional, TypeVar

from .metadata import MetadataRegistry, ParamKind, default_registry

F = TypeVar("F", bound=Callable[..., Any])
C = TypeVar("C", bound=type)

_PENDING_ATTR = "__accipiter_pending__"


def _record(func: Callable[..., Any], entry: tuple) -> None:
    """Queue a declaration on ``func`` for replay by ``@controller``."""
    pending = func.__dict__.get(_PENDING_ATTR)
    if pending is None:
        pending = []
        setattr(func, _PENDING_ATTR, pending)
    pending.append(entry)


def pending_declarations(func: Any) -> List[tuple]:
    """Declarations recorded on ``func`` (empty for undecorated members)."""
    return list(getattr(func, _PENDING_ATTR, ()))


# ============================================================================
# Controller
# ============================================================================

def controller(
    base_path: str = "",
    middleware: Optional[List[Any]] = None,
    *,
    registry: Optional[MetadataRegistry] = None,
) -> Callable[[C], C]:
    """
    Class decorator marking a class as a route group.

    Args:
        base_path: Path prefix for every route on the class
        middleware: Controller-level middleware
        registry: Target registry (defaults to ``default_registry``)
    """
    target = registry if registry is not None else default_registry

    def decorator(cls: C) -> C:
        # Reapplying during reload must not duplicate routes
        target.forget(cls)
        target.attach_controller(cls, base_path, middleware or ())

        members = {}
        for klass in reversed(cls.__mro__):
            for name, member in vars(klass).items():
                if getattr(member, _PENDING_ATTR, None):
                    members[name] = member

        for name, member in members.items():
            for entry in pending_declarations(member):
                kind = entry[0]
                if kind == "route":
                    _, verb, path, route_middleware = entry
                    target.attach_route(cls, name, verb, path, route_middleware)
                elif kind == "param":
                    _, index, param_kind, param_name = entry
                    target.attach_parameter(cls, name, index, param_kind, param_name)
                elif kind == "middleware":
                    target.attach_method_middleware(cls, name, entry[1])

        return cls

    return decorator


# ============================================================================
# Routes
# ============================================================================

class RouteDecorator:
    """
    Base route decorator.

    A method may carry several route decorators; each becomes its own
    route.
    """

    method: str = ""

    def __init__(self, path: str = "/", middleware: Optional[List[Any]] = None):
        self.path = path
        self.middleware = tuple(middleware or ())

    def __call__(self, func: F) -> F:
        _record(func, ("route", self.method, self.path, self.middleware))
        return func


class GET(RouteDecorator):
    """GET request decorator."""
    method = "GET"


class POST(RouteDecorator):
    """POST request decorator."""
    method = "POST"


class PUT(RouteDecorator):
    """PUT request decorator."""
    method = "PUT"


class PATCH(RouteDecorator):
    """PATCH request decorator."""
    method = "PATCH"


class DELETE(RouteDecorator):
    """DELETE request decorator."""
    method = "DELETE"


class HEAD(RouteDecorator):
    """HEAD request decorator."""
    method = "HEAD"


class OPTIONS(RouteDecorator):
    """OPTIONS request decorator."""
    method = "OPTIONS"


def route(
    method: str,
    path: str = "/",
    middleware: Optional[List[Any]] = None,
) -> Callable[[F], F]:
    """
    Generic route decorator.

    Example:
        @route("get", "/custom")
        async def handler(self):
            ...
    """
    def decorator(func: F) -> F:
        _record(func, ("route", method.upper(), path, tuple(middleware or ())))
        return func

    return decorator


# ============================================================================
# Parameters
# ============================================================================

def _param_decorator(kind: ParamKind, index: int, name: Optional[str] = None) -> Callable[[F], F]:
    if index < 0:
        raise ValueError(f"Parameter index must be >= 0, got {index}")

    def decorator(func: F) -> F:
        _record(func, ("param", index, kind, name))
        return func

    return decorator


def ctx(index: int) -> Callable[[F], F]:
    """Bind argument ``index`` to the request context."""
    return _param_decorator(ParamKind.CONTEXT, index)


def body(index: int) -> Callable[[F], F]:
    """Bind argument ``index`` to the parsed JSON body."""
    return _param_decorator(ParamKind.BODY, index)


def param(index: int, name: Optional[str] = None) -> Callable[[F], F]:
    """Bind argument ``index`` to a path parameter (or all of them)."""
    return _param_decorator(ParamKind.PATH, index, name)


def query(index: int, name: Optional[str] = None) -> Callable[[F], F]:
    """Bind argument ``index`` to a query value (or the whole query)."""
    return _param_decorator(ParamKind.QUERY, index, name)


def header(index: int, name: Optional[str] = None) -> Callable[[F], F]:
    """Bind argument ``index`` to a request header (or all headers)."""
    return _param_decorator(ParamKind.HEADER, index, name)


# ============================================================================
# Method middleware
# ============================================================================

def middleware(*handlers: Any) -> Callable[[F], F]:
    """
    Attach middleware to one handler method.

    Stacked ``@middleware`` decorators run top to bottom.
    """
    def decorator(func: F) -> F:
        _record(func, ("middleware", tuple(handlers)))
        return func

    return decorator
