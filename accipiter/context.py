"""
Request context - the per-request exchange object.

One ``RequestContext`` is built per request and passed explicitly down
the middleware chain to the handler. Framework values live in named
fields; anything middleware wants to hand downstream goes in the
``state`` side-table.

Code that is not handed the context (repositories, loggers, audit
helpers) can read the active one through ``current_context()``. It is
held in a ``ContextVar`` set by ``RequestScopeMiddleware``, so concurrent
requests each see their own.
"""

from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from .response import Response

if TYPE_CHECKING:
    from .di import Container
    from .request import Request


@dataclass
class RequestContext:
    """
    Request context provided to middleware and handlers.

    Attributes:
        request: The HTTP request
        scope: Request-scoped DI container (set by ``RequestScopeMiddleware``)
        state: Side-table for middleware-contributed values
        response: Response stored by a handler that returns nothing
    """

    request: "Request"
    scope: Optional["Container"] = None
    state: Dict[str, Any] = field(default_factory=dict)
    response: Optional[Response] = None

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def path_params(self) -> Dict[str, str]:
        return self.request.path_params

    @property
    def client_ip(self) -> str:
        return self.request.client_ip

    @property
    def user_agent(self) -> str:
        return self.request.user_agent

    @property
    def user(self) -> Any:
        """Authenticated principal, once an auth middleware has set one."""
        return self.state.get("user")

    @user.setter
    def user(self, value: Any) -> None:
        self.state["user"] = value

    def set(self, key: str, value: Any) -> None:
        """Store a middleware-contributed value."""
        self.state[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)

    # ========================================================================
    # Response helpers
    # ========================================================================

    def json(self, obj: Any, status: int = 200, **kwargs) -> Response:
        return Response.json(obj, status=status, **kwargs)

    def text(self, content: str, status: int = 200, **kwargs) -> Response:
        return Response.text(content, status=status, **kwargs)


# ============================================================================
# Ambient access
# ============================================================================

_current_context: ContextVar[Optional[RequestContext]] = ContextVar(
    "accipiter_request_context", default=None
)


def current_context() -> Optional[RequestContext]:
    """The context of the request being handled, or None outside one."""
    return _current_context.get()


def set_current_context(ctx: RequestContext) -> Token:
    return _current_context.set(ctx)


def reset_current_context(token: Token) -> None:
    _current_context.reset(token)


def current_client_ip() -> str:
    ctx = _current_context.get()
    return ctx.client_ip if ctx is not None else "unknown"


def current_user_agent() -> str:
    ctx = _current_context.get()
    return ctx.user_agent if ctx is not None else "unknown"


def current_user() -> Any:
    ctx = _current_context.get()
    return ctx.user if ctx is not None else None
