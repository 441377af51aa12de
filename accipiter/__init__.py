"""
Accipiter - declarative controller routing for async Python

- Declaration: decorators record routes, parameter bindings and
  middleware on controller classes
- Compilation: one startup pass turns declarations into a frozen
  dispatch table of pre-built handler closures
- Request scopes: every request resolves its controller in its own
  child container
"""

__version__ = "0.1.0"

from .app import App
from .compiler import CompiledRoute, DispatchTable, RouteCompiler
from .config import ConfigLoader, RoutingConfig, SecurityConfig, ServerConfig
from .context import (
    RequestContext,
    current_client_ip,
    current_context,
    current_user,
    current_user_agent,
)
from .decorators import (
    DELETE,
    GET,
    HEAD,
    OPTIONS,
    PATCH,
    POST,
    PUT,
    body,
    controller,
    ctx,
    header,
    middleware,
    param,
    query,
    route,
)
from .di import Container
from .executor import DispatchExecutor, to_response
from .extractors import compile_extractor, compile_extractors
from .faults import (
    ConfigurationError,
    Fault,
    FaultDomain,
    InvalidBodyError,
    ParameterIndexError,
    ResolutionError,
    RouteNotFound,
    UnknownHandlerError,
)
from .metadata import (
    ControllerDescriptor,
    MetadataRegistry,
    ParamKind,
    ParameterDescriptor,
    RouteDescriptor,
    default_registry,
)
from .middleware import ExceptionMiddleware, LoggingMiddleware
from .middleware_ext import CORSMiddleware, SecurityHeadersMiddleware
from .paths import build_full_path, normalize
from .request import Request
from .response import Response
from .router import Router
from .scope import RequestScopeMiddleware

__all__ = [
    "__version__",
    # App
    "App",
    "ConfigLoader",
    "RoutingConfig",
    "ServerConfig",
    "SecurityConfig",
    # Declaration
    "controller",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "route",
    "ctx",
    "body",
    "param",
    "query",
    "header",
    "middleware",
    # Metadata
    "MetadataRegistry",
    "default_registry",
    "ControllerDescriptor",
    "RouteDescriptor",
    "ParameterDescriptor",
    "ParamKind",
    # Compilation
    "RouteCompiler",
    "CompiledRoute",
    "DispatchTable",
    "compile_extractors",
    "compile_extractor",
    "DispatchExecutor",
    "to_response",
    "RequestScopeMiddleware",
    "build_full_path",
    "normalize",
    # Runtime
    "Container",
    "Router",
    "Request",
    "Response",
    "RequestContext",
    "current_context",
    "current_client_ip",
    "current_user_agent",
    "current_user",
    "ExceptionMiddleware",
    "LoggingMiddleware",
    "CORSMiddleware",
    "SecurityHeadersMiddleware",
    # Faults
    "Fault",
    "FaultDomain",
    "ConfigurationError",
    "UnknownHandlerError",
    "ParameterIndexError",
    "InvalidBodyError",
    "ResolutionError",
    "RouteNotFound",
]
