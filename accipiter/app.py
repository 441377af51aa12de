"""
App - wires config, registry, container, router and compiler together.

Example:
    from accipiter import App, controller, GET, param

    @controller("/users")
    class UsersController:
        @GET("/:id")
        @param(0, "id")
        async def show(self, user_id):
            return {"id": user_id}

    app = App.from_config(paths=["accipiter.yaml"])
    app.register_controllers([UsersController])
    app.serve()
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .asgi import ASGIAdapter
from .compiler import DispatchTable, RouteCompiler
from .config import ConfigLoader, RoutingConfig, SecurityConfig, ServerConfig
from .di import Container
from .metadata import MetadataRegistry, default_registry
from .middleware import ExceptionMiddleware, LoggingMiddleware, Middleware
from .middleware_ext.security import CORSMiddleware, SecurityHeadersMiddleware
from .router import Router

logger = logging.getLogger("accipiter.app")


class App:
    """
    Application facade and ASGI entry point.

    Router steps run in this order for every request, matched or not:

        request scope -> access log -> ``use()`` steps -> error handling

    Args:
        routing: Compiler inputs (prefix, debug, global middleware)
        server: Settings used by ``serve()``
        security: Global CORS and security-header middleware
        registry: Declarations to compile (defaults to ``default_registry``)
        container: Root container (a fresh one when omitted)
        access_log: Install ``LoggingMiddleware`` as a router step
    """

    def __init__(
        self,
        routing: Optional[RoutingConfig] = None,
        server: Optional[ServerConfig] = None,
        security: Optional[SecurityConfig] = None,
        *,
        registry: Optional[MetadataRegistry] = None,
        container: Optional[Container] = None,
        access_log: bool = True,
    ):
        self.routing = routing or RoutingConfig()
        self.server_config = server or ServerConfig()
        self.security = security or SecurityConfig()
        self.registry = registry if registry is not None else default_registry
        self.container = container if container is not None else Container(scope="app")
        self.router = Router()

        if access_log:
            self.router.use(LoggingMiddleware())
        self._errors = ExceptionMiddleware(debug=self.routing.debug)
        self.router.use(self._errors)

        if self.security.cors:
            self.use(CORSMiddleware(
                allow_origins=self.security.cors_origins,
                allow_methods=self.security.cors_methods,
                allow_headers=self.security.cors_headers,
                expose_headers=self.security.cors_expose_headers,
                allow_credentials=self.security.cors_credentials,
                max_age=self.security.cors_max_age,
            ))
        if self.security.secure_headers:
            self.use(SecurityHeadersMiddleware())

        self.compiler = RouteCompiler(
            self.registry,
            self.container,
            self.router,
            prefix=self.routing.prefix,
            global_middleware=self.routing.resolve_middleware(),
            debug=self.routing.debug,
        )
        self.table = DispatchTable()
        self.asgi = ASGIAdapter(self.router, on_shutdown=[self.container.shutdown])

    @classmethod
    def from_config(
        cls,
        paths: Optional[List[str]] = None,
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> "App":
        """Build an app from config files, ``.env`` and ``ACCIPITER_*`` variables."""
        loader = ConfigLoader.load(paths=paths, env_file=env_file, overrides=overrides)
        return cls(loader.routing(), loader.server(), loader.security(), **kwargs)

    def use(self, step: Middleware) -> None:
        """
        Add an app-wide router step.

        Steps run in the order added and wrap error handling, so they also
        see error and not-found responses. Unlike global middleware they
        run for requests that match no route.
        """
        self.router.use(step, before=self._errors)

    def register_controllers(self, controllers: Optional[Iterable[type]] = None) -> DispatchTable:
        """
        Compile ``controllers`` onto the router.

        Omitting ``controllers`` compiles everything in the registry.
        """
        table = self.compiler.compile(controllers)
        self.table = self.table + table
        logger.debug("Registered %d routes", len(table))
        return table

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        await self.asgi(scope, receive, send)

    def serve(self, **uvicorn_options: Any) -> None:
        """Run the app with uvicorn."""
        import uvicorn

        options = {
            "host": self.server_config.host,
            "port": self.server_config.port,
            "log_level": self.server_config.log_level,
        }
        options.update(uvicorn_options)
        uvicorn.run(self, **options)
