"""
Core DI types and the Container.

The container is the resolution root shared by the whole process.
Each request gets a cheap child container (``create_request_scope``)
holding only request-local instances; singleton/app providers are
always delegated to the root so they are built once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import (
    Any,
    Callable,
    Coroutine,
    Dict,
    List,
    Optional,
    Protocol,
    Type,
    TypeVar,
    runtime_checkable,
)

from .errors import (
    DependencyCycleError,
    ProviderConflictError,
    ProviderNotFoundError,
    ScopeViolationError,
)

T = TypeVar("T")

logger = logging.getLogger("accipiter.di")

# Module-level cache: type -> "module.qualname"
_type_key_cache: Dict[type, str] = {}

SCOPES = frozenset(("singleton", "app", "request", "transient"))
_ROOT_SCOPES = frozenset(("singleton", "app"))


@dataclass(frozen=True)
class ProviderMeta:
    """Compact provider metadata."""

    name: str
    token: str
    scope: str
    tags: tuple[str, ...] = field(default_factory=tuple)


class ResolveCtx:
    """
    Context for one top-level resolution.

    Tracks the resolution stack (token and scope of every provider being
    built) for cycle detection and scope checks.
    """

    __slots__ = ("container", "stack", "scopes")

    def __init__(self, container: "Container"):
        self.container = container
        self.stack: List[str] = []
        self.scopes: List[str] = []

    def push(self, token: str, scope: str = "transient") -> None:
        if token in self.stack:
            raise DependencyCycleError(self.stack + [token])
        self.stack.append(token)
        self.scopes.append(scope)

    def pop(self) -> None:
        self.stack.pop()
        self.scopes.pop()

    def long_lived_consumer(self) -> Optional[tuple[str, str]]:
        """Nearest ``(token, scope)`` on the stack that outlives a request."""
        for token, scope in zip(reversed(self.stack), reversed(self.scopes)):
            if scope in _ROOT_SCOPES:
                return token, scope
        return None


@runtime_checkable
class Provider(Protocol):
    """How to instantiate a dependency."""

    @property
    def meta(self) -> ProviderMeta:
        ...

    async def instantiate(self, ctx: ResolveCtx) -> Any:
        ...


def token_to_key(token: Type | str) -> str:
    """Convert a type or string token to its registry key."""
    if isinstance(token, str):
        return token
    if isinstance(token, type):
        key = _type_key_cache.get(token)
        if key is None:
            key = f"{token.__module__}.{token.__qualname__}"
            _type_key_cache[token] = key
        return key
    return str(token)


def _make_cache_key(token: str, tag: Optional[str]) -> str:
    return f"{token}#{tag}" if tag else token


class Container:
    """
    DI Container - manages providers, cached instances and scopes.

    Example:
        container = Container()
        container.bind(UserRepository, SqlUserRepository, scope="singleton")
        container.bind(UsersController, scope="request")

        request_scope = container.create_request_scope()
        ctrl = await request_scope.resolve_async(UsersController)
        await request_scope.shutdown()
    """

    __slots__ = ("_providers", "_cache", "_scope", "_parent", "_finalizers", "_build_locks")

    def __init__(self, scope: str = "app", parent: Optional["Container"] = None):
        self._providers: Dict[str, Provider] = {}
        self._cache: Dict[str, Any] = {}
        self._scope = scope
        self._parent = parent
        self._finalizers: List[Callable[[], Coroutine]] = []
        # One lock per singleton/app cache key, held while it is built
        self._build_locks: Dict[str, asyncio.Lock] = {}

    @property
    def scope(self) -> str:
        return self._scope

    @property
    def parent(self) -> Optional["Container"]:
        return self._parent

    # ========================================================================
    # Registration
    # ========================================================================

    def register(self, provider: Provider, tag: Optional[str] = None) -> None:
        """
        Register a provider under its own token.

        Re-registering the same provider is a no-op; a different one is an
        error.
        """
        key = _make_cache_key(provider.meta.token, tag)
        existing = self._providers.get(key)
        if existing is not None:
            if existing is provider:
                return
            raise ProviderConflictError(provider.meta.token, tag, existing.meta.name)
        self._providers[key] = provider

    def bind(
        self,
        interface: Type,
        implementation: Optional[Type] = None,
        scope: str = "app",
        tag: Optional[str] = None,
    ) -> None:
        """
        Bind ``interface`` to a class provider for ``implementation``.

        Omitting ``implementation`` binds the class to itself.

        Example:
            container.bind(UserRepository, SqlUserRepository)
            container.bind(UsersController, scope="request")
        """
        from .providers import ClassProvider

        if scope not in SCOPES:
            raise ValueError(f"Unknown scope {scope!r}; expected one of {sorted(SCOPES)}")

        provider = ClassProvider(implementation or interface, scope=scope)
        key = _make_cache_key(token_to_key(interface), tag)
        self._providers[key] = provider
        logger.debug("Bound %s -> %s (%s)", key, provider.meta.name, scope)

    def register_instance(
        self,
        token: Type[T] | str,
        instance: T,
        scope: str = "request",
        tag: Optional[str] = None,
    ) -> None:
        """
        Register a pre-built object, typically a request-local value
        contributed by middleware.
        """
        from .providers import ValueProvider

        provider = ValueProvider(token=token, value=instance, scope=scope)
        key = _make_cache_key(provider.meta.token, tag)
        self._providers[key] = provider
        self._cache[key] = instance

    def is_bound(self, token: Type | str, tag: Optional[str] = None) -> bool:
        """True if this container or an ancestor can provide ``token``."""
        return self._lookup_provider(token_to_key(token), tag) is not None

    is_registered = is_bound

    # ========================================================================
    # Resolution
    # ========================================================================

    async def resolve_async(
        self,
        token: Type[T] | str,
        *,
        tag: Optional[str] = None,
        optional: bool = False,
    ) -> T:
        """
        Resolve a dependency.

        Raises:
            ProviderNotFoundError: If nothing provides ``token`` and not optional
            DependencyCycleError: If construction loops back on itself
            ScopeViolationError: If a singleton/app provider depends on a
                request-scoped one
        """
        return await self._resolve(token, tag, optional, ResolveCtx(self))

    async def _resolve(
        self,
        token: Type | str,
        tag: Optional[str],
        optional: bool,
        ctx: ResolveCtx,
    ) -> Any:
        cache_key = _make_cache_key(token_to_key(token), tag)

        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        provider = self._lookup_provider(token_to_key(token), tag)
        if provider is None:
            if optional:
                return None
            self._raise_not_found(token_to_key(token), tag, ctx)

        scope = provider.meta.scope
        if self._parent is not None and scope in _ROOT_SCOPES:
            return await self._parent._resolve(token, tag, optional, ctx)

        if scope == "request":
            consumer = ctx.long_lived_consumer()
            if consumer is not None:
                raise ScopeViolationError(cache_key, scope, *consumer)

        if scope in _ROOT_SCOPES and cache_key not in ctx.stack:
            lock = self._build_locks.setdefault(cache_key, asyncio.Lock())
            async with lock:
                cached = self._cache.get(cache_key)
                if cached is not None:
                    return cached
                return await self._build(provider, cache_key, scope, ctx)

        return await self._build(provider, cache_key, scope, ctx)

    async def _build(self, provider: Provider, cache_key: str, scope: str, ctx: ResolveCtx) -> Any:
        ctx.push(cache_key, scope)
        previous = ctx.container
        ctx.container = self
        try:
            instance = await provider.instantiate(ctx)
        finally:
            ctx.container = previous
            ctx.pop()

        # Request instances are only ever cached on a request scope
        if scope in _ROOT_SCOPES or (scope == "request" and self._scope == "request"):
            self._cache[cache_key] = instance
            self._register_finalizer(instance)

        return instance

    def create_request_scope(self) -> "Container":
        """
        Create a request-scoped child container.

        Provider lookup falls through to the parent. Instances and
        providers registered on the child stay on the child, so nothing one
        request caches is visible from another.
        """
        child = Container.__new__(Container)
        child._providers = {}
        child._cache = {}
        child._scope = "request"
        child._parent = self
        child._finalizers = []
        child._build_locks = {}
        return child

    async def shutdown(self) -> None:
        """Run finalizers in LIFO order and drop cached instances."""
        if not self._finalizers and not self._cache:
            return

        for finalizer in reversed(self._finalizers):
            try:
                await finalizer()
            except Exception:
                logger.exception("Error during finalizer in %s container", self._scope)

        self._finalizers.clear()
        self._cache.clear()

    # ========================================================================
    # Internals
    # ========================================================================

    def _lookup_provider(self, token: str, tag: Optional[str]) -> Optional[Provider]:
        key = _make_cache_key(token, tag)
        container: Optional[Container] = self
        while container is not None:
            provider = container._providers.get(key)
            if provider is not None:
                return provider
            container = container._parent
        return None

    def _register_finalizer(self, instance: Any) -> None:
        if hasattr(instance, "__aexit__"):
            self._finalizers.append(lambda: instance.__aexit__(None, None, None))
        elif hasattr(instance, "shutdown") and callable(instance.shutdown):
            shutdown = instance.shutdown

            async def _finalize():
                result = shutdown()
                if hasattr(result, "__await__"):
                    await result

            self._finalizers.append(_finalize)

    def _raise_not_found(self, token: str, tag: Optional[str], ctx: ResolveCtx) -> None:
        candidates = [key for key in self._providers if token.rsplit(".", 1)[-1] in key]
        raise ProviderNotFoundError(
            token=token,
            tag=tag,
            candidates=candidates,
            requested_by=ctx.stack[-1] if ctx.stack else None,
        )

    def __repr__(self) -> str:
        return f"<Container scope={self._scope} providers={len(self._providers)}>"
