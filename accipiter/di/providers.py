"""
Provider implementations for different instantiation strategies.
"""

import inspect
from typing import Any, Dict, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from .core import ProviderMeta, ResolveCtx, token_to_key

T = TypeVar("T")


class ClassProvider:
    """
    Provider that instantiates a class by resolving constructor dependencies.

    Dependencies are read from the ``__init__`` type hints once, when the
    provider is created. ``Optional[X]`` hints and parameters with a
    default are resolved optionally.

    Supports async initialization via an ``async_init()`` method.
    """

    __slots__ = ("_meta", "_cls", "_dependencies", "_has_async_init")

    def __init__(self, cls: Type[T], scope: str = "app", tags: tuple[str, ...] = ()):
        self._cls = cls
        self._dependencies = self._extract_dependencies(cls)
        self._has_async_init = hasattr(cls, "async_init")
        self._meta = ProviderMeta(
            name=cls.__name__,
            token=token_to_key(cls),
            scope=scope,
            tags=tags,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    @property
    def cls(self) -> type:
        return self._cls

    async def instantiate(self, ctx: ResolveCtx) -> Any:
        container = ctx.container
        kwargs = {}
        for name, (dep_token, optional, has_default) in self._dependencies.items():
            value = await container._resolve(dep_token, None, optional, ctx)
            if value is None and has_default:
                continue
            kwargs[name] = value

        instance = self._cls(**kwargs)
        if self._has_async_init:
            await instance.async_init()
        return instance

    def _extract_dependencies(self, cls: Type) -> Dict[str, tuple]:
        """Map constructor parameter names to ``(token, optional, has_default)``."""
        deps: Dict[str, tuple] = {}
        if cls.__init__ is object.__init__:
            return deps

        try:
            sig = inspect.signature(cls.__init__)
            hints = get_type_hints(cls.__init__)
        except (TypeError, ValueError, NameError):
            return deps

        for name, param in sig.parameters.items():
            if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            annotation = hints.get(name)
            has_default = param.default is not inspect.Parameter.empty
            if annotation is None:
                if has_default:
                    continue
                raise TypeError(
                    f"Cannot inject parameter '{name}' of {cls.__name__}: missing type annotation"
                )

            optional = has_default
            if get_origin(annotation) is Union:
                args = [a for a in get_args(annotation) if a is not type(None)]
                if len(args) != len(get_args(annotation)):
                    optional = True
                annotation = args[0] if args else annotation

            deps[name] = (annotation, optional, has_default)
        return deps

    def __repr__(self) -> str:
        return f"ClassProvider({self._cls.__name__}, scope={self._meta.scope})"


class ValueProvider:
    """Provider returning a pre-built value."""

    __slots__ = ("_meta", "_value")

    def __init__(self, token: Union[Type, str], value: Any, scope: str = "singleton", name: str = ""):
        self._value = value
        key = token_to_key(token)
        self._meta = ProviderMeta(
            name=name or f"{key.rsplit('.', 1)[-1]}_instance",
            token=key,
            scope=scope,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    async def instantiate(self, ctx: ResolveCtx) -> Any:
        return self._value

    def __repr__(self) -> str:
        return f"ValueProvider({self._meta.token})"
