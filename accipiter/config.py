"""
Config system - layered routing, server and security configuration.

Merge precedence (later overrides earlier):

    defaults < JSON/YAML files < .env file < ACCIPITER_* env vars < overrides

Nested keys use ``__`` in environment variable names:

    ACCIPITER_ROUTING__PREFIX=/api
    ACCIPITER_SERVER__PORT=9000
"""

from __future__ import annotations

import importlib
import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

import yaml
from dotenv import dotenv_values

from .faults import ConfigInvalidFault

C = TypeVar("C")


@dataclass
class RoutingConfig:
    """
    Inputs of the route compiler.

    Attributes:
        prefix: Path prefix for every compiled route
        debug: Log route mappings and expose error details
        global_middleware: Middleware placed at the head of every chain;
            entries may be callables or ``"module:attr"`` import paths
    """

    prefix: str = ""
    debug: bool = False
    global_middleware: List[Any] = field(default_factory=list)

    def resolve_middleware(self) -> List[Any]:
        """Import string entries of ``global_middleware``."""
        return [import_string(m) if isinstance(m, str) else m for m in self.global_middleware]


@dataclass
class ServerConfig:
    """Settings handed to uvicorn by ``App.serve()``."""

    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"


@dataclass
class SecurityConfig:
    """
    Global CORS and security-header middleware installed by ``App``.

    Attributes:
        cors: Install ``CORSMiddleware``
        cors_origins: Allowed origins (exact, ``*`` or ``*.example.com``)
        cors_methods: Methods announced on preflight
        cors_headers: Request headers announced on preflight
        cors_expose_headers: Response headers exposed to scripts
        cors_credentials: Allow credentials; the origin is reflected
        cors_max_age: Preflight cache duration in seconds
        secure_headers: Install ``SecurityHeadersMiddleware``
    """

    cors: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    cors_methods: List[str] = field(default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"])
    cors_headers: List[str] = field(default_factory=lambda: ["Content-Type", "Authorization"])
    cors_expose_headers: List[str] = field(default_factory=lambda: ["Content-Length"])
    cors_credentials: bool = False
    cors_max_age: int = 86400
    secure_headers: bool = False


def import_string(path: str) -> Any:
    """
    Import ``"package.module:attr"`` (or ``"package.module.attr"``).

    Raises:
        ConfigInvalidFault: If the module or attribute does not exist
    """
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    if not module_name or not attr:
        raise ConfigInvalidFault(path, "expected 'module:attribute'")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigInvalidFault(path, f"cannot import module {module_name!r}: {e}") from e

    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise ConfigInvalidFault(path, f"module {module_name!r} has no attribute {attr!r}") from e


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Example:
        loader = ConfigLoader.load(paths=["accipiter.yaml"], env_file=".env")
        routing = loader.routing()
        routing.prefix  # "/api"
    """

    def __init__(self, env_prefix: str = "ACCIPITER_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        paths: Optional[List[str]] = None,
        env_prefix: str = "ACCIPITER_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "ConfigLoader":
        """
        Build a loader from every source.

        Args:
            paths: JSON/YAML config files, applied in order
            env_prefix: Prefix selecting environment variables
            env_file: Path to a ``.env`` file
            overrides: Highest-precedence values
            environ: Environment mapping (defaults to ``os.environ``)
        """
        loader = cls(env_prefix=env_prefix)

        for path in paths or ():
            loader._load_file(Path(path))

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return loader

    # ========================================================================
    # Sources
    # ========================================================================

    def _load_file(self, path: Path) -> None:
        if not path.exists():
            raise ConfigInvalidFault(str(path), "file not found")

        if path.suffix == ".json":
            with open(path) as f:
                data = json.load(f)
        elif path.suffix in (".yaml", ".yml"):
            with open(path) as f:
                data = yaml.safe_load(f)
        else:
            raise ConfigInvalidFault(str(path), f"unsupported config format {path.suffix!r}")

        if data:
            if not isinstance(data, dict):
                raise ConfigInvalidFault(str(path), "top level must be a mapping")
            self._merge_dict(self.config_data, data)

    def _load_env_file(self, path: str) -> None:
        if not Path(path).exists():
            return
        values = dotenv_values(path)
        for key, value in values.items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ: Mapping[str, str]) -> None:
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str) -> None:
        """Convert ACCIPITER_ROUTING__PREFIX to {"routing": {"prefix": ...}}."""
        parts = key[len(self.env_prefix):].lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        lowered = value.lower()
        if lowered in ("true", "yes", "on"):
            return True
        if lowered in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: Mapping) -> None:
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, Mapping):
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    # ========================================================================
    # Access
    # ========================================================================

    def get(self, path: str, default: Any = None) -> Any:
        """Get a value by dot-separated path."""
        current: Any = self.config_data
        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    def routing(self) -> RoutingConfig:
        config = self._instantiate(RoutingConfig, self.config_data.get("routing", {}))
        if not isinstance(config.prefix, str):
            raise ConfigInvalidFault("routing.prefix", "must be a string")
        if not isinstance(config.global_middleware, list):
            raise ConfigInvalidFault("routing.global_middleware", "must be a list")
        return config

    def server(self) -> ServerConfig:
        config = self._instantiate(ServerConfig, self.config_data.get("server", {}))
        if not 0 <= config.port <= 65535:
            raise ConfigInvalidFault("server.port", f"{config.port} is out of range")
        return config

    def security(self) -> SecurityConfig:
        config = self._instantiate(SecurityConfig, self.config_data.get("security", {}))
        if config.cors_max_age < 0:
            raise ConfigInvalidFault("security.cors_max_age", "must not be negative")
        return config

    def _instantiate(self, config_class: Type[C], data: Mapping[str, Any]) -> C:
        section = config_class.__name__
        if not isinstance(data, Mapping):
            raise ConfigInvalidFault(section, "must be a mapping")

        known = {f.name: f for f in fields(config_class)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                raise ConfigInvalidFault(f"{section}.{key}", "unknown key")
            kwargs[key] = self._coerce(known[key].type, value, f"{section}.{key}")
        return config_class(**kwargs)

    def _coerce(self, annotation: Any, value: Any, key: str) -> Any:
        # Annotations are strings under ``from __future__ import annotations``
        target = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "")
        try:
            if target == "bool":
                if isinstance(value, str):
                    if not value.strip():
                        return False
                    value = self._parse_value(value.strip())
                    if isinstance(value, str):
                        raise ValueError(f"expected a boolean, got {value!r}")
                return bool(value)
            if target == "int":
                return int(value)
            if target == "str":
                return "" if value is None else str(value)
            if target.startswith("List") and isinstance(value, str):
                return [v.strip() for v in value.split(",") if v.strip()]
        except (TypeError, ValueError) as e:
            raise ConfigInvalidFault(key, str(e)) from e
        return value
