"""
Accipiter Faults - Structured error taxonomy.

Faults are typed exceptions carrying:
- Stable machine-readable code
- Human-readable message
- Domain classification
- HTTP status hint (used by the error-handling layer)
- Public exposure control

Taxonomy:
- ConfigurationError: startup-fatal declaration/compile problems
- InvalidBodyError: body declared JSON but not parseable (400)
- ResolutionError: the container cannot produce an instance
- RouteNotFound: no route matched the request (404)
"""

from __future__ import annotations

from typing import Any, Optional


# ============================================================================
# Domains
# ============================================================================

class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain("config", "Declaration and compilation errors")
FaultDomain.DI = FaultDomain("di", "Dependency resolution errors")
FaultDomain.ROUTING = FaultDomain("routing", "Route matching errors")
FaultDomain.FLOW = FaultDomain("flow", "Handler execution errors")
FaultDomain.IO = FaultDomain("io", "Request/response I/O")


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    Subclasses usually declare ``code``, ``message``, ``domain`` and
    ``status`` as class attributes and only pass what varies.

    Example:
        ```python
        raise Fault(
            code="USER_NOT_FOUND",
            message="User with ID 123 not found",
            domain=FaultDomain.FLOW,
            status=404,
            public=True,
        )
        ```
    """

    status: int = 500
    public: bool = False

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        status: Optional[int] = None,
        public: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        if status is not None:
            self.status = status
        if public is not None:
            self.public = public
        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, "
            f"domain={self.domain.value}, status={self.status})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault to dictionary (logging / debug output)."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "status": self.status,
            "public": self.public,
            "metadata": self.metadata,
        }


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigurationError(Fault):
    """
    Invalid declaration detected while compiling routes.

    Always fatal: raised before the server accepts traffic.
    """

    code = "CONFIGURATION_ERROR"
    domain = FaultDomain.CONFIG

    def __init__(self, message: str, **metadata):
        super().__init__(message=message, metadata=metadata)


class UnknownHandlerError(ConfigurationError):
    """Route names a handler that is not a callable on its controller."""

    code = "UNKNOWN_HANDLER"

    def __init__(self, controller: type, handler_name: str):
        super().__init__(
            f"{controller.__name__}.{handler_name} is not a callable handler",
            controller=controller.__name__,
            handler=handler_name,
        )


class ParameterIndexError(ConfigurationError):
    """Parameter indices of a handler are not a permutation of 0..N-1."""

    code = "PARAMETER_INDEX_ERROR"

    def __init__(self, handler: str, indices: list[int], reason: str):
        super().__init__(
            f"Invalid parameter indices {indices} for {handler}: {reason}",
            handler=handler,
            indices=indices,
            reason=reason,
        )


class ConfigInvalidFault(ConfigurationError):
    """Configuration value is invalid."""

    code = "CONFIG_INVALID"

    def __init__(self, key: str, reason: str):
        super().__init__(
            f"Configuration key '{key}' is invalid: {reason}",
            key=key,
            reason=reason,
        )


# ============================================================================
# IO Faults
# ============================================================================

class InvalidBodyError(Fault):
    """Request body declared as JSON could not be parsed (400)."""

    code = "INVALID_BODY"
    message = "Invalid JSON body"
    domain = FaultDomain.IO
    status = 400
    public = True

    def __init__(self, message: str | None = None, **metadata):
        super().__init__(message=message, metadata=metadata)


# ============================================================================
# DI Faults
# ============================================================================

class ResolutionError(Fault):
    """The container could not produce an instance."""

    code = "RESOLUTION_FAILED"
    domain = FaultDomain.DI

    def __init__(self, message: str, **metadata):
        super().__init__(message=message, metadata=metadata)


# ============================================================================
# ROUTING Faults
# ============================================================================

class RouteNotFound(Fault):
    """No registered route matches the request (404)."""

    code = "NOT_FOUND"
    message = "Not Found"
    domain = FaultDomain.ROUTING
    status = 404
    public = True

    def __init__(self, method: str, path: str):
        super().__init__(metadata={"method": method, "path": path})
