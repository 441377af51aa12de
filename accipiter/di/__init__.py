"""
Accipiter DI - resolution container.

Scopes:
- singleton / app: one instance in the root container
- request: one instance per request-scoped child container
- transient: a new instance on every resolve
"""

from .core import SCOPES, Container, Provider, ProviderMeta, ResolveCtx, token_to_key
from .errors import DependencyCycleError, ProviderConflictError, ProviderNotFoundError, ScopeViolationError
from .providers import ClassProvider, ValueProvider

__all__ = [
    "SCOPES",
    "Container",
    "Provider",
    "ProviderMeta",
    "ResolveCtx",
    "token_to_key",
    "ClassProvider",
    "ValueProvider",
    "ProviderNotFoundError",
    "DependencyCycleError",
    "ProviderConflictError",
    "ScopeViolationError",
]
