"""
DI-specific error types with diagnostics.

All of them are ``ResolutionError`` faults so the error-handling layer
can treat "could not build the controller" uniformly.
"""

from typing import List, Optional

from ..faults import ResolutionError


class ProviderNotFoundError(ResolutionError):
    """Provider not found for requested token."""

    code = "PROVIDER_NOT_FOUND"

    def __init__(
        self,
        token: str,
        tag: Optional[str] = None,
        candidates: Optional[List[str]] = None,
        requested_by: Optional[str] = None,
    ):
        self.token = token
        self.tag = tag
        self.candidates = candidates or []
        self.requested_by = requested_by

        msg = f"No provider found for token={token}"
        if tag:
            msg += f" (tag={tag})"
        if requested_by:
            msg += f"\nRequested by: {requested_by}"
        if self.candidates:
            msg += "\n\nCandidates found:"
            for candidate in self.candidates:
                msg += f"\n  - {candidate}"

        super().__init__(msg, token=token, tag=tag)


class DependencyCycleError(ResolutionError):
    """Circular dependency detected while resolving."""

    code = "DEPENDENCY_CYCLE"

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(
            "Detected dependency cycle: " + " -> ".join(cycle),
            cycle=cycle,
        )


class ProviderConflictError(ResolutionError):
    """A different provider is already registered for the token."""

    code = "PROVIDER_CONFLICT"

    def __init__(self, token: str, tag: Optional[str], existing: str):
        super().__init__(
            f"Provider for {token} (tag={tag}) already registered: {existing}",
            token=token,
            tag=tag,
        )


class ScopeViolationError(ResolutionError):
    """A request-scoped provider was injected into a longer-lived one."""

    code = "SCOPE_VIOLATION"

    def __init__(
        self,
        provider_token: str,
        provider_scope: str,
        consumer_token: str,
        consumer_scope: str,
    ):
        self.provider_token = provider_token
        self.provider_scope = provider_scope
        self.consumer_token = consumer_token
        self.consumer_scope = consumer_scope
        super().__init__(
            f"Scope violation: {provider_scope}-scoped provider '{provider_token}' "
            f"injected into {consumer_scope}-scoped '{consumer_token}'",
            provider=provider_token,
            consumer=consumer_token,
        )
