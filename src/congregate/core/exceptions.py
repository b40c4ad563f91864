from __future__ import annotations

from typing import Optional


class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""


class MalformedRequest(ValidationError):
    """Raised when a person reference is missing or ambiguous."""


class NotFoundError(DomainError):
    """Raised when a tenant-scoped entity does not exist."""

    def __init__(self, kind: str, entity_id: object = None):
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind.capitalize()} not found")


class GatheringInactiveError(DomainError):
    """Raised when checking in to a gathering that is not active."""


class PolicyDenied(DomainError):
    """Raised when the tenant's subscription does not permit an operation.

    ``limit`` is set for usage-bounded capabilities so callers can render an
    upgrade prompt.
    """

    def __init__(self, reason: str, *, capability: Optional[str] = None, limit: Optional[int] = None):
        self.reason = reason
        self.capability = capability
        self.limit = limit
        super().__init__(reason)


class InvalidCredential(DomainError):
    """Raised when a presented biometric token or PIN does not match."""


class ExternalCheckInUnavailable(InvalidCredential):
    """Generic public rejection; never says which check failed."""

    MESSAGE = "Invalid PIN or check-in not available"

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


class RateLimited(DomainError):
    def __init__(self, retry_after: int):
        self.retry_after = int(retry_after)
        super().__init__("Too many attempts, please try again later")


class ConflictError(DomainError):
    """Raised when a write would violate a uniqueness rule."""


class AuthenticationError(DomainError):
    """Raised when login credentials are invalid."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""
