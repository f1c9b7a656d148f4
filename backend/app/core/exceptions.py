"""
Domain exception hierarchy for the HSE Portal backend.

Services raise these types; app/main.py registers a single handler for
HSEError that turns them into the standard ErrorResponse envelope, so every
route reports the same failure the same way.

Usage:
    from app.core.exceptions import NotFoundError, TenantNotResolvedError

    raise NotFoundError(resource="employees", resource_id=employee_id)
    raise TenantNotResolvedError()
"""

from typing import Any, Optional


class HSEError(Exception):
    """Base class for all recoverable domain errors."""

    status_code: int = 400
    code: str = "error"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(HSEError):
    """Missing, expired or invalid credentials. The client should sign in again."""

    status_code = 401
    code = "authentication_required"

    def __init__(self, message: str = "Could not validate credentials") -> None:
        super().__init__(message)


class PermissionDeniedError(HSEError):
    status_code = 403
    code = "permission_denied"


class TenantNotResolvedError(HSEError):
    """
    The principal is authenticated but has no company assignment yet.

    Callers must send the user through company setup instead of issuing any
    tenant-scoped query.
    """

    status_code = 409
    code = "tenant_not_resolved"
    redirect = "/setup-company"

    def __init__(self, message: str = "No company is assigned to this account") -> None:
        super().__init__(message)


class NotFoundError(HSEError):
    """
    Requested record does not exist within the caller's tenant.

    Used for BOTH genuinely missing records AND records owned by another
    tenant. The two cases are intentionally indistinguishable.
    """

    status_code = 404
    code = "not_found"

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ConflictError(HSEError):
    status_code = 409
    code = "conflict"

    def __init__(self, resource: str, field: str, value: Any = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class ValidationError(HSEError):
    """Well-formed input that violates a business rule."""

    status_code = 422
    code = "validation_error"


class InvalidTransitionError(ValidationError):
    code = "invalid_transition"

    def __init__(self, resource: str, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            f"{resource} cannot move from '{current}' to '{target}'",
            details={"current": current, "target": target},
        )


class ConfirmationRequiredError(HSEError):
    """Destructive action dispatched without explicit confirmation."""

    status_code = 428
    code = "confirmation_required"

    def __init__(self, action: str) -> None:
        super().__init__(f"{action} requires explicit confirmation (confirm=true)")


class SubscriptionLimitError(HSEError):
    status_code = 402
    code = "subscription_limit"


class QueryError(HSEError):
    """A read or write against a collection failed (bad filter, permission, missing table)."""

    status_code = 400
    code = "query_error"


class StorageError(HSEError):
    """Upload, download or delete against the file bucket failed."""

    status_code = 502
    code = "storage_error"
