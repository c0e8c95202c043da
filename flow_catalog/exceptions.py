"""
Domain exception hierarchy for Flow Catalog.

Every error is recoverable by the caller and maps onto an HTTP status code
for the presentation layer.
"""

from typing import Any, Optional


class DomainError(Exception):
    """Base exception for business rule violations."""

    def __init__(
        self,
        message: str,
        code: str = "DOMAIN_ERROR",
        details: Optional[dict[str, Any]] = None,
        status_code: int = 400,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(DomainError):
    """An invariant was violated at the point of mutation."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            details=details,
            status_code=400,
        )


# =============================================================================
# Lookup / Uniqueness Errors (404, 409)
# =============================================================================


class EntityNotFoundError(DomainError):
    """A referenced id does not resolve."""

    def __init__(self, entity_name: str, entity_id: str) -> None:
        super().__init__(
            message=f"{entity_name} with id '{entity_id}' not found",
            code="ENTITY_NOT_FOUND",
            details={"entity": entity_name, "id": entity_id},
            status_code=404,
        )


class EntityAlreadyExistsError(DomainError):
    """A name is already taken within its project/table scope."""

    def __init__(self, entity_name: str, field: str, value: str) -> None:
        super().__init__(
            message=f"{entity_name} with {field} '{value}' already exists",
            code="ENTITY_ALREADY_EXISTS",
            details={"entity": entity_name, "field": field, "value": value},
            status_code=409,
        )


# =============================================================================
# Authentication/Authorization Errors (401, 403)
# =============================================================================


class UnauthorizedError(DomainError):
    """Caller identity could not be established."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message=message, code="UNAUTHORIZED", status_code=401)


class ForbiddenError(DomainError):
    """Caller is not allowed to act on the resource."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message=message, code="FORBIDDEN", status_code=403)
