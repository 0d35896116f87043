from __future__ import annotations

from typing import Any, Optional


# Domain-level errors the API can surface directly. Every failure in the core is
# per-request and recoverable by the caller.
class DomainError(Exception):
    def __init__(self, message: str, *, field: Optional[str] = None, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message}
        if self.field:
            payload["field"] = self.field
        if self.context:
            payload["context"] = self.context
        return payload


class ValidationError(DomainError):
    """Missing field, out-of-range value or malformed input."""


class NotFoundError(DomainError):
    pass


class AuthorizationError(DomainError):
    """The referenced record belongs to a different organization."""


class ReferentialError(DomainError):
    """Unknown status key, product not on the parent document, etc."""


class PreconditionError(DomainError):
    """The record exists but its state forbids the operation."""


__all__ = [
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "AuthorizationError",
    "ReferentialError",
    "PreconditionError",
]
