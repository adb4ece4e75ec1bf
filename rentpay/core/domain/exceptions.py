"""
Domain Exceptions

Raised by entities and use cases; `rentpay.api.exception_handlers` turns
them into JSON error responses. Each class carries a stable `code` that
clients can switch on.
"""

from typing import Any


class DomainException(Exception):
    """Base class. `details` is free-form context echoed to the client."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationException(DomainException):
    """Input rejected before any state was touched (amount, phone, missing link)."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        self.field = field
        context = dict(details or {})
        if field:
            context["field"] = field
        super().__init__(message, context)


class EntityNotFoundException(DomainException):
    code = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} {entity_id} not found",
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )


class BusinessRuleViolationException(DomainException):
    """
    A rule of the payment lifecycle forbids the request, e.g. disbursing
    a payment whose collection has not succeeded.
    """

    code = "BUSINESS_RULE_VIOLATION"

    def __init__(self, rule: str, message: str | None = None, details: dict[str, Any] | None = None):
        self.rule = rule
        super().__init__(message or f"Business rule violated: {rule}", {**(details or {}), "rule": rule})


class InvalidOperationException(DomainException):
    """A state transition that the current status does not allow."""

    code = "INVALID_OPERATION"

    def __init__(self, operation: str, current_state: str, message: str | None = None):
        self.operation = operation
        self.current_state = current_state
        super().__init__(
            message or f"Cannot {operation} while {current_state}",
            {"operation": operation, "current_state": current_state},
        )


class AuthorizationException(DomainException):
    """The caller's role or ownership does not cover the resource."""

    code = "AUTHORIZATION_ERROR"

    def __init__(self, operation: str, resource: str | None = None, user_id: str | None = None):
        self.operation = operation
        self.resource = resource
        self.user_id = user_id
        target = f" on {resource}" if resource else ""
        super().__init__(f"Not allowed to {operation}{target}", {"operation": operation, "resource": resource})


class DuplicateEntityException(DomainException):
    code = "DUPLICATE_ENTITY"

    def __init__(self, entity_type: str, field: str, value: Any):
        self.entity_type = entity_type
        self.field = field
        self.value = value
        super().__init__(
            f"{entity_type} for {field}={value} already exists",
            {"entity_type": entity_type, "field": field, "value": str(value)},
        )
