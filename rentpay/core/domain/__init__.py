"""
Core domain building blocks shared by every bounded context.
"""

from rentpay.core.domain.entities import AggregateRoot, Entity
from rentpay.core.domain.exceptions import (
    AuthorizationException,
    BusinessRuleViolationException,
    DomainException,
    DuplicateEntityException,
    EntityNotFoundException,
    InvalidOperationException,
    ValidationException,
)

__all__ = [
    "AggregateRoot",
    "Entity",
    "AuthorizationException",
    "BusinessRuleViolationException",
    "DomainException",
    "DuplicateEntityException",
    "EntityNotFoundException",
    "InvalidOperationException",
    "ValidationException",
]
