"""
Payments domain layer: the payment record aggregate, its state machines
and the money rules.
"""

from rentpay.domains.payments.domain.entities import PaymentRecord
from rentpay.domains.payments.domain.exceptions import (
    DuplicateDisbursementError,
    InvalidPhoneFormat,
    PreconditionError,
)
from rentpay.domains.payments.domain.value_objects import CollectionStatus, DisbursementStatus, UserRole

__all__ = [
    "PaymentRecord",
    "DuplicateDisbursementError",
    "InvalidPhoneFormat",
    "PreconditionError",
    "CollectionStatus",
    "DisbursementStatus",
    "UserRole",
]
