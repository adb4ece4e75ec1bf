"""
Payments domain exceptions.
"""

from rentpay.core.domain import BusinessRuleViolationException, DuplicateEntityException, ValidationException


class InvalidPhoneFormat(ValidationException):
    """Phone number cannot be normalized to 254XXXXXXXXX."""

    def __init__(self, raw: str):
        super().__init__(
            f"Invalid phone number format: {raw!r}. Use 07XXXXXXXX, 7XXXXXXXX or 2547XXXXXXXX",
            field="phone_number",
        )
        self.raw = raw


class PreconditionError(BusinessRuleViolationException):
    """An operation was requested on a record that is not ready for it."""


class DuplicateDisbursementError(DuplicateEntityException):
    """Another caller already claimed this disbursement."""

    def __init__(self, payment_id: int | None):
        super().__init__("Disbursement", "payment_id", payment_id)
