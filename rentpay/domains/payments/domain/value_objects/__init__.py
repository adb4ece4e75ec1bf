from rentpay.domains.payments.domain.value_objects.payment_status import (
    CollectionStatus,
    DisbursementStatus,
    UserRole,
)

__all__ = ["CollectionStatus", "DisbursementStatus", "UserRole"]
