from rentpay.domains.payments.infrastructure.repositories.payment_record_repository import (
    SQLAlchemyPaymentRecordRepository,
)
from rentpay.domains.payments.infrastructure.repositories.property_directory import SQLAlchemyPropertyDirectory

__all__ = ["SQLAlchemyPaymentRecordRepository", "SQLAlchemyPropertyDirectory"]
