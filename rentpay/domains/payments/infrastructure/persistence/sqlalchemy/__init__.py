from rentpay.domains.payments.infrastructure.persistence.sqlalchemy.models import (
    DirectoryBase,
    PaymentRecordModel,
    PropertyModel,
    UserModel,
)

__all__ = ["DirectoryBase", "PaymentRecordModel", "PropertyModel", "UserModel"]
