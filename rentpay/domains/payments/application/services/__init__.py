from rentpay.domains.payments.application.services.access import (
    can_view_record,
    ensure_can_manage_disbursement,
    ensure_can_view_tenant,
)
from rentpay.domains.payments.application.services.payment_notifier import PaymentNotifier

__all__ = [
    "PaymentNotifier",
    "can_view_record",
    "ensure_can_manage_disbursement",
    "ensure_can_view_tenant",
]
