from rentpay.domains.payments.domain.services.money import (
    SHILLING,
    FeeSplit,
    compute_outstanding_balance,
    is_whole_shillings,
    next_due_date,
    normalize_phone_number,
    quantize_money,
    split_for_disbursement,
)

__all__ = [
    "SHILLING",
    "FeeSplit",
    "compute_outstanding_balance",
    "is_whole_shillings",
    "next_due_date",
    "normalize_phone_number",
    "quantize_money",
    "split_for_disbursement",
]
