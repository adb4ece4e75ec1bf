from rentpay.core.shared.logger import (
    ColoredFormatter,
    JSONFormatter,
    PaymentLogFilter,
    configure_logging,
    correlation_id_var,
    mask_phone_numbers,
)

__all__ = [
    "ColoredFormatter",
    "JSONFormatter",
    "PaymentLogFilter",
    "configure_logging",
    "correlation_id_var",
    "mask_phone_numbers",
]
