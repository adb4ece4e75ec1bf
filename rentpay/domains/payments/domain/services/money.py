"""
Money formatting and ledger arithmetic.

Pure functions shared by the collection, disbursement and balance flows.
All amounts are `Decimal` in KES with two decimal places.
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from rentpay.domains.payments.domain.exceptions import InvalidPhoneFormat

CENT = Decimal("0.01")
SHILLING = Decimal("1")
HUNDRED = Decimal("100")

_CANONICAL_PHONE = re.compile(r"^254[17]\d{8}$")


@dataclass(frozen=True)
class FeeSplit:
    fee: Decimal
    net: Decimal


def quantize_money(value: Decimal, unit: Decimal = CENT) -> Decimal:
    """Round to `unit` (the KES minor unit by default), half-up."""
    return value.quantize(unit, rounding=ROUND_HALF_UP)


def is_whole_shillings(value: Decimal) -> bool:
    return Decimal(value) == Decimal(value).to_integral_value()


def normalize_phone_number(raw: str) -> str:
    """
    Normalize a Kenyan mobile number to `254XXXXXXXXX`.

    Accepts international (`2547...`, `+2547...`), local (`07...`, `01...`)
    and bare subscriber (`7...`, `1...`) forms, with any whitespace.

    Raises:
        InvalidPhoneFormat: The number has no canonical form.
    """
    if raw is None:
        raise InvalidPhoneFormat("")

    digits = re.sub(r"\s+", "", str(raw))
    if digits.startswith("+"):
        digits = digits[1:]

    if digits.startswith("0") and len(digits) == 10:
        digits = "254" + digits[1:]
    elif len(digits) == 9 and digits[:1] in ("7", "1"):
        digits = "254" + digits

    if not _CANONICAL_PHONE.match(digits):
        raise InvalidPhoneFormat(raw)
    return digits


def split_for_disbursement(amount: Decimal, fee_percent: Decimal, unit: Decimal = CENT) -> FeeSplit:
    """
    Split a collected amount into the platform fee and the owner's share.

    The fee is rounded half-up to `unit` and the net absorbs the remainder,
    so `fee + net == amount` holds exactly. Pass `SHILLING` when the net
    must be payable over M-Pesa, which only moves whole shillings.
    """
    amount = Decimal(amount)
    fee_percent = Decimal(fee_percent)
    if amount < 0:
        raise ValueError("amount must not be negative")
    if fee_percent < 0 or fee_percent > HUNDRED:
        raise ValueError("fee_percent must be between 0 and 100")

    amount = quantize_money(amount)
    fee = quantize_money(amount * fee_percent / HUNDRED, unit)
    return FeeSplit(fee=fee, net=amount - fee)


def compute_outstanding_balance(
    rent_amount: Decimal,
    payments_desc: Iterable[Decimal],
    window_size: int = 5,
) -> tuple[Decimal, Decimal]:
    """
    Outstanding rent given recent successful payments, newest first.

    Only the newest `window_size` payments count. Payments are applied
    modulo the rent, so an exact multiple of the rent leaves a full
    month outstanding.

    Returns:
        (total_paid, balance)
    """
    rent_amount = Decimal(rent_amount)
    recent = list(payments_desc)[:window_size]
    total_paid = sum((Decimal(p) for p in recent), Decimal("0"))

    if rent_amount <= 0:
        return total_paid, Decimal("0")

    return total_paid, rent_amount - (total_paid % rent_amount)


def next_due_date(today: date, due_day: int = 5) -> date:
    """The `due_day` of this month, or of next month once it has passed."""
    if today.day <= due_day:
        return today.replace(day=due_day)
    if today.month == 12:
        return date(today.year + 1, 1, due_day)
    return date(today.year, today.month + 1, due_day)
