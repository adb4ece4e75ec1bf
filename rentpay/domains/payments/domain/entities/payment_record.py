"""
Payment Record Entity

One rent payment: the tenant's collection and the owner's disbursement.
"""

import secrets
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal

from rentpay.core.domain import AggregateRoot, InvalidOperationException

from ..services.money import SHILLING, split_for_disbursement
from ..value_objects.payment_status import CollectionStatus, DisbursementStatus


def generate_transaction_reference() -> str:
    """Provisional reference used until the provider's receipt number arrives."""
    return f"TXN{int(time.time() * 1000)}{secrets.token_hex(3).upper()}"


@dataclass(eq=False)
class PaymentRecord(AggregateRoot[int]):
    """
    Payment record aggregate.

    The owner's paybill and account number are snapshotted at creation;
    a later change on the property does not reroute an existing payment.

    Example:
        ```python
        record = PaymentRecord.create(
            tenant_id="t-1",
            tenant_name="Jane",
            property_id="p-1",
            property_name="Sunrise Apartments",
            owner_id="o-1",
            owner_paybill="400200",
            owner_account_number="ACC-01",
            phone_number="254712345678",
            amount=Decimal("1000"),
            fee_percentage=Decimal("5"),
        )
        record.mark_collection_accepted("ws_CO_1", "mr_1")
        record.mark_collection_succeeded("QKX12ABC")
        record.start_disbursement()
        ```
    """

    # Parties
    tenant_id: str = ""
    tenant_name: str = ""
    property_id: str = ""
    property_name: str = ""
    owner_id: str = ""
    owner_paybill: str = ""
    owner_account_number: str = ""
    phone_number: str = ""

    # Money
    amount: Decimal = Decimal("0")
    platform_fee_percentage: Decimal = Decimal("0")
    platform_fee: Decimal = Decimal("0")
    disbursement_amount: Decimal = Decimal("0")
    payment_method: str = "mpesa"

    # Collection leg
    transaction_id: str = ""
    status: CollectionStatus = CollectionStatus.PENDING
    checkout_request_id: str | None = None
    merchant_request_id: str | None = None
    failure_reason: str | None = None
    paid_at: datetime | None = None

    # Disbursement leg
    disbursement_status: DisbursementStatus = DisbursementStatus.PENDING
    disbursement_conversation_id: str | None = None
    disbursement_originator_conversation_id: str | None = None
    disbursement_transaction_id: str | None = None
    disbursement_date: datetime | None = None
    disbursement_failure_reason: str | None = None
    disbursement_attempts: int = 0

    # Columns a transition changed since the last write; only these are persisted
    _changed: set[str] = field(default_factory=set, init=False, repr=False)

    @classmethod
    def create(
        cls,
        tenant_id: str,
        tenant_name: str,
        property_id: str,
        property_name: str,
        owner_id: str,
        owner_paybill: str,
        owner_account_number: str,
        phone_number: str,
        amount: Decimal,
        fee_percentage: Decimal,
    ) -> "PaymentRecord":
        """Create a pending record with the fee split computed in whole shillings."""
        split = split_for_disbursement(amount, fee_percentage, unit=SHILLING)
        return cls(
            tenant_id=tenant_id,
            tenant_name=tenant_name,
            property_id=property_id,
            property_name=property_name,
            owner_id=owner_id,
            owner_paybill=owner_paybill,
            owner_account_number=owner_account_number,
            phone_number=phone_number,
            amount=split.fee + split.net,
            platform_fee_percentage=Decimal(fee_percentage),
            platform_fee=split.fee,
            disbursement_amount=split.net,
            transaction_id=generate_transaction_reference(),
            disbursement_status=(
                DisbursementStatus.NOT_REQUIRED if split.net == 0 else DisbursementStatus.PENDING
            ),
        )

    # Collection transitions

    def mark_collection_accepted(self, checkout_request_id: str, merchant_request_id: str | None) -> None:
        """Store the provider's ids once the push is accepted. Status stays pending."""
        self._require_collection_pending("accept_collection")
        self._set(checkout_request_id=checkout_request_id, merchant_request_id=merchant_request_id)

    def mark_collection_succeeded(self, receipt_number: str | None = None) -> None:
        self._require_collection_pending("succeed_collection")
        if receipt_number:
            self._set(transaction_id=receipt_number)
        self._set(status=CollectionStatus.SUCCESS, paid_at=datetime.now(UTC), failure_reason=None)

    def mark_collection_failed(self, reason: str) -> None:
        self._require_collection_pending("fail_collection")
        self._set(status=CollectionStatus.FAILED, failure_reason=reason)

    def _require_collection_pending(self, operation: str) -> None:
        if self.status != CollectionStatus.PENDING:
            raise InvalidOperationException(operation=operation, current_state=self.status.value)

    # Disbursement transitions

    def start_disbursement(self) -> None:
        """Move to processing from pending, or from failed on retry."""
        if self.status != CollectionStatus.SUCCESS:
            raise InvalidOperationException(
                operation="start_disbursement",
                current_state=self.status.value,
                message="Collection must succeed before disbursing",
            )
        self._transition_disbursement("start_disbursement", DisbursementStatus.PROCESSING)
        self._set(disbursement_attempts=self.disbursement_attempts + 1, disbursement_failure_reason=None)

    def mark_disbursement_accepted(self, conversation_id: str, originator_conversation_id: str | None) -> None:
        if self.disbursement_status != DisbursementStatus.PROCESSING:
            raise InvalidOperationException(
                operation="accept_disbursement",
                current_state=self.disbursement_status.value,
            )
        self._set(
            disbursement_conversation_id=conversation_id,
            disbursement_originator_conversation_id=originator_conversation_id,
        )

    def complete_disbursement(self, transaction_id: str) -> None:
        self._transition_disbursement("complete_disbursement", DisbursementStatus.COMPLETED)
        self._set(disbursement_transaction_id=transaction_id, disbursement_date=datetime.now(UTC))

    def fail_disbursement(self, reason: str) -> None:
        self._transition_disbursement("fail_disbursement", DisbursementStatus.FAILED)
        self._set(disbursement_failure_reason=reason)

    def _transition_disbursement(self, operation: str, target: DisbursementStatus) -> None:
        if not self.disbursement_status.can_transition_to(target):
            raise InvalidOperationException(
                operation=operation,
                current_state=self.disbursement_status.value,
            )
        self._set(disbursement_status=target)

    def _set(self, **values: object) -> None:
        for name, value in values.items():
            setattr(self, name, value)
        self._changed.update(values)
        self.touch()

    # Persistence bookkeeping

    @property
    def changed_fields(self) -> frozenset[str]:
        return frozenset(self._changed)

    def mark_persisted(self) -> None:
        self._changed.clear()

    # Properties

    @property
    def is_collected(self) -> bool:
        return self.status == CollectionStatus.SUCCESS

    @property
    def is_disbursement_settled(self) -> bool:
        """Nothing left to do on the disbursement leg."""
        return self.disbursement_status in (
            DisbursementStatus.PROCESSING,
            DisbursementStatus.COMPLETED,
            DisbursementStatus.NOT_REQUIRED,
        )
