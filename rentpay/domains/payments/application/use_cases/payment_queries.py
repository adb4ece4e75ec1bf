"""
Payment Query Use Cases

Read models over payment records: disbursement status of one payment,
an owner's disbursement ledger, a tenant's payment history and the
payments received for one property.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from rentpay.core.domain import AuthorizationException, EntityNotFoundException
from rentpay.domains.payments.application.dto import AuthenticatedUser
from rentpay.domains.payments.application.ports import IPaymentRecordRepository, IPropertyDirectory
from rentpay.domains.payments.application.services import can_view_record, ensure_can_view_tenant
from rentpay.domains.payments.domain.entities import PaymentRecord
from rentpay.domains.payments.domain.value_objects import DisbursementStatus, UserRole


@dataclass
class DisbursementView:
    payment_id: int | None
    property_id: str
    property_name: str
    tenant_name: str
    amount: Decimal
    platform_fee: Decimal
    disbursement_amount: Decimal
    collection_status: str
    disbursement_status: str
    disbursement_transaction_id: str | None = None
    disbursement_date: datetime | None = None
    disbursement_failure_reason: str | None = None
    disbursement_attempts: int = 0

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "DisbursementView":
        return cls(
            payment_id=record.id,
            property_id=record.property_id,
            property_name=record.property_name,
            tenant_name=record.tenant_name,
            amount=record.amount,
            platform_fee=record.platform_fee,
            disbursement_amount=record.disbursement_amount,
            collection_status=record.status.value,
            disbursement_status=record.disbursement_status.value,
            disbursement_transaction_id=record.disbursement_transaction_id,
            disbursement_date=record.disbursement_date,
            disbursement_failure_reason=record.disbursement_failure_reason,
            disbursement_attempts=record.disbursement_attempts,
        )


@dataclass
class OwnerDisbursementSummary:
    total_collected: Decimal = Decimal("0")
    total_disbursed: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")
    total_fees: Decimal = Decimal("0")
    counts: dict[str, int] = field(default_factory=dict)


@dataclass
class OwnerDisbursements:
    owner_id: str
    disbursements: list[DisbursementView]
    summary: OwnerDisbursementSummary


class GetDisbursementStatusUseCase:
    def __init__(self, payment_repository: IPaymentRecordRepository):
        self.payment_repo = payment_repository

    async def execute(self, payment_id: int, actor: AuthenticatedUser) -> DisbursementView:
        record = await self.payment_repo.get_by_id(payment_id)
        if record is None:
            raise EntityNotFoundException("Payment", payment_id)
        if not can_view_record(actor, record):
            raise AuthorizationException("view_disbursement", f"payment:{payment_id}", actor.id)
        return DisbursementView.from_record(record)


class ListOwnerDisbursementsUseCase:
    """
    Disbursement ledger for one owner.

    Only collected payments count towards the totals; pending and failed
    collections never reach the owner.
    """

    def __init__(self, payment_repository: IPaymentRecordRepository, limit: int = 100):
        self.payment_repo = payment_repository
        self.limit = limit

    async def execute(self, owner_id: str, actor: AuthenticatedUser) -> OwnerDisbursements:
        if not actor.is_admin and not (actor.role == UserRole.OWNER and actor.id == owner_id):
            raise AuthorizationException("view_disbursements", f"owner:{owner_id}", actor.id)

        records = [r for r in await self.payment_repo.list_by_owner(owner_id, self.limit) if r.is_collected]

        summary = OwnerDisbursementSummary()
        for record in records:
            summary.total_collected += record.amount
            summary.total_fees += record.platform_fee
            if record.disbursement_status == DisbursementStatus.COMPLETED:
                summary.total_disbursed += record.disbursement_amount
            elif record.disbursement_status != DisbursementStatus.NOT_REQUIRED:
                summary.pending_amount += record.disbursement_amount
        counts = Counter(r.disbursement_status.value for r in records)
        summary.counts = {status.value: counts.get(status.value, 0) for status in DisbursementStatus}

        return OwnerDisbursements(
            owner_id=owner_id,
            disbursements=[DisbursementView.from_record(r) for r in records],
            summary=summary,
        )


class GetPaymentHistoryUseCase:
    """A tenant's payments, newest first. Owners see only their own properties' rows."""

    def __init__(self, payment_repository: IPaymentRecordRepository, limit: int = 50):
        self.payment_repo = payment_repository
        self.limit = limit

    async def execute(self, tenant_id: str, actor: AuthenticatedUser) -> list[PaymentRecord]:
        ensure_can_view_tenant(actor, tenant_id)
        records = await self.payment_repo.list_by_tenant(tenant_id, self.limit)
        return [r for r in records if can_view_record(actor, r)]


class ListPropertyPaymentsUseCase:
    """
    Every payment made against one property, newest first.

    Restricted to the property's owner and admins.
    """

    def __init__(
        self,
        payment_repository: IPaymentRecordRepository,
        property_directory: IPropertyDirectory,
        limit: int = 100,
    ):
        self.payment_repo = payment_repository
        self.directory = property_directory
        self.limit = limit

    async def execute(self, property_id: str, actor: AuthenticatedUser) -> list[PaymentRecord]:
        """
        Raises:
            EntityNotFoundException: Unknown property
            AuthorizationException: Caller neither owns the property nor is an admin
        """
        prop = await self.directory.get_property(property_id)
        if prop is None:
            raise EntityNotFoundException("Property", property_id)
        if not actor.is_admin and actor.id != prop.owner_id:
            raise AuthorizationException("view_property_payments", f"property:{property_id}", actor.id)
        return await self.payment_repo.list_by_property(property_id, self.limit)
