"""
Get Rent Balance Use Case

Outstanding rent for a tenant from their recent successful payments.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from decimal import Decimal

from rentpay.core.domain import AuthorizationException, EntityNotFoundException, ValidationException
from rentpay.domains.payments.application.dto import AuthenticatedUser
from rentpay.domains.payments.application.ports import IPaymentRecordRepository, IPropertyDirectory
from rentpay.domains.payments.application.services import ensure_can_view_tenant
from rentpay.domains.payments.domain.services import compute_outstanding_balance, next_due_date
from rentpay.domains.payments.domain.value_objects import UserRole

logger = logging.getLogger(__name__)


@dataclass
class GetRentBalanceRequest:
    """Request for a tenant's rent balance. The property defaults to the tenant's linked one."""

    tenant_id: str
    actor: AuthenticatedUser | None = None
    property_id: str | None = None


@dataclass
class RecentPayment:
    payment_id: int | None
    amount: Decimal
    date: datetime | None
    status: str


@dataclass
class RentBalance:
    tenant_id: str
    property_id: str
    total_rent: Decimal
    total_paid: Decimal
    balance: Decimal
    due_date: date
    last_payment_date: datetime | None = None
    recent_payments: list[RecentPayment] = field(default_factory=list)


class GetRentBalanceUseCase:
    """
    Use case for computing a tenant's outstanding rent.

    Reads only successful collections, newest first, capped at the window size.
    """

    def __init__(
        self,
        payment_repository: IPaymentRecordRepository,
        property_directory: IPropertyDirectory,
        window_size: int = 5,
        due_day: int = 5,
    ):
        self.payment_repo = payment_repository
        self.directory = property_directory
        self.window_size = window_size
        self.due_day = due_day

    async def execute(self, request: GetRentBalanceRequest, today: date | None = None) -> RentBalance:
        """
        Raises:
            AuthorizationException: Caller may not see this tenant
            EntityNotFoundException: Unknown tenant or property
            ValidationException: Tenant is not linked to any property
        """
        if request.actor is not None:
            ensure_can_view_tenant(request.actor, request.tenant_id)

        property_id = request.property_id
        if property_id is None:
            tenant = await self.directory.get_tenant(request.tenant_id)
            if tenant is None:
                raise EntityNotFoundException("Tenant", request.tenant_id)
            if not tenant.linked_property_id:
                raise ValidationException("Tenant is not linked to a property", field="tenant_id")
            property_id = tenant.linked_property_id

        prop = await self.directory.get_property(property_id)
        if prop is None:
            raise EntityNotFoundException("Property", property_id)

        actor = request.actor
        if actor is not None and actor.role == UserRole.OWNER and prop.owner_id != actor.id:
            raise AuthorizationException("view_balance", f"property:{prop.id}", actor.id)

        payments = await self.payment_repo.list_successful_for_tenant(
            request.tenant_id, prop.id, limit=self.window_size
        )
        total_paid, balance = compute_outstanding_balance(
            prop.rent_amount, [p.amount for p in payments], self.window_size
        )

        today = today or datetime.now(UTC).date()
        logger.debug(f"Balance for tenant {request.tenant_id} on property {prop.id}: {balance}")

        return RentBalance(
            tenant_id=request.tenant_id,
            property_id=prop.id,
            total_rent=prop.rent_amount,
            total_paid=total_paid,
            balance=balance,
            due_date=next_due_date(today, self.due_day),
            last_payment_date=(payments[0].paid_at or payments[0].created_at) if payments else None,
            recent_payments=[
                RecentPayment(
                    payment_id=p.id,
                    amount=p.amount,
                    date=p.paid_at or p.created_at,
                    status=p.status.value,
                )
                for p in payments
            ],
        )
