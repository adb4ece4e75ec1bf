"""
Read access rules for payment records.
"""

from rentpay.core.domain import AuthorizationException
from rentpay.domains.payments.application.dto import AuthenticatedUser
from rentpay.domains.payments.domain.entities import PaymentRecord
from rentpay.domains.payments.domain.value_objects import UserRole


def can_view_record(actor: AuthenticatedUser, record: PaymentRecord) -> bool:
    if actor.is_admin:
        return True
    if actor.role == UserRole.TENANT:
        return record.tenant_id == actor.id
    if actor.role == UserRole.OWNER:
        return record.owner_id == actor.id
    return False


def ensure_can_manage_disbursement(actor: AuthenticatedUser, record: PaymentRecord) -> None:
    """Only the property owner or an admin may trigger a disbursement."""
    if actor.is_admin:
        return
    if actor.role == UserRole.OWNER and record.owner_id == actor.id:
        return
    raise AuthorizationException("disburse", f"payment:{record.id}", actor.id)


def ensure_can_view_tenant(actor: AuthenticatedUser, tenant_id: str) -> None:
    """Tenants only see themselves; owners and admins are scoped later by property."""
    if actor.role == UserRole.TENANT and actor.id != tenant_id:
        raise AuthorizationException("view_payments", f"tenant:{tenant_id}", actor.id)
