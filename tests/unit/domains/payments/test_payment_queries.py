"""
Unit tests for the read-side use cases.

Tests:
- GetRentBalanceUseCase
- GetDisbursementStatusUseCase
- ListOwnerDisbursementsUseCase
- GetPaymentHistoryUseCase
- ListPropertyPaymentsUseCase
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from rentpay.core.domain import AuthorizationException, EntityNotFoundException, ValidationException
from rentpay.domains.payments.application.dto import AuthenticatedUser, TenantSnapshot
from rentpay.domains.payments.application.use_cases import (
    GetDisbursementStatusUseCase,
    GetPaymentHistoryUseCase,
    GetRentBalanceRequest,
    GetRentBalanceUseCase,
    ListOwnerDisbursementsUseCase,
    ListPropertyPaymentsUseCase,
)
from rentpay.domains.payments.domain.value_objects import DisbursementStatus, UserRole

# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def balance_use_case(payment_repository, property_directory) -> GetRentBalanceUseCase:
    return GetRentBalanceUseCase(payment_repository=payment_repository, property_directory=property_directory)


@pytest.fixture
def today() -> date:
    return date(2026, 3, 10)


# ============================================================================
# GetRentBalanceUseCase Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_after_overpayment(balance_use_case, make_record, tenant_user, today):
    """Test rent 25000 with one successful 30000 payment leaves 20000."""
    make_record(amount="30000")

    balance = await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-1", actor=tenant_user), today=today)

    assert balance.property_id == "p-1"
    assert balance.total_rent == Decimal("25000")
    assert balance.total_paid == Decimal("30000.00")
    assert balance.balance == Decimal("20000")
    assert balance.due_date == date(2026, 4, 5)
    assert len(balance.recent_payments) == 1
    assert balance.last_payment_date is not None


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_ignores_unsuccessful_payments(balance_use_case, make_record, tenant_user, today):
    make_record(amount="10000")
    make_record(amount="5000", collected=False)

    balance = await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-1", actor=tenant_user), today=today)

    assert balance.total_paid == Decimal("10000.00")
    assert balance.balance == Decimal("15000")
    assert [p.status for p in balance.recent_payments] == ["success"]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_uses_newest_five_payments(balance_use_case, make_record, tenant_user, today):
    base = datetime(2026, 1, 1, tzinfo=UTC)
    for day in range(7):
        make_record(amount="1000", created_at=base + timedelta(days=day))

    balance = await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-1", actor=tenant_user), today=today)

    assert balance.total_paid == Decimal("5000.00")
    assert balance.balance == Decimal("20000")
    assert balance.last_payment_date == base + timedelta(days=6)


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_without_payments(balance_use_case, tenant_user, today):
    balance = await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-1", actor=tenant_user), today=today)

    assert balance.total_paid == Decimal("0")
    assert balance.balance == Decimal("25000")
    assert balance.last_payment_date is None
    assert balance.recent_payments == []


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_tenant_cannot_see_other_tenant(balance_use_case, tenant_user):
    with pytest.raises(AuthorizationException):
        await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-2", actor=tenant_user))


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_owner_of_property(balance_use_case, owner_user, today):
    balance = await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-1", actor=owner_user), today=today)

    assert balance.balance == Decimal("25000")


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_rejects_owner_of_other_property(balance_use_case):
    other_owner = AuthenticatedUser(id="o-2", role=UserRole.OWNER)

    with pytest.raises(AuthorizationException):
        await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-1", actor=other_owner))


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_unknown_tenant(balance_use_case, admin_user):
    with pytest.raises(EntityNotFoundException):
        await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-404", actor=admin_user))


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_unlinked_tenant(balance_use_case, property_directory, admin_user):
    property_directory.tenants["t-9"] = TenantSnapshot(id="t-9", name="Unlinked")

    with pytest.raises(ValidationException):
        await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-9", actor=admin_user))


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_balance_unknown_property(balance_use_case, admin_user):
    with pytest.raises(EntityNotFoundException):
        await balance_use_case.execute(GetRentBalanceRequest(tenant_id="t-1", actor=admin_user, property_id="p-404"))


# ============================================================================
# GetDisbursementStatusUseCase Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_disbursement_status_for_owner(payment_repository, make_record, owner_user):
    record = make_record(disbursement_status=DisbursementStatus.PROCESSING)
    use_case = GetDisbursementStatusUseCase(payment_repository)

    view = await use_case.execute(record.id, owner_user)

    assert view.payment_id == record.id
    assert view.collection_status == "success"
    assert view.disbursement_status == "processing"
    assert view.disbursement_amount == Decimal("950.00")


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_disbursement_status_hidden_from_other_tenant(payment_repository, make_record):
    record = make_record()
    stranger = AuthenticatedUser(id="t-2", role=UserRole.TENANT)

    with pytest.raises(AuthorizationException):
        await GetDisbursementStatusUseCase(payment_repository).execute(record.id, stranger)


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_disbursement_status_not_found(payment_repository, admin_user):
    with pytest.raises(EntityNotFoundException):
        await GetDisbursementStatusUseCase(payment_repository).execute(404, admin_user)


# ============================================================================
# ListOwnerDisbursementsUseCase Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_owner_disbursement_summary(payment_repository, make_record, owner_user):
    make_record(amount="1000", disbursement_status=DisbursementStatus.COMPLETED)
    make_record(amount="2000", disbursement_status=DisbursementStatus.FAILED)
    make_record(amount="3000")
    make_record(amount="4000", collected=False)
    make_record(amount="5000", owner_id="o-2")

    result = await ListOwnerDisbursementsUseCase(payment_repository).execute("o-1", owner_user)

    assert len(result.disbursements) == 3
    summary = result.summary
    assert summary.total_collected == Decimal("6000.00")
    assert summary.total_fees == Decimal("300.00")
    assert summary.total_disbursed == Decimal("950.00")
    assert summary.pending_amount == Decimal("4750.00")
    assert summary.counts["completed"] == 1
    assert summary.counts["failed"] == 1
    assert summary.counts["pending"] == 1
    assert summary.counts["processing"] == 0


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_owner_disbursements_rejects_other_owner(payment_repository):
    other_owner = AuthenticatedUser(id="o-2", role=UserRole.OWNER)

    with pytest.raises(AuthorizationException):
        await ListOwnerDisbursementsUseCase(payment_repository).execute("o-1", other_owner)


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_owner_disbursements_for_admin(payment_repository, make_record, admin_user):
    make_record()

    result = await ListOwnerDisbursementsUseCase(payment_repository).execute("o-1", admin_user)

    assert len(result.disbursements) == 1


# ============================================================================
# GetPaymentHistoryUseCase Tests
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_history_newest_first_for_tenant(payment_repository, make_record, tenant_user):
    older = make_record(created_at=datetime(2026, 1, 1, tzinfo=UTC))
    newer = make_record(collected=False, created_at=datetime(2026, 2, 1, tzinfo=UTC))

    records = await GetPaymentHistoryUseCase(payment_repository).execute("t-1", tenant_user)

    assert [r.id for r in records] == [newer.id, older.id]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_history_owner_sees_only_own_properties(payment_repository, make_record, owner_user):
    mine = make_record(owner_id="o-1")
    make_record(owner_id="o-2")

    records = await GetPaymentHistoryUseCase(payment_repository).execute("t-1", owner_user)

    assert [r.id for r in records] == [mine.id]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_history_rejects_other_tenant(payment_repository, tenant_user):
    with pytest.raises(AuthorizationException):
        await GetPaymentHistoryUseCase(payment_repository).execute("t-2", tenant_user)


# ============================================================================
# ListPropertyPaymentsUseCase Tests
# ============================================================================


@pytest.fixture
def property_payments(payment_repository, property_directory) -> ListPropertyPaymentsUseCase:
    return ListPropertyPaymentsUseCase(payment_repository, property_directory)


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_property_payments_newest_first(property_payments, make_record, owner_user):
    older = make_record(created_at=datetime(2026, 1, 1, tzinfo=UTC))
    newer = make_record(tenant_id="t-3", collected=False, created_at=datetime(2026, 2, 1, tzinfo=UTC))
    make_record(property_id="p-2", owner_id="o-2")

    records = await property_payments.execute("p-1", owner_user)

    assert [r.id for r in records] == [newer.id, older.id]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_property_payments_for_admin(property_payments, make_record, admin_user):
    record = make_record()

    records = await property_payments.execute("p-1", admin_user)

    assert [r.id for r in records] == [record.id]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_property_payments_unknown_property(property_payments, owner_user):
    with pytest.raises(EntityNotFoundException):
        await property_payments.execute("p-404", owner_user)


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_property_payments_rejects_other_owner(property_payments, make_record):
    make_record()
    other_owner = AuthenticatedUser(id="o-2", role=UserRole.OWNER)

    with pytest.raises(AuthorizationException):
        await property_payments.execute("p-1", other_owner)
