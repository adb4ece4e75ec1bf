"""
Payments API Dependencies

FastAPI dependencies for the payments domain. Every use case is built
around the request's database session.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from rentpay.core.container import DependencyContainer
from rentpay.core.container import get_container as get_global_container
from rentpay.database.async_db import get_async_db
from rentpay.domains.payments.application.use_cases import (
    CollectionOrchestrator,
    DisbursementOrchestrator,
    GetDisbursementStatusUseCase,
    GetPaymentHistoryUseCase,
    GetRentBalanceUseCase,
    ListOwnerDisbursementsUseCase,
    ListPropertyPaymentsUseCase,
)


def get_container() -> DependencyContainer:
    """Get dependency container instance."""
    return get_global_container()


def get_collection_orchestrator(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> CollectionOrchestrator:
    return container.payments.create_collection_orchestrator(db)


def get_disbursement_orchestrator(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> DisbursementOrchestrator:
    return container.payments.create_disbursement_orchestrator(db)


def get_rent_balance_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> GetRentBalanceUseCase:
    return container.payments.create_get_rent_balance_use_case(db)


def get_disbursement_status_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> GetDisbursementStatusUseCase:
    return container.payments.create_get_disbursement_status_use_case(db)


def get_list_owner_disbursements_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> ListOwnerDisbursementsUseCase:
    return container.payments.create_list_owner_disbursements_use_case(db)


def get_payment_history_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> GetPaymentHistoryUseCase:
    return container.payments.create_get_payment_history_use_case(db)


def get_list_property_payments_use_case(
    db: AsyncSession = Depends(get_async_db),  # noqa: B008
    container: DependencyContainer = Depends(get_container),  # noqa: B008
) -> ListPropertyPaymentsUseCase:
    return container.payments.create_list_property_payments_use_case(db)


__all__ = [
    "get_container",
    "get_collection_orchestrator",
    "get_disbursement_orchestrator",
    "get_rent_balance_use_case",
    "get_disbursement_status_use_case",
    "get_list_owner_disbursements_use_case",
    "get_payment_history_use_case",
    "get_list_property_payments_use_case",
]
