"""
Payments Domain Container.

Single Responsibility: wire all payments domain dependencies.
"""

import logging
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from rentpay.domains.payments.application.services import PaymentNotifier
from rentpay.domains.payments.application.use_cases import (
    CollectionOrchestrator,
    DisbursementOrchestrator,
    GetDisbursementStatusUseCase,
    GetPaymentHistoryUseCase,
    GetRentBalanceUseCase,
    ListOwnerDisbursementsUseCase,
    ListPropertyPaymentsUseCase,
)
from rentpay.domains.payments.infrastructure.repositories import (
    SQLAlchemyPaymentRecordRepository,
    SQLAlchemyPropertyDirectory,
)

if TYPE_CHECKING:
    from rentpay.core.container.base import BaseContainer

logger = logging.getLogger(__name__)


class PaymentsContainer:
    """
    Payments domain container.

    Repositories and use cases are built per request around the request's
    database session; provider clients come from the base container.
    """

    def __init__(self, base: "BaseContainer"):
        """
        Initialize payments container.

        Args:
            base: BaseContainer with shared singletons
        """
        self._base = base

    # ==================== REPOSITORIES ====================

    def create_payment_record_repository(self, db: AsyncSession) -> SQLAlchemyPaymentRecordRepository:
        return SQLAlchemyPaymentRecordRepository(session=db)

    def create_property_directory(self, db: AsyncSession) -> SQLAlchemyPropertyDirectory:
        return SQLAlchemyPropertyDirectory(session=db)

    def create_notifier(self, db: AsyncSession) -> PaymentNotifier:
        return PaymentNotifier(self._base.get_notification_sender(), self.create_property_directory(db))

    # ==================== USE CASES ====================

    def create_disbursement_orchestrator(self, db: AsyncSession) -> DisbursementOrchestrator:
        settings = self._base.settings
        return DisbursementOrchestrator(
            payment_repository=self.create_payment_record_repository(db),
            gateway=self._base.get_gateway(),
            notifier=self.create_notifier(db),
            retry_batch_limit=settings.DISBURSEMENT_RETRY_BATCH_LIMIT,
        )

    def create_collection_orchestrator(self, db: AsyncSession) -> CollectionOrchestrator:
        settings = self._base.settings
        return CollectionOrchestrator(
            payment_repository=self.create_payment_record_repository(db),
            gateway=self._base.get_gateway(),
            property_directory=self.create_property_directory(db),
            notifier=self.create_notifier(db),
            disburser=self.create_disbursement_orchestrator(db),
            fee_percentage=settings.PLATFORM_FEE_PERCENTAGE,
            min_amount=settings.PAYMENT_MIN_AMOUNT,
            max_amount=settings.PAYMENT_MAX_AMOUNT,
            auto_disbursement_enabled=settings.AUTO_DISBURSEMENT_ENABLED,
        )

    def create_get_rent_balance_use_case(self, db: AsyncSession) -> GetRentBalanceUseCase:
        settings = self._base.settings
        return GetRentBalanceUseCase(
            payment_repository=self.create_payment_record_repository(db),
            property_directory=self.create_property_directory(db),
            window_size=settings.BALANCE_WINDOW_SIZE,
            due_day=settings.RENT_DUE_DAY,
        )

    def create_get_disbursement_status_use_case(self, db: AsyncSession) -> GetDisbursementStatusUseCase:
        return GetDisbursementStatusUseCase(payment_repository=self.create_payment_record_repository(db))

    def create_list_owner_disbursements_use_case(self, db: AsyncSession) -> ListOwnerDisbursementsUseCase:
        return ListOwnerDisbursementsUseCase(payment_repository=self.create_payment_record_repository(db))

    def create_get_payment_history_use_case(self, db: AsyncSession) -> GetPaymentHistoryUseCase:
        return GetPaymentHistoryUseCase(payment_repository=self.create_payment_record_repository(db))

    def create_list_property_payments_use_case(self, db: AsyncSession) -> ListPropertyPaymentsUseCase:
        return ListPropertyPaymentsUseCase(
            payment_repository=self.create_payment_record_repository(db),
            property_directory=self.create_property_directory(db),
        )
