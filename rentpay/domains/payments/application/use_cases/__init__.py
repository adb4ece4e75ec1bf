"""
Payments Use Cases
"""

from rentpay.domains.payments.application.use_cases.collection import (
    CollectionOrchestrator,
    InitiateCollectionRequest,
    InitiateCollectionResponse,
    ReconcileResult,
)
from rentpay.domains.payments.application.use_cases.disbursement import (
    DisbursementOrchestrator,
    DisbursementOutcome,
    RetryBatchResult,
    RetryItemResult,
)
from rentpay.domains.payments.application.use_cases.get_rent_balance import (
    GetRentBalanceRequest,
    GetRentBalanceUseCase,
    RecentPayment,
    RentBalance,
)
from rentpay.domains.payments.application.use_cases.payment_queries import (
    DisbursementView,
    GetDisbursementStatusUseCase,
    GetPaymentHistoryUseCase,
    ListOwnerDisbursementsUseCase,
    ListPropertyPaymentsUseCase,
    OwnerDisbursements,
    OwnerDisbursementSummary,
)

__all__ = [
    "CollectionOrchestrator",
    "InitiateCollectionRequest",
    "InitiateCollectionResponse",
    "ReconcileResult",
    "DisbursementOrchestrator",
    "DisbursementOutcome",
    "RetryBatchResult",
    "RetryItemResult",
    "GetRentBalanceRequest",
    "GetRentBalanceUseCase",
    "RecentPayment",
    "RentBalance",
    "DisbursementView",
    "GetDisbursementStatusUseCase",
    "GetPaymentHistoryUseCase",
    "ListOwnerDisbursementsUseCase",
    "ListPropertyPaymentsUseCase",
    "OwnerDisbursements",
    "OwnerDisbursementSummary",
]
