"""
Payments API Routes

FastAPI router for rent collection, disbursement and the Daraja webhooks.
Domain and gateway errors are mapped to HTTP by the app's exception handlers.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request

from rentpay.api.auth import get_current_user, require_roles
from rentpay.core.domain.exceptions import ValidationException
from rentpay.domains.payments.api.dependencies import (
    get_collection_orchestrator,
    get_disbursement_orchestrator,
    get_disbursement_status_use_case,
    get_list_owner_disbursements_use_case,
    get_list_property_payments_use_case,
    get_payment_history_use_case,
    get_rent_balance_use_case,
)
from rentpay.domains.payments.api.schemas import (
    B2BResultPayload,
    DisbursementOutcomeResponse,
    DisbursementStatusResponse,
    InitiatePaymentRequest,
    InitiatePaymentResponse,
    OwnerDisbursementsResponse,
    PaymentHistoryItem,
    PropertyPaymentItem,
    ReconcileResponse,
    RentBalanceResponse,
    RetryBatchResponse,
    StkCallbackPayload,
    WebhookAck,
)
from rentpay.domains.payments.application.dto import WEBHOOK_ACK, AuthenticatedUser
from rentpay.domains.payments.application.use_cases import (
    CollectionOrchestrator,
    DisbursementOrchestrator,
    GetDisbursementStatusUseCase,
    GetPaymentHistoryUseCase,
    GetRentBalanceRequest,
    GetRentBalanceUseCase,
    InitiateCollectionRequest,
    ListOwnerDisbursementsUseCase,
    ListPropertyPaymentsUseCase,
)
from rentpay.domains.payments.domain.value_objects import UserRole

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger(__name__)


# ============================================================================
# Collection
# ============================================================================


@router.post("/initiate", response_model=InitiatePaymentResponse)
async def initiate_payment(
    body: InitiatePaymentRequest,
    user: AuthenticatedUser = Depends(require_roles(UserRole.TENANT)),  # noqa: B008
    orchestrator: CollectionOrchestrator = Depends(get_collection_orchestrator),  # noqa: B008
):
    """
    Start an M-Pesa STK push for the tenant's rent.

    The payment settles asynchronously through the `/callback` webhook.
    """
    property_id = body.property_id or user.linked_property_id
    if not property_id:
        raise ValidationException("Tenant is not linked to a property", field="property_id")

    result = await orchestrator.initiate(
        InitiateCollectionRequest(
            tenant=user,
            property_id=property_id,
            amount=body.amount,
            phone_number=body.phone_number,
        )
    )
    return InitiatePaymentResponse(
        payment_id=result.payment_id,
        transaction_id=result.transaction_id,
        checkout_request_id=result.checkout_request_id,
        merchant_request_id=result.merchant_request_id,
        amount=result.amount,
        platform_fee=result.platform_fee,
        disbursement_amount=result.disbursement_amount,
        status=result.status,
        message=result.customer_message or "Check your phone to complete the payment",
    )


@router.post("/callback", response_model=WebhookAck)
async def collection_callback(
    request: Request,
    orchestrator: CollectionOrchestrator = Depends(get_collection_orchestrator),  # noqa: B008
):
    """
    STK push result webhook.

    Note: Always returns 200 with the ack body. Daraja retries otherwise.
    """
    raw_body = await request.body()
    logger.info(f"[MPESA-WEBHOOK] STK callback received: {raw_body.decode(errors='replace')[:500]}")

    try:
        payload = StkCallbackPayload.model_validate_json(raw_body)
    except Exception as e:
        logger.error(f"[MPESA-WEBHOOK] STK payload validation failed: {e}")
        return WEBHOOK_ACK

    return await orchestrator.handle_collection_webhook(payload.to_callback())


# ============================================================================
# Disbursement webhooks
# ============================================================================


async def _handle_b2b_result(request: Request, orchestrator: DisbursementOrchestrator, source: str):
    raw_body = await request.body()
    logger.info(f"[MPESA-WEBHOOK] B2B {source} received: {raw_body.decode(errors='replace')[:500]}")

    try:
        payload = B2BResultPayload.model_validate_json(raw_body)
    except Exception as e:
        logger.error(f"[MPESA-WEBHOOK] B2B {source} payload validation failed: {e}")
        return WEBHOOK_ACK

    return await orchestrator.handle_disbursement_webhook(payload.to_callback())


@router.post("/b2b-callback", response_model=WebhookAck)
async def disbursement_callback(
    request: Request,
    orchestrator: DisbursementOrchestrator = Depends(get_disbursement_orchestrator),  # noqa: B008
):
    """B2B result webhook. Always acknowledged."""
    return await _handle_b2b_result(request, orchestrator, "result")


@router.post("/b2b-timeout", response_model=WebhookAck)
async def disbursement_timeout(
    request: Request,
    orchestrator: DisbursementOrchestrator = Depends(get_disbursement_orchestrator),  # noqa: B008
):
    """B2B queue-timeout webhook, handled like a result. Always acknowledged."""
    return await _handle_b2b_result(request, orchestrator, "timeout")


# ============================================================================
# Queries
# ============================================================================


@router.get("/balance/{tenant_id}", response_model=RentBalanceResponse)
async def get_rent_balance(
    tenant_id: str,
    property_id: str | None = Query(None, description="Defaults to the tenant's linked property"),
    user: AuthenticatedUser = Depends(get_current_user),  # noqa: B008
    use_case: GetRentBalanceUseCase = Depends(get_rent_balance_use_case),  # noqa: B008
):
    """Outstanding balance for the current period and the most recent payments."""
    balance = await use_case.execute(
        GetRentBalanceRequest(tenant_id=tenant_id, actor=user, property_id=property_id)
    )
    return RentBalanceResponse.model_validate(balance)


@router.get("/history/{tenant_id}", response_model=list[PaymentHistoryItem])
async def get_payment_history(
    tenant_id: str,
    user: AuthenticatedUser = Depends(get_current_user),  # noqa: B008
    use_case: GetPaymentHistoryUseCase = Depends(get_payment_history_use_case),  # noqa: B008
):
    """Payment records of a tenant, newest first."""
    records = await use_case.execute(tenant_id, user)
    return [PaymentHistoryItem.from_record(record) for record in records]


@router.get("/property/{property_id}", response_model=list[PropertyPaymentItem])
async def list_property_payments(
    property_id: str,
    user: AuthenticatedUser = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN)),  # noqa: B008
    use_case: ListPropertyPaymentsUseCase = Depends(get_list_property_payments_use_case),  # noqa: B008
):
    """Payments received for one of the caller's properties, newest first."""
    records = await use_case.execute(property_id, user)
    return [PropertyPaymentItem.from_record(record) for record in records]


@router.get("/disbursement-status/{payment_id}", response_model=DisbursementStatusResponse)
async def get_disbursement_status(
    payment_id: int,
    user: AuthenticatedUser = Depends(get_current_user),  # noqa: B008
    use_case: GetDisbursementStatusUseCase = Depends(get_disbursement_status_use_case),  # noqa: B008
):
    view = await use_case.execute(payment_id, user)
    return DisbursementStatusResponse.model_validate(view)


@router.get("/disbursements/owner", response_model=OwnerDisbursementsResponse)
async def list_owner_disbursements(
    owner_id: str | None = Query(None, description="Admin only: owner to list"),
    user: AuthenticatedUser = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN)),  # noqa: B008
    use_case: ListOwnerDisbursementsUseCase = Depends(get_list_owner_disbursements_use_case),  # noqa: B008
):
    """Disbursements for the calling owner, with totals."""
    target = owner_id if (owner_id and user.is_admin) else user.id
    result = await use_case.execute(target, user)
    return OwnerDisbursementsResponse.model_validate(result)


# ============================================================================
# Disbursement commands
# ============================================================================


@router.post("/disburse/{payment_id}", response_model=DisbursementOutcomeResponse)
async def disburse_payment(
    payment_id: int,
    user: AuthenticatedUser = Depends(require_roles(UserRole.OWNER, UserRole.ADMIN)),  # noqa: B008
    orchestrator: DisbursementOrchestrator = Depends(get_disbursement_orchestrator),  # noqa: B008
):
    """Manually start (or restart) the disbursement of a collected payment."""
    outcome = await orchestrator.manual_disburse(payment_id, user)
    return DisbursementOutcomeResponse(
        payment_id=outcome.payment_id,
        initiated=outcome.initiated,
        disbursement_status=outcome.disbursement_status,
        conversation_id=outcome.conversation_id,
        message=outcome.message,
    )


@router.post("/retry-failed-disbursements", response_model=RetryBatchResponse)
async def retry_failed_disbursements(
    limit: int | None = Query(None, ge=1, le=500),
    user: AuthenticatedUser = Depends(require_roles(UserRole.ADMIN)),  # noqa: B008
    orchestrator: DisbursementOrchestrator = Depends(get_disbursement_orchestrator),  # noqa: B008
):
    """Retry every failed disbursement, one at a time."""
    logger.info(f"[DISBURSEMENT] Batch retry requested by {user.id}")
    result = await orchestrator.retry_all_failed(batch_limit=limit)
    return RetryBatchResponse.model_validate(result)


@router.post("/reconcile-pending", response_model=ReconcileResponse)
async def reconcile_pending(
    older_than_minutes: int = Query(10, ge=1),
    limit: int = Query(50, ge=1, le=500),
    user: AuthenticatedUser = Depends(require_roles(UserRole.ADMIN)),  # noqa: B008
    orchestrator: CollectionOrchestrator = Depends(get_collection_orchestrator),  # noqa: B008
):
    """Query the provider for collections stuck in pending and settle them."""
    logger.info(f"[COLLECTION] Reconciliation requested by {user.id}")
    result = await orchestrator.reconcile_pending(older_than_minutes=older_than_minutes, limit=limit)
    return ReconcileResponse.model_validate(result)


__all__ = ["router"]
