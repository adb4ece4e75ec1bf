"""
Collection Orchestrator

Collects rent from a tenant through an STK push and applies the provider's
asynchronous result, including the automatic hand-off to disbursement.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from rentpay.core.domain import AuthorizationException, EntityNotFoundException, ValidationException
from rentpay.domains.payments.application.dto import WEBHOOK_ACK, AuthenticatedUser, CollectionCallback
from rentpay.domains.payments.application.ports import (
    IPaymentGateway,
    IPaymentRecordRepository,
    IPropertyDirectory,
)
from rentpay.domains.payments.application.services import PaymentNotifier
from rentpay.domains.payments.domain.entities import PaymentRecord
from rentpay.domains.payments.domain.services import is_whole_shillings, normalize_phone_number
from rentpay.domains.payments.domain.value_objects import CollectionStatus

if TYPE_CHECKING:
    from rentpay.domains.payments.application.use_cases.disbursement import DisbursementOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class InitiateCollectionRequest:
    """Request for collecting rent from a tenant"""

    tenant: AuthenticatedUser
    property_id: str
    amount: Decimal
    phone_number: str


@dataclass
class InitiateCollectionResponse:
    payment_id: int | None
    transaction_id: str
    checkout_request_id: str | None
    merchant_request_id: str | None
    amount: Decimal
    platform_fee: Decimal
    disbursement_amount: Decimal
    status: str
    customer_message: str | None = None


@dataclass
class ReconcileResult:
    checked: int = 0
    succeeded: int = 0
    failed: int = 0
    unchanged: int = 0
    errors: list[dict[str, object]] = field(default_factory=list)


class CollectionOrchestrator:
    """
    Collection state machine driver.

    Single Responsibility: tenant-to-platform leg of a rent payment.
    Dependency Inversion: gateway, repository, directory and notifier are injected.
    """

    def __init__(
        self,
        payment_repository: IPaymentRecordRepository,
        gateway: IPaymentGateway,
        property_directory: IPropertyDirectory,
        notifier: PaymentNotifier | None = None,
        disburser: "DisbursementOrchestrator | None" = None,
        fee_percentage: Decimal = Decimal("5"),
        min_amount: Decimal = Decimal("1"),
        max_amount: Decimal = Decimal("150000"),
        auto_disbursement_enabled: bool = True,
    ):
        self.payment_repo = payment_repository
        self.gateway = gateway
        self.directory = property_directory
        self.notifier = notifier
        self.disburser = disburser
        self.fee_percentage = Decimal(fee_percentage)
        self.min_amount = Decimal(min_amount)
        self.max_amount = Decimal(max_amount)
        self.auto_disbursement_enabled = auto_disbursement_enabled

    async def initiate(self, request: InitiateCollectionRequest) -> InitiateCollectionResponse:
        """
        Create a pending payment record and push the payment prompt.

        Raises:
            EntityNotFoundException: Unknown property
            AuthorizationException: Tenant is not linked to the property
            ValidationException: Amount out of range or bad phone number
            GatewayError: The provider rejected the push (record is persisted as failed)
        """
        tenant = request.tenant
        prop = await self.directory.get_property(request.property_id)
        if prop is None:
            raise EntityNotFoundException("Property", request.property_id)
        if tenant.linked_property_id != prop.id:
            raise AuthorizationException("pay_rent", f"property:{prop.id}", tenant.id)

        amount = self._validate_amount(request.amount)
        phone_number = normalize_phone_number(request.phone_number)

        record = PaymentRecord.create(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            property_id=prop.id,
            property_name=prop.name,
            owner_id=prop.owner_id,
            owner_paybill=prop.paybill,
            owner_account_number=prop.account_number,
            phone_number=phone_number,
            amount=amount,
            fee_percentage=self.fee_percentage,
        )
        record = await self.payment_repo.add(record)
        logger.info(
            f"[COLLECTION] Payment {record.id} created: tenant={tenant.id}, property={prop.id}, "
            f"amount={record.amount}, fee={record.platform_fee}"
        )

        try:
            accepted = await self.gateway.initiate_collection(
                phone_number=phone_number,
                amount=record.amount,
                account_reference=prop.code,
                description=f"Rent payment for {prop.name}",
            )
        except Exception as e:
            reason = getattr(e, "error_message", None) or str(e) or e.__class__.__name__
            logger.error(f"[COLLECTION] STK push failed for payment {record.id}: {reason}")
            record.mark_collection_failed(reason)
            await self.payment_repo.compare_and_set(record, expected_status=[CollectionStatus.PENDING])
            raise

        record.mark_collection_accepted(accepted.checkout_request_id, accepted.merchant_request_id)
        await self.payment_repo.compare_and_set(record, expected_status=[CollectionStatus.PENDING])
        logger.info(f"[COLLECTION] Payment {record.id} awaiting customer ({accepted.checkout_request_id})")

        return InitiateCollectionResponse(
            payment_id=record.id,
            transaction_id=record.transaction_id,
            checkout_request_id=record.checkout_request_id,
            merchant_request_id=record.merchant_request_id,
            amount=record.amount,
            platform_fee=record.platform_fee,
            disbursement_amount=record.disbursement_amount,
            status=record.status.value,
            customer_message=accepted.customer_message,
        )

    def _validate_amount(self, amount: Decimal) -> Decimal:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError) as e:
            raise ValidationException(f"Invalid amount: {amount!r}", field="amount") from e
        if not value.is_finite() or value < self.min_amount or value > self.max_amount:
            raise ValidationException(
                f"Amount must be between KES {self.min_amount:,} and KES {self.max_amount:,}",
                field="amount",
                details={"min": str(self.min_amount), "max": str(self.max_amount)},
            )
        if not is_whole_shillings(value):
            raise ValidationException("Amount must be a whole number of shillings", field="amount")
        return value

    async def handle_collection_webhook(self, callback: CollectionCallback | None) -> dict[str, object]:
        """
        Apply an STK push result. Always returns the acknowledgement body;
        unknown ids, duplicates and internal errors are logged and dropped.
        """
        try:
            if callback is None:
                logger.warning("[COLLECTION] STK callback without stkCallback body, ignoring")
            else:
                await self._apply_callback(callback)
        except Exception as e:
            logger.exception(f"[COLLECTION] Error processing STK callback: {e}")
        return dict(WEBHOOK_ACK)

    async def _apply_callback(self, callback: CollectionCallback) -> None:
        record = await self.payment_repo.get_by_checkout_request_id(callback.checkout_request_id)
        if record is None:
            logger.warning(f"[COLLECTION] No payment for checkout {callback.checkout_request_id}, ignoring")
            return

        await self._apply_result(
            record,
            succeeded=callback.is_success,
            receipt_number=callback.receipt_number,
            result_desc=callback.result_desc,
        )

    async def _apply_result(
        self,
        record: PaymentRecord,
        succeeded: bool,
        receipt_number: str | None,
        result_desc: str,
    ) -> bool:
        """Settle a pending record. Returns False when it was already settled."""
        if record.status != CollectionStatus.PENDING:
            logger.info(f"[COLLECTION] Duplicate result for payment {record.id} ({record.status.value}), ignoring")
            return False

        if succeeded:
            record.mark_collection_succeeded(receipt_number)
        else:
            record.mark_collection_failed(result_desc or "Payment was not completed")

        if not await self.payment_repo.compare_and_set(record, expected_status=[CollectionStatus.PENDING]):
            return False

        logger.info(f"[COLLECTION] Payment {record.id} {record.status.value}: {result_desc}")
        if succeeded:
            await self._after_success(record)
        return True

    async def _after_success(self, record: PaymentRecord) -> None:
        if self.notifier is not None:
            await self.notifier.collection_succeeded(record)

        if not self.auto_disbursement_enabled or self.disburser is None:
            return
        try:
            await self.disburser.initiate(record)
        except Exception as e:
            logger.error(f"[COLLECTION] Auto-disbursement failed for payment {record.id}: {e}")

    async def reconcile_pending(self, older_than_minutes: int = 10, limit: int = 50) -> ReconcileResult:
        """
        Query the provider for collections still pending after the cutoff
        and settle them through the same path as the webhook.
        """
        cutoff = datetime.now(UTC) - timedelta(minutes=older_than_minutes)
        records = await self.payment_repo.list_stale_pending(cutoff, limit)
        result = ReconcileResult()

        for record in records:
            result.checked += 1
            try:
                status = await self.gateway.query_collection_status(record.checkout_request_id or "")
                if not status.is_settled:
                    result.unchanged += 1
                    continue

                succeeded = status.result_code == "0"
                applied = await self._apply_result(record, succeeded, None, status.result_desc)
            except Exception as e:
                logger.warning(f"[COLLECTION] Reconcile of payment {record.id} failed: {e}")
                result.errors.append({"payment_id": record.id, "error": getattr(e, "error_message", None) or str(e)})
                continue

            if not applied:
                result.unchanged += 1
            elif succeeded:
                result.succeeded += 1
            else:
                result.failed += 1

        logger.info(
            f"[COLLECTION] Reconciled {result.checked} pending payments: "
            f"{result.succeeded} succeeded, {result.failed} failed, {result.unchanged} unchanged"
        )
        return result
