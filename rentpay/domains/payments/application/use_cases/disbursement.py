"""
Disbursement Orchestrator

Forwards the owner's share of a collected rent payment to the owner's
paybill and applies the provider's asynchronous result.
"""

import logging
from dataclasses import dataclass, field

from rentpay.core.domain import EntityNotFoundException
from rentpay.domains.payments.application.dto import WEBHOOK_ACK, AuthenticatedUser, DisbursementCallback
from rentpay.domains.payments.application.ports import IPaymentGateway, IPaymentRecordRepository
from rentpay.domains.payments.application.services import PaymentNotifier, ensure_can_manage_disbursement
from rentpay.domains.payments.domain.entities import PaymentRecord
from rentpay.domains.payments.domain.exceptions import DuplicateDisbursementError, PreconditionError
from rentpay.domains.payments.domain.value_objects import CollectionStatus, DisbursementStatus

logger = logging.getLogger(__name__)


@dataclass
class DisbursementOutcome:
    """Result of a disbursement request. `initiated=False` means nothing was sent."""

    payment_id: int | None
    initiated: bool
    disbursement_status: str
    conversation_id: str | None = None
    message: str = ""


@dataclass
class RetryItemResult:
    payment_id: int | None
    status: str  # 'initiated', 'skipped', 'failed'
    error: str | None = None


@dataclass
class RetryBatchResult:
    total: int = 0
    successful: int = 0
    failed: int = 0
    results: list[RetryItemResult] = field(default_factory=list)


class DisbursementOrchestrator:
    """
    Disbursement state machine driver.

    Every transition is a conditional write on the stored state, so
    concurrent initiations and repeated webhooks are harmless: at most one
    caller wins the claim and reaches the gateway.
    """

    def __init__(
        self,
        payment_repository: IPaymentRecordRepository,
        gateway: IPaymentGateway,
        notifier: PaymentNotifier | None = None,
        retry_batch_limit: int = 50,
    ):
        self.payment_repo = payment_repository
        self.gateway = gateway
        self.notifier = notifier
        self.retry_batch_limit = retry_batch_limit

    async def initiate(self, record: PaymentRecord) -> DisbursementOutcome:
        """
        Start a disbursement for a collected payment.

        A record already processing, completed or not requiring a payout is
        a silent no-op. On a gateway error the record is marked failed and
        the error is re-raised.

        Raises:
            PreconditionError: The collection has not succeeded
        """
        if not record.is_collected:
            raise PreconditionError(
                "collection_not_successful",
                f"Payment {record.id} has not been collected (status: {record.status.value})",
                {"payment_id": record.id, "status": record.status.value},
            )

        try:
            await self._claim(record)
        except DuplicateDisbursementError:
            logger.info(f"[DISBURSEMENT] Payment {record.id} already claimed, skipping")
            current = await self.payment_repo.get_by_id(record.id) if record.id is not None else None
            return self._noop(current or record, "Disbursement already in progress or done")

        remarks = f"Rent disbursement {record.transaction_id}"
        try:
            accepted = await self.gateway.initiate_disbursement(
                destination_paybill=record.owner_paybill,
                amount=record.disbursement_amount,
                destination_reference=record.owner_account_number,
                remarks=remarks,
            )
        except Exception as e:
            reason = getattr(e, "error_message", None) or str(e) or e.__class__.__name__
            logger.error(f"[DISBURSEMENT] Gateway rejected payment {record.id}: {reason}")
            record.fail_disbursement(reason)
            await self.payment_repo.compare_and_set(
                record, expected_disbursement_status=[DisbursementStatus.PROCESSING]
            )
            raise

        record.mark_disbursement_accepted(accepted.conversation_id, accepted.originator_conversation_id)
        await self.payment_repo.compare_and_set(record, expected_disbursement_status=[DisbursementStatus.PROCESSING])
        logger.info(
            f"[DISBURSEMENT] Payment {record.id}: KES {record.disbursement_amount} to paybill "
            f"{record.owner_paybill} accepted ({accepted.conversation_id})"
        )
        return DisbursementOutcome(
            payment_id=record.id,
            initiated=True,
            disbursement_status=record.disbursement_status.value,
            conversation_id=accepted.conversation_id,
            message="Disbursement initiated",
        )

    async def _claim(self, record: PaymentRecord) -> None:
        """Move pending/failed to processing, or raise if someone else holds it."""
        if record.is_disbursement_settled:
            raise DuplicateDisbursementError(record.id)

        record.start_disbursement()
        claimed = await self.payment_repo.compare_and_set(
            record,
            expected_status=[CollectionStatus.SUCCESS],
            expected_disbursement_status=list(DisbursementStatus.startable()),
        )
        if not claimed:
            raise DuplicateDisbursementError(record.id)

    @staticmethod
    def _noop(record: PaymentRecord, message: str) -> DisbursementOutcome:
        return DisbursementOutcome(
            payment_id=record.id,
            initiated=False,
            disbursement_status=record.disbursement_status.value,
            conversation_id=record.disbursement_conversation_id,
            message=message,
        )

    async def manual_disburse(self, payment_id: int, actor: AuthenticatedUser) -> DisbursementOutcome:
        """Owner- or admin-triggered disbursement of one payment."""
        record = await self.payment_repo.get_by_id(payment_id)
        if record is None:
            raise EntityNotFoundException("Payment", payment_id)
        ensure_can_manage_disbursement(actor, record)
        logger.info(f"[DISBURSEMENT] Manual disbursement of payment {payment_id} by {actor.role.value} {actor.id}")
        return await self.initiate(record)

    async def handle_disbursement_webhook(self, callback: DisbursementCallback | None) -> dict[str, object]:
        """
        Apply a B2B result. Always returns the acknowledgement body; errors
        are logged and swallowed so the provider stops redelivering.
        """
        try:
            await self._apply_callback(callback)
        except Exception as e:
            logger.exception(f"[DISBURSEMENT] Error processing B2B result: {e}")
        return dict(WEBHOOK_ACK)

    async def _apply_callback(self, callback: DisbursementCallback | None) -> None:
        if callback is None:
            logger.warning("[DISBURSEMENT] B2B result without a Result body, ignoring")
            return

        record = None
        if callback.conversation_id:
            record = await self.payment_repo.get_by_conversation_id(callback.conversation_id)
        if record is None and callback.originator_conversation_id:
            record = await self.payment_repo.get_by_conversation_id(callback.originator_conversation_id)
        if record is None:
            logger.warning(
                f"[DISBURSEMENT] No payment for conversation {callback.conversation_id} "
                f"/ {callback.originator_conversation_id}, ignoring"
            )
            return

        if record.disbursement_status != DisbursementStatus.PROCESSING:
            logger.info(
                f"[DISBURSEMENT] Duplicate B2B result for payment {record.id} "
                f"(status: {record.disbursement_status.value}), ignoring"
            )
            return

        if callback.is_success:
            record.complete_disbursement(
                callback.transaction_id or callback.conversation_id or record.disbursement_conversation_id or ""
            )
        else:
            record.fail_disbursement(callback.result_desc or f"B2B failed with code {callback.result_code}")

        applied = await self.payment_repo.compare_and_set(
            record, expected_disbursement_status=[DisbursementStatus.PROCESSING]
        )
        if not applied:
            return

        logger.info(f"[DISBURSEMENT] Payment {record.id} disbursement {record.disbursement_status.value}")
        if self.notifier is not None:
            await self.notifier.disbursement_settled(record, callback.is_success)

    async def retry_all_failed(self, batch_limit: int | None = None) -> RetryBatchResult:
        """
        Re-initiate failed disbursements one by one. A failure on one record
        is collected and never aborts the batch.
        """
        limit = batch_limit or self.retry_batch_limit
        records = await self.payment_repo.list_failed_disbursements(limit)
        batch = RetryBatchResult(total=len(records))
        logger.info(f"[DISBURSEMENT] Retrying {batch.total} failed disbursements")

        for record in records:
            try:
                outcome = await self.initiate(record)
            except Exception as e:
                batch.failed += 1
                error = getattr(e, "error_message", None) or str(e)
                batch.results.append(RetryItemResult(payment_id=record.id, status="failed", error=error))
                continue

            if outcome.initiated:
                batch.successful += 1
                batch.results.append(RetryItemResult(payment_id=record.id, status="initiated"))
            else:
                batch.results.append(RetryItemResult(payment_id=record.id, status="skipped", error=outcome.message))

        logger.info(
            f"[DISBURSEMENT] Retry batch done: {batch.successful} initiated, {batch.failed} failed of {batch.total}"
        )
        return batch
