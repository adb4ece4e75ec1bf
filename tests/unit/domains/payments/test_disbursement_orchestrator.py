"""
Unit tests for the DisbursementOrchestrator.

Tests:
- initiate (claim, gateway call, failure handling)
- manual_disburse
- handle_disbursement_webhook
- retry_all_failed
"""

import asyncio
import copy
from decimal import Decimal

import pytest

from rentpay.clients.mpesa_client import GatewayConfigError, GatewayRequestError
from rentpay.core.domain import AuthorizationException, EntityNotFoundException
from rentpay.domains.payments.application.dto import WEBHOOK_ACK, AuthenticatedUser, DisbursementCallback
from rentpay.domains.payments.application.use_cases import DisbursementOrchestrator
from rentpay.domains.payments.domain.exceptions import PreconditionError
from rentpay.domains.payments.domain.value_objects import DisbursementStatus, UserRole

# ============================================================================
# FIXTURES
# ============================================================================


@pytest.fixture
def orchestrator(payment_repository, gateway, notifier) -> DisbursementOrchestrator:
    return DisbursementOrchestrator(payment_repository=payment_repository, gateway=gateway, notifier=notifier)


async def _processing_record(orchestrator, make_record):
    record = make_record()
    await orchestrator.initiate(record)
    return record


# ============================================================================
# initiate
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_initiate_sends_owner_share(orchestrator, payment_repository, gateway, make_record):
    record = make_record(amount="1000")

    outcome = await orchestrator.initiate(record)

    assert outcome.initiated is True
    assert outcome.disbursement_status == "processing"
    assert outcome.conversation_id == "AG_1"
    assert gateway.disbursement_calls == [
        {
            "destination_paybill": "400200",
            "amount": Decimal("950.00"),
            "destination_reference": "ACC-01",
            "remarks": f"Rent disbursement {record.transaction_id}",
        }
    ]

    stored = payment_repository.stored(record.id)
    assert stored.disbursement_status == DisbursementStatus.PROCESSING
    assert stored.disbursement_conversation_id == "AG_1"
    assert stored.disbursement_originator_conversation_id == "orig_1"
    assert stored.disbursement_attempts == 1


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_initiate_requires_successful_collection(orchestrator, gateway, make_record):
    record = make_record(collected=False)

    with pytest.raises(PreconditionError) as exc_info:
        await orchestrator.initiate(record)

    assert exc_info.value.rule == "collection_not_successful"
    assert gateway.disbursement_calls == []


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [DisbursementStatus.PROCESSING, DisbursementStatus.COMPLETED, DisbursementStatus.NOT_REQUIRED],
)
async def test_initiate_on_settled_record_is_noop(orchestrator, gateway, make_record, status):
    record = make_record(disbursement_status=status)

    outcome = await orchestrator.initiate(record)

    assert outcome.initiated is False
    assert outcome.disbursement_status == status.value
    assert gateway.disbursement_calls == []


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_concurrent_initiations_reach_gateway_once(orchestrator, payment_repository, gateway, make_record):
    """Test two callers holding the same pending record: only one wins the claim."""
    record = make_record()
    first, second = copy.deepcopy(record), copy.deepcopy(record)

    outcomes = await asyncio.gather(orchestrator.initiate(first), orchestrator.initiate(second))

    assert len(gateway.disbursement_calls) == 1
    assert sorted(o.initiated for o in outcomes) == [False, True]
    stored = payment_repository.stored(record.id)
    assert stored.disbursement_status == DisbursementStatus.PROCESSING
    assert stored.disbursement_attempts == 1


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_stale_copy_does_not_disburse_twice(orchestrator, payment_repository, gateway, make_record):
    record = make_record()
    stale = copy.deepcopy(record)
    await orchestrator.initiate(record)

    outcome = await orchestrator.initiate(stale)

    assert outcome.initiated is False
    assert len(gateway.disbursement_calls) == 1


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_lost_claim_reports_stored_state(orchestrator, payment_repository, gateway, make_record):
    record = make_record(disbursement_status=DisbursementStatus.FAILED)
    stored = payment_repository.stored(record.id)
    stored.disbursement_status = DisbursementStatus.COMPLETED
    stored.disbursement_conversation_id = "AG_DONE"

    outcome = await orchestrator.initiate(record)

    assert outcome.initiated is False
    assert outcome.disbursement_status == "completed"
    assert outcome.conversation_id == "AG_DONE"
    assert gateway.disbursement_calls == []
    assert payment_repository.stored(record.id).disbursement_attempts == 0


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_interleaved_retries_keep_attempt_count(orchestrator, payment_repository, gateway, make_record):
    record = make_record(disbursement_status=DisbursementStatus.FAILED)
    first, second = copy.deepcopy(record), copy.deepcopy(record)
    gateway.disbursement_errors["400200"] = GatewayRequestError("System busy", "1")

    with pytest.raises(GatewayRequestError):
        await orchestrator.initiate(first)
    del gateway.disbursement_errors["400200"]
    outcome = await orchestrator.initiate(second)

    assert outcome.initiated is True
    stored = payment_repository.stored(record.id)
    assert stored.disbursement_attempts == 2
    assert stored.disbursement_failure_reason is None
    assert stored.disbursement_status == DisbursementStatus.PROCESSING


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_gateway_rejection_marks_failed_and_raises(orchestrator, payment_repository, gateway, make_record):
    gateway.disbursement_errors["400200"] = GatewayRequestError("Invalid paybill", "2040")
    record = make_record()

    with pytest.raises(GatewayRequestError):
        await orchestrator.initiate(record)

    stored = payment_repository.stored(record.id)
    assert stored.disbursement_status == DisbursementStatus.FAILED
    assert stored.disbursement_failure_reason == "Invalid paybill"


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_missing_initiator_credentials_mark_failed(orchestrator, payment_repository, gateway, make_record):
    gateway.disbursement_errors["400200"] = GatewayConfigError("B2B disbursement requires MPESA_INITIATOR_NAME")
    record = make_record()

    with pytest.raises(GatewayConfigError):
        await orchestrator.initiate(record)

    assert payment_repository.stored(record.id).disbursement_status == DisbursementStatus.FAILED


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_failed_disbursement_can_be_initiated_again(orchestrator, payment_repository, gateway, make_record):
    record = make_record(disbursement_status=DisbursementStatus.FAILED)

    outcome = await orchestrator.initiate(record)

    assert outcome.initiated is True
    assert payment_repository.stored(record.id).disbursement_status == DisbursementStatus.PROCESSING


# ============================================================================
# manual_disburse
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_manual_disburse_by_owner(orchestrator, gateway, make_record, owner_user):
    record = make_record()

    outcome = await orchestrator.manual_disburse(record.id, owner_user)

    assert outcome.initiated is True
    assert len(gateway.disbursement_calls) == 1


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_manual_disburse_by_admin(orchestrator, make_record, admin_user):
    record = make_record()

    outcome = await orchestrator.manual_disburse(record.id, admin_user)

    assert outcome.initiated is True


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_manual_disburse_rejects_other_owner(orchestrator, gateway, make_record):
    record = make_record()
    other_owner = AuthenticatedUser(id="o-2", role=UserRole.OWNER)

    with pytest.raises(AuthorizationException):
        await orchestrator.manual_disburse(record.id, other_owner)

    assert gateway.disbursement_calls == []


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_manual_disburse_rejects_tenant(orchestrator, make_record, tenant_user):
    record = make_record()

    with pytest.raises(AuthorizationException):
        await orchestrator.manual_disburse(record.id, tenant_user)


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_manual_disburse_unknown_payment(orchestrator, admin_user):
    with pytest.raises(EntityNotFoundException):
        await orchestrator.manual_disburse(999, admin_user)


# ============================================================================
# handle_disbursement_webhook
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_success_result_completes_disbursement(
    orchestrator, payment_repository, make_record, notification_sender
):
    record = await _processing_record(orchestrator, make_record)

    ack = await orchestrator.handle_disbursement_webhook(
        DisbursementCallback(
            conversation_id="AG_1",
            originator_conversation_id="orig_1",
            result_code=0,
            result_desc="The service request is processed successfully.",
            transaction_id="RKT98XYZ",
        )
    )

    assert ack == WEBHOOK_ACK
    stored = payment_repository.stored(record.id)
    assert stored.disbursement_status == DisbursementStatus.COMPLETED
    assert stored.disbursement_transaction_id == "RKT98XYZ"
    assert stored.disbursement_date is not None
    assert notification_sender.titles_for("owner-token") == ["Disbursement Completed"]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_success_result_without_transaction_id_falls_back_to_conversation(
    orchestrator, payment_repository, make_record
):
    record = await _processing_record(orchestrator, make_record)

    await orchestrator.handle_disbursement_webhook(
        DisbursementCallback(conversation_id="AG_1", originator_conversation_id=None, result_code=0)
    )

    assert payment_repository.stored(record.id).disbursement_transaction_id == "AG_1"


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_result_matched_by_originator_id(orchestrator, payment_repository, make_record):
    record = await _processing_record(orchestrator, make_record)

    await orchestrator.handle_disbursement_webhook(
        DisbursementCallback(conversation_id="AG_other", originator_conversation_id="orig_1", result_code=0)
    )

    assert payment_repository.stored(record.id).disbursement_status == DisbursementStatus.COMPLETED


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_failure_result_marks_failed(orchestrator, payment_repository, make_record, notification_sender):
    record = await _processing_record(orchestrator, make_record)

    await orchestrator.handle_disbursement_webhook(
        DisbursementCallback(
            conversation_id="AG_1",
            originator_conversation_id="orig_1",
            result_code="SFC_IC0003",
            result_desc="The operator does not exist.",
        )
    )

    stored = payment_repository.stored(record.id)
    assert stored.disbursement_status == DisbursementStatus.FAILED
    assert stored.disbursement_failure_reason == "The operator does not exist."
    assert notification_sender.titles_for("owner-token") == ["Disbursement Failed"]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_duplicate_result_is_ignored(orchestrator, payment_repository, make_record, notification_sender):
    record = await _processing_record(orchestrator, make_record)
    success = DisbursementCallback(conversation_id="AG_1", originator_conversation_id="orig_1", result_code=0)

    await orchestrator.handle_disbursement_webhook(success)
    ack = await orchestrator.handle_disbursement_webhook(
        DisbursementCallback(conversation_id="AG_1", originator_conversation_id="orig_1", result_code=1)
    )

    assert ack == WEBHOOK_ACK
    assert payment_repository.stored(record.id).disbursement_status == DisbursementStatus.COMPLETED
    assert notification_sender.titles_for("owner-token") == ["Disbursement Completed"]


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_unknown_conversation_is_acknowledged(orchestrator):
    ack = await orchestrator.handle_disbursement_webhook(
        DisbursementCallback(conversation_id="AG_unknown", originator_conversation_id="orig_unknown", result_code=0)
    )

    assert ack == WEBHOOK_ACK


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_missing_result_body_is_acknowledged(orchestrator):
    assert await orchestrator.handle_disbursement_webhook(None) == WEBHOOK_ACK


# ============================================================================
# retry_all_failed
# ============================================================================


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_retry_all_failed_continues_past_errors(orchestrator, payment_repository, gateway, make_record):
    """Test three failed records where one paybill is still rejected."""
    ok_one = make_record(disbursement_status=DisbursementStatus.FAILED, paybill="400200")
    ok_two = make_record(disbursement_status=DisbursementStatus.FAILED, paybill="400300")
    broken = make_record(disbursement_status=DisbursementStatus.FAILED, paybill="999999")
    make_record(disbursement_status=DisbursementStatus.COMPLETED)
    gateway.disbursement_errors["999999"] = GatewayRequestError("Invalid paybill", "2040")

    result = await orchestrator.retry_all_failed()

    assert result.total == 3
    assert result.successful == 2
    assert result.failed == 1
    statuses = {item.payment_id: item.status for item in result.results}
    assert statuses == {ok_one.id: "initiated", ok_two.id: "initiated", broken.id: "failed"}
    [failed_item] = [item for item in result.results if item.status == "failed"]
    assert failed_item.error == "Invalid paybill"

    assert payment_repository.stored(ok_one.id).disbursement_status == DisbursementStatus.PROCESSING
    assert payment_repository.stored(broken.id).disbursement_status == DisbursementStatus.FAILED
    assert payment_repository.stored(broken.id).disbursement_attempts == 1


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_retry_all_failed_respects_batch_limit(orchestrator, gateway, make_record):
    for _ in range(3):
        make_record(disbursement_status=DisbursementStatus.FAILED)

    result = await orchestrator.retry_all_failed(batch_limit=2)

    assert result.total == 2
    assert len(gateway.disbursement_calls) == 2


@pytest.mark.unit
@pytest.mark.use_case
@pytest.mark.asyncio
async def test_retry_with_nothing_failed(orchestrator):
    result = await orchestrator.retry_all_failed()

    assert result.total == 0
    assert result.results == []
