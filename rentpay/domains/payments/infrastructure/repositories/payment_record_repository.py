"""
Payment Record Repository Implementation

SQLAlchemy implementation of IPaymentRecordRepository.
"""

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from rentpay.domains.payments.application.ports import IPaymentRecordRepository
from rentpay.domains.payments.domain.entities import PaymentRecord
from rentpay.domains.payments.domain.value_objects import CollectionStatus, DisbursementStatus
from rentpay.domains.payments.infrastructure.persistence.sqlalchemy.models import PaymentRecordModel

logger = logging.getLogger(__name__)

# Columns compare_and_set may write; identity, parties and money never change
MUTABLE_FIELDS: tuple[str, ...] = (
    "transaction_id",
    "status",
    "checkout_request_id",
    "merchant_request_id",
    "failure_reason",
    "paid_at",
    "disbursement_status",
    "disbursement_conversation_id",
    "disbursement_originator_conversation_id",
    "disbursement_transaction_id",
    "disbursement_date",
    "disbursement_failure_reason",
    "disbursement_attempts",
    "updated_at",
)


class SQLAlchemyPaymentRecordRepository(IPaymentRecordRepository):
    """
    SQLAlchemy implementation of the payment record repository.

    Writes are committed immediately so a claimed state is visible to
    concurrent requests before any provider call is made.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def add(self, record: PaymentRecord) -> PaymentRecord:
        """Persist a new record and assign its id."""
        model = self._to_model(record)
        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)
        record.id = model.id
        record.mark_persisted()
        return record

    async def get_by_id(self, payment_id: int) -> PaymentRecord | None:
        try:
            result = await self.session.execute(
                select(PaymentRecordModel).where(PaymentRecordModel.id == payment_id)
            )
            model = result.scalar_one_or_none()
            return self._to_entity(model) if model else None
        except Exception as e:
            logger.error(f"Error getting payment record {payment_id}: {e}")
            raise

    async def get_by_checkout_request_id(self, checkout_request_id: str) -> PaymentRecord | None:
        result = await self.session.execute(
            select(PaymentRecordModel).where(PaymentRecordModel.checkout_request_id == checkout_request_id)
        )
        model = result.scalar_one_or_none()
        return self._to_entity(model) if model else None

    async def get_by_conversation_id(self, conversation_id: str) -> PaymentRecord | None:
        """Match on the conversation id, then the originator conversation id."""
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(
                or_(
                    PaymentRecordModel.disbursement_conversation_id == conversation_id,
                    PaymentRecordModel.disbursement_originator_conversation_id == conversation_id,
                )
            )
            .order_by((PaymentRecordModel.disbursement_conversation_id == conversation_id).desc())
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_entity(model) if model else None

    async def compare_and_set(
        self,
        record: PaymentRecord,
        expected_status: Sequence[CollectionStatus] | None = None,
        expected_disbursement_status: Sequence[DisbursementStatus] | None = None,
    ) -> bool:
        """
        Conditionally write the columns the record's transitions changed.

        `disbursement_attempts` is incremented in SQL, so a stale copy of the
        record can never roll the stored counter back.

        Returns:
            True when exactly one row matched the expected statuses and was updated
        """
        if record.id is None:
            raise ValueError("compare_and_set requires a persisted record")

        conditions = [PaymentRecordModel.id == record.id]
        if expected_status:
            conditions.append(PaymentRecordModel.status.in_(list(expected_status)))
        if expected_disbursement_status:
            conditions.append(PaymentRecordModel.disbursement_status.in_(list(expected_disbursement_status)))

        values: dict[str, Any] = {
            name: getattr(record, name) for name in MUTABLE_FIELDS if name in record.changed_fields
        }
        if "disbursement_attempts" in values:
            # start_disbursement is the only writer and always adds one
            values["disbursement_attempts"] = PaymentRecordModel.disbursement_attempts + 1
        values["updated_at"] = record.updated_at
        values["version"] = PaymentRecordModel.version + 1

        try:
            result = await self.session.execute(
                update(PaymentRecordModel)
                .where(*conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except Exception as e:
            logger.error(f"Error updating payment record {record.id}: {e}")
            await self.session.rollback()
            raise

        applied = result.rowcount == 1
        if applied:
            record.increment_version()
            record.mark_persisted()
        else:
            logger.info(
                f"Conditional write skipped for payment record {record.id} "
                f"(expected status={expected_status}, disbursement={expected_disbursement_status})"
            )
        return applied

    async def list_successful_for_tenant(
        self, tenant_id: str, property_id: str, limit: int
    ) -> list[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(
                PaymentRecordModel.tenant_id == tenant_id,
                PaymentRecordModel.property_id == property_id,
                PaymentRecordModel.status == CollectionStatus.SUCCESS,
            )
            .order_by(PaymentRecordModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_failed_disbursements(self, limit: int) -> list[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(
                PaymentRecordModel.status == CollectionStatus.SUCCESS,
                PaymentRecordModel.disbursement_status == DisbursementStatus.FAILED,
            )
            .order_by(PaymentRecordModel.created_at.asc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_by_owner(self, owner_id: str, limit: int = 100) -> list[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(PaymentRecordModel.owner_id == owner_id)
            .order_by(PaymentRecordModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_by_tenant(self, tenant_id: str, limit: int = 50) -> list[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(PaymentRecordModel.tenant_id == tenant_id)
            .order_by(PaymentRecordModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_by_property(self, property_id: str, limit: int = 100) -> list[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(PaymentRecordModel.property_id == property_id)
            .order_by(PaymentRecordModel.created_at.desc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    async def list_stale_pending(self, created_before: datetime, limit: int) -> list[PaymentRecord]:
        result = await self.session.execute(
            select(PaymentRecordModel)
            .where(
                PaymentRecordModel.status == CollectionStatus.PENDING,
                PaymentRecordModel.checkout_request_id.is_not(None),
                PaymentRecordModel.created_at < created_before,
            )
            .order_by(PaymentRecordModel.created_at.asc())
            .limit(limit)
        )
        return [self._to_entity(m) for m in result.scalars().all()]

    # Mapping

    def _to_model(self, record: PaymentRecord) -> PaymentRecordModel:
        return PaymentRecordModel(
            id=record.id,
            tenant_id=record.tenant_id,
            tenant_name=record.tenant_name,
            property_id=record.property_id,
            property_name=record.property_name,
            owner_id=record.owner_id,
            owner_paybill=record.owner_paybill,
            owner_account_number=record.owner_account_number,
            phone_number=record.phone_number,
            amount=record.amount,
            platform_fee_percentage=record.platform_fee_percentage,
            platform_fee=record.platform_fee,
            disbursement_amount=record.disbursement_amount,
            payment_method=record.payment_method,
            transaction_id=record.transaction_id,
            status=record.status,
            checkout_request_id=record.checkout_request_id,
            merchant_request_id=record.merchant_request_id,
            failure_reason=record.failure_reason,
            paid_at=record.paid_at,
            disbursement_status=record.disbursement_status,
            disbursement_conversation_id=record.disbursement_conversation_id,
            disbursement_originator_conversation_id=record.disbursement_originator_conversation_id,
            disbursement_transaction_id=record.disbursement_transaction_id,
            disbursement_date=record.disbursement_date,
            disbursement_failure_reason=record.disbursement_failure_reason,
            disbursement_attempts=record.disbursement_attempts,
            version=record.version,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def _to_entity(self, model: PaymentRecordModel) -> PaymentRecord:
        return PaymentRecord(
            id=model.id,
            tenant_id=model.tenant_id,
            tenant_name=model.tenant_name,
            property_id=model.property_id,
            property_name=model.property_name,
            owner_id=model.owner_id,
            owner_paybill=model.owner_paybill,
            owner_account_number=model.owner_account_number,
            phone_number=model.phone_number,
            amount=model.amount,
            platform_fee_percentage=model.platform_fee_percentage,
            platform_fee=model.platform_fee,
            disbursement_amount=model.disbursement_amount,
            payment_method=model.payment_method,
            transaction_id=model.transaction_id,
            status=CollectionStatus(model.status),
            checkout_request_id=model.checkout_request_id,
            merchant_request_id=model.merchant_request_id,
            failure_reason=model.failure_reason,
            paid_at=model.paid_at,
            disbursement_status=DisbursementStatus(model.disbursement_status),
            disbursement_conversation_id=model.disbursement_conversation_id,
            disbursement_originator_conversation_id=model.disbursement_originator_conversation_id,
            disbursement_transaction_id=model.disbursement_transaction_id,
            disbursement_date=model.disbursement_date,
            disbursement_failure_reason=model.disbursement_failure_reason,
            disbursement_attempts=model.disbursement_attempts,
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )
