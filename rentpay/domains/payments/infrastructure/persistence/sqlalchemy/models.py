"""
Payments Domain SQLAlchemy Models

`PaymentRecordModel` is owned and migrated by this service. The directory
models map tables owned by the property/user CRUD service and are read-only
here, so they live on a separate declarative base that Alembic never sees.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Enum as SQLEnum, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from rentpay.database.base import Base, TimestampMixin
from rentpay.domains.payments.domain.value_objects import CollectionStatus, DisbursementStatus


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class PaymentRecordModel(Base, TimestampMixin):
    """SQLAlchemy model for the PaymentRecord aggregate."""

    __tablename__ = "payment_records"
    __table_args__ = (
        Index("ix_payment_records_tenant_created", "tenant_id", "created_at"),
        Index("ix_payment_records_property_created", "property_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Parties (denormalized snapshot)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    tenant_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    property_id: Mapped[str] = mapped_column(String(64), nullable=False)
    property_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    owner_paybill: Mapped[str] = mapped_column(String(20), nullable=False, default="")
    owner_account_number: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    phone_number: Mapped[str] = mapped_column(String(15), nullable=False)

    # Money
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    disbursement_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False, default="mpesa")

    # Collection leg
    transaction_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    status: Mapped[CollectionStatus] = mapped_column(
        SQLEnum(CollectionStatus, name="collection_status", values_callable=_enum_values),
        default=CollectionStatus.PENDING,
        nullable=False,
        index=True,
    )
    checkout_request_id: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    merchant_request_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Disbursement leg
    disbursement_status: Mapped[DisbursementStatus] = mapped_column(
        SQLEnum(DisbursementStatus, name="disbursement_status", values_callable=_enum_values),
        default=DisbursementStatus.PENDING,
        nullable=False,
        index=True,
    )
    disbursement_conversation_id: Mapped[str | None] = mapped_column(String(100), unique=True, nullable=True)
    disbursement_originator_conversation_id: Mapped[str | None] = mapped_column(
        String(100), nullable=True, index=True
    )
    disbursement_transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    disbursement_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    disbursement_failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    disbursement_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<PaymentRecord(id={self.id}, txn='{self.transaction_id}', "
            f"status={self.status}, disbursement={self.disbursement_status})>"
        )


class DirectoryBase(DeclarativeBase):
    """Base for read-only tables owned by the CRUD service."""


class PropertyModel(DirectoryBase):
    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    code: Mapped[str] = mapped_column(String(50))
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    owner_id: Mapped[str] = mapped_column(String(64))
    paybill: Mapped[str | None] = mapped_column(String(20), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(50), nullable=True)


class UserModel(DirectoryBase):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    role: Mapped[str] = mapped_column(String(20))
    linked_property_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    fcm_token: Mapped[str | None] = mapped_column(Text, nullable=True)
