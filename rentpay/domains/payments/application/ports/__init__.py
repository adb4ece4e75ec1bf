"""
Payments Application Ports

Interface definitions (ports) for the payments domain.
Uses Protocol for structural typing.
"""

from collections.abc import Sequence
from datetime import datetime
from decimal import Decimal
from typing import Protocol, runtime_checkable

from rentpay.domains.payments.application.dto import (
    CollectionAccepted,
    CollectionStatusResult,
    DisbursementAccepted,
    PropertySnapshot,
    TenantSnapshot,
)
from rentpay.domains.payments.domain.entities import PaymentRecord
from rentpay.domains.payments.domain.value_objects import CollectionStatus, DisbursementStatus


@runtime_checkable
class IPaymentRecordRepository(Protocol):
    """
    Interface for payment record persistence.

    `compare_and_set` is the only write used on existing records by the
    orchestrators: it writes the record's mutable fields only when the stored
    statuses are still in the expected sets, and reports whether it did.
    """

    async def add(self, record: PaymentRecord) -> PaymentRecord:
        """Persist a new record and assign its id"""
        ...

    async def get_by_id(self, payment_id: int) -> PaymentRecord | None:
        ...

    async def get_by_checkout_request_id(self, checkout_request_id: str) -> PaymentRecord | None:
        ...

    async def get_by_conversation_id(self, conversation_id: str) -> PaymentRecord | None:
        """Match on the conversation id, then the originator conversation id"""
        ...

    async def compare_and_set(
        self,
        record: PaymentRecord,
        expected_status: Sequence[CollectionStatus] | None = None,
        expected_disbursement_status: Sequence[DisbursementStatus] | None = None,
    ) -> bool:
        ...

    async def list_successful_for_tenant(
        self, tenant_id: str, property_id: str, limit: int
    ) -> list[PaymentRecord]:
        """Successful collections for the pair, newest first"""
        ...

    async def list_failed_disbursements(self, limit: int) -> list[PaymentRecord]:
        """Collected records whose disbursement failed, oldest first"""
        ...

    async def list_by_owner(self, owner_id: str, limit: int = 100) -> list[PaymentRecord]:
        ...

    async def list_by_tenant(self, tenant_id: str, limit: int = 50) -> list[PaymentRecord]:
        ...

    async def list_by_property(self, property_id: str, limit: int = 100) -> list[PaymentRecord]:
        ...

    async def list_stale_pending(self, created_before: datetime, limit: int) -> list[PaymentRecord]:
        """Pending collections with a checkout id created before the cutoff"""
        ...


@runtime_checkable
class IPaymentGateway(Protocol):
    """
    Interface for the mobile-money provider.

    Both push operations mean "accepted", never "settled".
    """

    async def initiate_collection(
        self,
        phone_number: str,
        amount: Decimal,
        account_reference: str,
        description: str,
    ) -> CollectionAccepted:
        ...

    async def initiate_disbursement(
        self,
        destination_paybill: str,
        amount: Decimal,
        destination_reference: str,
        remarks: str,
    ) -> DisbursementAccepted:
        ...

    async def query_collection_status(self, checkout_request_id: str) -> CollectionStatusResult:
        ...


@runtime_checkable
class IPropertyDirectory(Protocol):
    """Read-only access to properties and users owned by the CRUD service."""

    async def get_property(self, property_id: str) -> PropertySnapshot | None:
        ...

    async def get_tenant(self, tenant_id: str) -> TenantSnapshot | None:
        ...

    async def get_user_push_token(self, user_id: str) -> str | None:
        ...


@runtime_checkable
class INotificationSender(Protocol):
    """Best-effort push notifications. Implementations never raise."""

    async def send(self, token: str, title: str, body: str, data: dict[str, str] | None = None) -> bool:
        ...
