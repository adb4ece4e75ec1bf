"""
Shared pytest fixtures for all tests.

Provides in-memory stand-ins for the payment ports (repository, gateway,
directory, notification sender) plus common users and records.
"""

import asyncio
import copy
import os
from datetime import datetime
from decimal import Decimal

import pytest

# Ensure test environment
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DB_NAME", "rentpay_test")
os.environ.setdefault("MPESA_ENVIRONMENT", "sandbox")

from rentpay.domains.payments.application.dto import (  # noqa: E402
    AuthenticatedUser,
    CollectionAccepted,
    CollectionStatusResult,
    DisbursementAccepted,
    PropertySnapshot,
    TenantSnapshot,
)
from rentpay.domains.payments.application.services import PaymentNotifier  # noqa: E402
from rentpay.domains.payments.domain.entities import PaymentRecord  # noqa: E402
from rentpay.domains.payments.domain.value_objects import (  # noqa: E402
    CollectionStatus,
    DisbursementStatus,
    UserRole,
)

# ============================================================================
# IN-MEMORY PORTS
# ============================================================================


class InMemoryPaymentRecordRepository:
    """
    Dict-backed repository. Reads return copies so callers never share state.
    compare_and_set never awaits, which keeps it atomic on the event loop, and
    like the SQL version it writes only the changed fields.
    """

    def __init__(self):
        self.rows: dict[int, PaymentRecord] = {}
        self._next_id = 1

    def seed(self, record: PaymentRecord) -> PaymentRecord:
        record.id = self._next_id
        self._next_id += 1
        record.mark_persisted()
        self.rows[record.id] = copy.deepcopy(record)
        return record

    def stored(self, payment_id: int) -> PaymentRecord:
        return self.rows[payment_id]

    async def add(self, record: PaymentRecord) -> PaymentRecord:
        return self.seed(record)

    async def get_by_id(self, payment_id: int) -> PaymentRecord | None:
        row = self.rows.get(payment_id)
        return copy.deepcopy(row) if row else None

    async def get_by_checkout_request_id(self, checkout_request_id: str) -> PaymentRecord | None:
        for row in self.rows.values():
            if row.checkout_request_id == checkout_request_id:
                return copy.deepcopy(row)
        return None

    async def get_by_conversation_id(self, conversation_id: str) -> PaymentRecord | None:
        for row in self.rows.values():
            if row.disbursement_conversation_id == conversation_id:
                return copy.deepcopy(row)
        for row in self.rows.values():
            if row.disbursement_originator_conversation_id == conversation_id:
                return copy.deepcopy(row)
        return None

    async def compare_and_set(self, record, expected_status=None, expected_disbursement_status=None) -> bool:
        stored = self.rows.get(record.id)
        if stored is None:
            return False
        if expected_status and stored.status not in expected_status:
            return False
        if expected_disbursement_status and stored.disbursement_status not in expected_disbursement_status:
            return False
        for name in record.changed_fields:
            if name == "disbursement_attempts":
                stored.disbursement_attempts += 1
            else:
                setattr(stored, name, copy.deepcopy(getattr(record, name)))
        stored.updated_at = record.updated_at
        stored.version += 1
        record.increment_version()
        record.mark_persisted()
        return True

    def _sorted(self, rows, newest_first: bool = True) -> list[PaymentRecord]:
        ordered = sorted(rows, key=lambda r: r.created_at, reverse=newest_first)
        return [copy.deepcopy(r) for r in ordered]

    async def list_successful_for_tenant(self, tenant_id: str, property_id: str, limit: int) -> list[PaymentRecord]:
        rows = [
            r
            for r in self.rows.values()
            if r.tenant_id == tenant_id and r.property_id == property_id and r.status == CollectionStatus.SUCCESS
        ]
        return self._sorted(rows)[:limit]

    async def list_failed_disbursements(self, limit: int) -> list[PaymentRecord]:
        rows = [
            r
            for r in self.rows.values()
            if r.status == CollectionStatus.SUCCESS and r.disbursement_status == DisbursementStatus.FAILED
        ]
        return self._sorted(rows, newest_first=False)[:limit]

    async def list_by_owner(self, owner_id: str, limit: int = 100) -> list[PaymentRecord]:
        return self._sorted(r for r in self.rows.values() if r.owner_id == owner_id)[:limit]

    async def list_by_tenant(self, tenant_id: str, limit: int = 50) -> list[PaymentRecord]:
        return self._sorted(r for r in self.rows.values() if r.tenant_id == tenant_id)[:limit]

    async def list_by_property(self, property_id: str, limit: int = 100) -> list[PaymentRecord]:
        return self._sorted(r for r in self.rows.values() if r.property_id == property_id)[:limit]

    async def list_stale_pending(self, created_before: datetime, limit: int) -> list[PaymentRecord]:
        rows = [
            r
            for r in self.rows.values()
            if r.status == CollectionStatus.PENDING and r.checkout_request_id and r.created_at < created_before
        ]
        return self._sorted(rows, newest_first=False)[:limit]


class FakeGateway:
    """Records every provider call; errors are injected per test."""

    def __init__(self):
        self.collection_calls: list[dict] = []
        self.disbursement_calls: list[dict] = []
        self.status_queries: list[str] = []
        self.collection_error: Exception | None = None
        self.disbursement_errors: dict[str, Exception] = {}
        self.status_results: dict[str, CollectionStatusResult | Exception] = {}
        self._seq = 0

    async def initiate_collection(self, phone_number, amount, account_reference, description) -> CollectionAccepted:
        self.collection_calls.append(
            {
                "phone_number": phone_number,
                "amount": amount,
                "account_reference": account_reference,
                "description": description,
            }
        )
        await asyncio.sleep(0)
        if self.collection_error is not None:
            raise self.collection_error
        self._seq += 1
        return CollectionAccepted(
            checkout_request_id=f"ws_CO_{self._seq}",
            merchant_request_id=f"mr_{self._seq}",
            customer_message="Success. Request accepted for processing",
        )

    async def initiate_disbursement(
        self, destination_paybill, amount, destination_reference, remarks
    ) -> DisbursementAccepted:
        self.disbursement_calls.append(
            {
                "destination_paybill": destination_paybill,
                "amount": amount,
                "destination_reference": destination_reference,
                "remarks": remarks,
            }
        )
        await asyncio.sleep(0)
        error = self.disbursement_errors.get(destination_paybill)
        if error is not None:
            raise error
        self._seq += 1
        return DisbursementAccepted(conversation_id=f"AG_{self._seq}", originator_conversation_id=f"orig_{self._seq}")

    async def query_collection_status(self, checkout_request_id: str) -> CollectionStatusResult:
        self.status_queries.append(checkout_request_id)
        result = self.status_results.get(checkout_request_id)
        if isinstance(result, Exception):
            raise result
        return result or CollectionStatusResult(result_code=None, result_desc="still processing")


class FakePropertyDirectory:
    def __init__(self):
        self.properties: dict[str, PropertySnapshot] = {}
        self.tenants: dict[str, TenantSnapshot] = {}
        self.tokens: dict[str, str] = {}

    async def get_property(self, property_id: str) -> PropertySnapshot | None:
        return self.properties.get(property_id)

    async def get_tenant(self, tenant_id: str) -> TenantSnapshot | None:
        return self.tenants.get(tenant_id)

    async def get_user_push_token(self, user_id: str) -> str | None:
        return self.tokens.get(user_id)


class FakeNotificationSender:
    def __init__(self):
        self.sent: list[dict] = []

    async def send(self, token, title, body, data=None) -> bool:
        self.sent.append({"token": token, "title": title, "body": body, "data": data or {}})
        return True

    def titles_for(self, token: str) -> list[str]:
        return [n["title"] for n in self.sent if n["token"] == token]


# ============================================================================
# PORT FIXTURES
# ============================================================================


@pytest.fixture
def payment_repository() -> InMemoryPaymentRecordRepository:
    return InMemoryPaymentRecordRepository()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def sample_property() -> PropertySnapshot:
    return PropertySnapshot(
        id="p-1",
        name="Sunrise Apartments",
        code="SUN-01",
        rent_amount=Decimal("25000"),
        owner_id="o-1",
        paybill="400200",
        account_number="ACC-01",
    )


@pytest.fixture
def property_directory(sample_property) -> FakePropertyDirectory:
    directory = FakePropertyDirectory()
    directory.properties[sample_property.id] = sample_property
    directory.tenants["t-1"] = TenantSnapshot(id="t-1", name="Jane Wanjiku", linked_property_id="p-1")
    directory.tokens["t-1"] = "tenant-token"
    directory.tokens["o-1"] = "owner-token"
    return directory


@pytest.fixture
def notification_sender() -> FakeNotificationSender:
    return FakeNotificationSender()


@pytest.fixture
def notifier(notification_sender, property_directory) -> PaymentNotifier:
    return PaymentNotifier(notification_sender, property_directory)


# ============================================================================
# USER FIXTURES
# ============================================================================


@pytest.fixture
def tenant_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="t-1", role=UserRole.TENANT, name="Jane Wanjiku", linked_property_id="p-1")


@pytest.fixture
def owner_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="o-1", role=UserRole.OWNER, name="Peter Otieno")


@pytest.fixture
def admin_user() -> AuthenticatedUser:
    return AuthenticatedUser(id="a-1", role=UserRole.ADMIN, name="Admin")


# ============================================================================
# RECORD FIXTURES
# ============================================================================


@pytest.fixture
def make_record(payment_repository):
    """
    Factory storing a record in the in-memory repository.

    `collected=True` settles the collection leg; `disbursement_status`
    forces the disbursement leg to the given state.
    """

    def _make(
        amount: str = "1000",
        collected: bool = True,
        disbursement_status: DisbursementStatus | None = None,
        tenant_id: str = "t-1",
        property_id: str = "p-1",
        owner_id: str = "o-1",
        paybill: str = "400200",
        checkout_request_id: str | None = None,
        created_at: datetime | None = None,
        fee_percentage: str = "5",
    ) -> PaymentRecord:
        record = PaymentRecord.create(
            tenant_id=tenant_id,
            tenant_name="Jane Wanjiku",
            property_id=property_id,
            property_name="Sunrise Apartments",
            owner_id=owner_id,
            owner_paybill=paybill,
            owner_account_number="ACC-01",
            phone_number="254712345678",
            amount=Decimal(amount),
            fee_percentage=Decimal(fee_percentage),
        )
        if checkout_request_id:
            record.mark_collection_accepted(checkout_request_id, "mr-seed")
        if collected:
            record.mark_collection_succeeded()
        if disbursement_status is not None:
            record.disbursement_status = disbursement_status
        if created_at is not None:
            record.created_at = created_at
            record.paid_at = created_at if collected else None
        return payment_repository.seed(record)

    return _make
