"""
Payments Application DTOs

Plain data carried across the application boundary: read-only snapshots of
collaborator data, gateway acknowledgements and parsed webhook results.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from rentpay.domains.payments.domain.value_objects import UserRole


@dataclass(frozen=True)
class AuthenticatedUser:
    """Caller identity placed on the request by the upstream auth layer."""

    id: str
    role: UserRole
    name: str = ""
    linked_property_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class PropertySnapshot:
    id: str
    name: str
    code: str
    rent_amount: Decimal
    owner_id: str
    paybill: str = ""
    account_number: str = ""


@dataclass(frozen=True)
class TenantSnapshot:
    id: str
    name: str
    linked_property_id: str | None = None


@dataclass(frozen=True)
class CollectionAccepted:
    """The provider accepted the push; settlement arrives by webhook."""

    checkout_request_id: str
    merchant_request_id: str | None = None
    customer_message: str | None = None


@dataclass(frozen=True)
class DisbursementAccepted:
    conversation_id: str
    originator_conversation_id: str | None = None


@dataclass(frozen=True)
class CollectionStatusResult:
    """Outcome of querying the provider for a pending collection."""

    result_code: str | None
    result_desc: str = ""

    @property
    def is_settled(self) -> bool:
        return self.result_code is not None


@dataclass(frozen=True)
class CollectionCallback:
    """Parsed STK push result."""

    checkout_request_id: str
    result_code: int | str
    result_desc: str = ""
    merchant_request_id: str | None = None
    receipt_number: str | None = None
    metadata: dict[str, object] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return str(self.result_code) == "0"


@dataclass(frozen=True)
class DisbursementCallback:
    """Parsed B2B result."""

    conversation_id: str | None
    originator_conversation_id: str | None
    result_code: int | str
    result_desc: str = ""
    transaction_id: str | None = None

    @property
    def is_success(self) -> bool:
        return str(self.result_code) == "0"


WEBHOOK_ACK: dict[str, object] = {"ResultCode": 0, "ResultDesc": "Success"}
