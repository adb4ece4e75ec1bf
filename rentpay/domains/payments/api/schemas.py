"""
Payments API Schemas

Pydantic request/response models for the payments endpoints, plus the
Daraja webhook payloads.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from rentpay.domains.payments.application.dto import CollectionCallback, DisbursementCallback
from rentpay.domains.payments.domain.entities import PaymentRecord

# ============================================================================
# Collection
# ============================================================================


class InitiatePaymentRequest(BaseModel):
    """Schema for initiating a rent payment."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(..., gt=0, description="Amount in KES")
    phone_number: str = Field(
        ...,
        min_length=9,
        max_length=20,
        validation_alias=AliasChoices("phone_number", "phoneNumber"),
        description="Phone to receive the M-Pesa prompt",
    )
    property_id: str | None = Field(
        None,
        validation_alias=AliasChoices("property_id", "propertyId"),
        description="Defaults to the tenant's linked property",
    )


class InitiatePaymentResponse(BaseModel):
    payment_id: int | None
    transaction_id: str
    checkout_request_id: str | None
    merchant_request_id: str | None
    amount: Decimal
    platform_fee: Decimal
    disbursement_amount: Decimal
    status: str
    message: str


# ============================================================================
# Daraja webhooks
# ============================================================================


class _DarajaModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class StkMetadataItem(_DarajaModel):
    name: str = Field(alias="Name")
    value: Any = Field(None, alias="Value")


class StkCallbackMetadata(_DarajaModel):
    items: list[StkMetadataItem] = Field(default_factory=list, alias="Item")


class StkCallback(_DarajaModel):
    merchant_request_id: str | None = Field(None, alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    result_code: int | str = Field(alias="ResultCode")
    result_desc: str = Field("", alias="ResultDesc")
    callback_metadata: StkCallbackMetadata | None = Field(None, alias="CallbackMetadata")

    def to_callback(self) -> CollectionCallback:
        metadata = {item.name: item.value for item in self.callback_metadata.items} if self.callback_metadata else {}
        receipt = metadata.get("MpesaReceiptNumber")
        return CollectionCallback(
            checkout_request_id=self.checkout_request_id,
            result_code=self.result_code,
            result_desc=self.result_desc,
            merchant_request_id=self.merchant_request_id,
            receipt_number=str(receipt) if receipt else None,
            metadata=metadata,
        )


class StkCallbackBody(_DarajaModel):
    stk_callback: StkCallback | None = Field(None, alias="stkCallback")


class StkCallbackPayload(_DarajaModel):
    """
    STK push result as posted by Daraja.

    {"Body": {"stkCallback": {"MerchantRequestID": "...", "CheckoutRequestID": "...",
      "ResultCode": 0, "ResultDesc": "...", "CallbackMetadata": {"Item": [{"Name": ..., "Value": ...}]}}}}
    """

    body: StkCallbackBody | None = Field(None, alias="Body")

    def to_callback(self) -> CollectionCallback | None:
        if self.body is None or self.body.stk_callback is None:
            return None
        return self.body.stk_callback.to_callback()


class B2BResultParameter(_DarajaModel):
    key: str = Field(alias="Key")
    value: Any = Field(None, alias="Value")


class B2BResultParameters(_DarajaModel):
    items: list[B2BResultParameter] = Field(default_factory=list, alias="ResultParameter")

    @field_validator("items", mode="before")
    @classmethod
    def wrap_single_parameter(cls, value):
        if isinstance(value, dict):
            return [value]
        return value


class B2BResult(_DarajaModel):
    result_type: int | str | None = Field(None, alias="ResultType")
    result_code: int | str = Field(alias="ResultCode")
    result_desc: str = Field("", alias="ResultDesc")
    originator_conversation_id: str | None = Field(None, alias="OriginatorConversationID")
    conversation_id: str | None = Field(None, alias="ConversationID")
    transaction_id: str | None = Field(None, alias="TransactionID")
    result_parameters: B2BResultParameters | None = Field(None, alias="ResultParameters")

    def to_callback(self) -> DisbursementCallback:
        params = {p.key: p.value for p in self.result_parameters.items} if self.result_parameters else {}
        transaction_id = params.get("TransactionID") or params.get("TransactionReceipt") or self.transaction_id
        return DisbursementCallback(
            conversation_id=self.conversation_id,
            originator_conversation_id=self.originator_conversation_id,
            result_code=self.result_code,
            result_desc=self.result_desc,
            transaction_id=str(transaction_id) if transaction_id else None,
        )


class B2BResultPayload(_DarajaModel):
    """B2B result or queue-timeout notification: {"Result": {...}}."""

    result: B2BResult | None = Field(None, alias="Result")

    def to_callback(self) -> DisbursementCallback | None:
        return self.result.to_callback() if self.result else None


class WebhookAck(BaseModel):
    ResultCode: int = 0
    ResultDesc: str = "Success"


# ============================================================================
# Balance and history
# ============================================================================


class RecentPaymentSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: int | None
    amount: Decimal
    date: datetime | None
    status: str


class RentBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tenant_id: str
    property_id: str
    total_rent: Decimal
    total_paid: Decimal
    balance: Decimal
    due_date: date
    last_payment_date: datetime | None
    recent_payments: list[RecentPaymentSchema]


class PaymentHistoryItem(BaseModel):
    """Schema for one row of a tenant's payment history."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None
    transaction_id: str
    property_id: str
    property_name: str
    amount: Decimal
    status: str
    failure_reason: str | None
    disbursement_status: str
    created_at: datetime
    paid_at: datetime | None

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PaymentHistoryItem":
        return cls(
            id=record.id,
            transaction_id=record.transaction_id,
            property_id=record.property_id,
            property_name=record.property_name,
            amount=record.amount,
            status=record.status.value,
            failure_reason=record.failure_reason,
            disbursement_status=record.disbursement_status.value,
            created_at=record.created_at,
            paid_at=record.paid_at,
        )


class PropertyPaymentItem(PaymentHistoryItem):
    """A payment received for a property, with the payer and the fee split."""

    tenant_id: str
    tenant_name: str
    phone_number: str
    platform_fee: Decimal
    disbursement_amount: Decimal

    @classmethod
    def from_record(cls, record: PaymentRecord) -> "PropertyPaymentItem":
        return cls(
            **PaymentHistoryItem.from_record(record).model_dump(),
            tenant_id=record.tenant_id,
            tenant_name=record.tenant_name,
            phone_number=record.phone_number,
            platform_fee=record.platform_fee,
            disbursement_amount=record.disbursement_amount,
        )


# ============================================================================
# Disbursement
# ============================================================================


class DisbursementOutcomeResponse(BaseModel):
    payment_id: int | None
    initiated: bool
    disbursement_status: str
    conversation_id: str | None
    message: str


class DisbursementStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: int | None
    property_id: str
    property_name: str
    tenant_name: str
    amount: Decimal
    platform_fee: Decimal
    disbursement_amount: Decimal
    collection_status: str
    disbursement_status: str
    disbursement_transaction_id: str | None
    disbursement_date: datetime | None
    disbursement_failure_reason: str | None
    disbursement_attempts: int


class OwnerDisbursementSummarySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_collected: Decimal
    total_disbursed: Decimal
    pending_amount: Decimal
    total_fees: Decimal
    counts: dict[str, int]


class OwnerDisbursementsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    owner_id: str
    disbursements: list[DisbursementStatusResponse]
    summary: OwnerDisbursementSummarySchema


class RetryItemSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: int | None
    status: str
    error: str | None


class RetryBatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    successful: int
    failed: int
    results: list[RetryItemSchema]


class ReconcileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    checked: int
    succeeded: int
    failed: int
    unchanged: int
    errors: list[dict[str, Any]]
