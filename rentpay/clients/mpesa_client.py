"""
M-Pesa Daraja API Client

Async client for Safaricom Daraja: STK push collections, B2B paybill
disbursements and STK push status queries.

Connection Details:
    - Sandbox: https://sandbox.safaricom.co.ke
    - Production: https://api.safaricom.co.ke
    - Auth: OAuth client credentials, bearer token per request

Endpoints:
    - GET  /oauth/v1/generate?grant_type=client_credentials
    - POST /mpesa/stkpush/v1/processrequest - Collect from a customer phone
    - POST /mpesa/stkpushquery/v1/query - Query a pending STK push
    - POST /mpesa/b2b/v1/paymentrequest - Pay a business paybill

Every push operation means the request was accepted for processing.
Settlement is reported later on the configured webhook URLs.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from typing import Any
from zoneinfo import ZoneInfo

import httpx

from rentpay.config.settings import Settings, get_settings
from rentpay.domains.payments.application.dto import (
    CollectionAccepted,
    CollectionStatusResult,
    DisbursementAccepted,
)

logger = logging.getLogger(__name__)

NAIROBI = ZoneInfo("Africa/Nairobi")

# Public Daraja sandbox credentials for Lipa na M-Pesa online
SANDBOX_SHORT_CODE = "174379"
SANDBOX_PASSKEY = "bfb279f9aa9bdbcf158e97dd71a467cd2e0c893059b10f78e6b72ada1ed2c919"

# STK query error codes meaning the push has not settled yet
PENDING_QUERY_ERROR_CODES = frozenset({"500.001.1001"})
PENDING_QUERY_RESULT_CODES = frozenset({"4999"})


class GatewayError(Exception):
    """
    Base exception for M-Pesa gateway errors.

    Attributes:
        error_code: Machine-readable error code
        error_message: Human-readable error description
    """

    def __init__(self, error_code: str, error_message: str):
        self.error_code = error_code
        self.error_message = error_message
        super().__init__(f"{error_code}: {error_message}")


class GatewayAuthError(GatewayError):
    """OAuth token could not be obtained (bad consumer key/secret)."""

    def __init__(self, message: str = "Invalid consumer credentials"):
        super().__init__("AUTH_ERROR", message)


class GatewayRequestError(GatewayError):
    """The provider rejected the request."""

    def __init__(self, message: str, error_code: str = "REQUEST_REJECTED"):
        super().__init__(error_code, message)


class GatewayConnectionError(GatewayRequestError):
    """Network connectivity issues or timeouts."""

    def __init__(self, message: str):
        super().__init__(message, "CONNECTION_ERROR")


class GatewayConfigError(GatewayError):
    """Required credentials are not configured."""

    def __init__(self, message: str):
        super().__init__("CONFIG_ERROR", message)


class MpesaClient:
    """
    Async HTTP client for the Daraja API.

    The access token is cached until shortly before it expires; concurrent
    callers share a single refresh.

    Environment Variables:
        MPESA_ENVIRONMENT: sandbox or production
        MPESA_CONSUMER_KEY / MPESA_CONSUMER_SECRET: OAuth app credentials
        MPESA_BUSINESS_SHORT_CODE / MPESA_PASSKEY: STK push credentials
        MPESA_CALLBACK_URL: STK push result webhook
        MPESA_B2B_CALLBACK_URL / MPESA_TIMEOUT_URL: B2B result and timeout webhooks
            (derived from MPESA_CALLBACK_URL when unset)
        MPESA_INITIATOR_NAME / MPESA_SECURITY_CREDENTIAL: B2B initiator
        MPESA_TIMEOUT: Request timeout in seconds (default: 30)

    Example:
        async with MpesaClient() as client:
            accepted = await client.initiate_collection(
                phone_number="254712345678",
                amount=Decimal("1000"),
                account_reference="SUN-01",
                description="Rent payment for Sunrise Apartments",
            )
    """

    SANDBOX_BASE_URL = "https://sandbox.safaricom.co.ke"
    PRODUCTION_BASE_URL = "https://api.safaricom.co.ke"
    TOKEN_EXPIRY_MARGIN_SECONDS = 60

    def __init__(self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None):
        """
        Initialize the client.

        Args:
            settings: Application settings (uses default if not provided)
            http_client: Pre-built HTTP client, mainly for tests
        """
        settings = settings or get_settings()

        self._sandbox = settings.MPESA_ENVIRONMENT != "production"
        self._consumer_key = settings.MPESA_CONSUMER_KEY
        self._consumer_secret = settings.MPESA_CONSUMER_SECRET
        self._callback_url = settings.MPESA_CALLBACK_URL
        self._b2b_result_url = settings.mpesa_b2b_result_url
        self._b2b_timeout_url = settings.mpesa_timeout_url
        self._initiator_name = settings.MPESA_INITIATOR_NAME
        self._security_credential = settings.MPESA_SECURITY_CREDENTIAL
        self._timeout = settings.MPESA_TIMEOUT

        if self._sandbox and not settings.MPESA_PASSKEY:
            logger.warning("[MPESA] No passkey configured, using public sandbox short code")
            self._short_code = SANDBOX_SHORT_CODE
            self._passkey = SANDBOX_PASSKEY
        else:
            self._short_code = settings.MPESA_BUSINESS_SHORT_CODE
            self._passkey = settings.MPESA_PASSKEY

        self._client = http_client
        self._owns_client = http_client is None
        self._access_token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

        if not (self._consumer_key and self._consumer_secret):
            logger.error("[MPESA] MPESA_CONSUMER_KEY / MPESA_CONSUMER_SECRET not configured")

    @property
    def base_url(self) -> str:
        return self.SANDBOX_BASE_URL if self._sandbox else self.PRODUCTION_BASE_URL

    @property
    def is_sandbox(self) -> bool:
        return self._sandbox

    async def __aenter__(self) -> MpesaClient:
        """Enter async context and create HTTP client."""
        self._get_client()
        return self

    async def __aexit__(self, *args) -> None:
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._access_token = None
        self._token_expires_at = 0.0

    # ==================== AUTH ====================

    async def acquire_access_token(self) -> str:
        """
        Return a valid OAuth access token, refreshing it when near expiry.

        Raises:
            GatewayAuthError: Credentials missing or rejected
            GatewayConnectionError: Network error
        """
        if self._token_is_fresh():
            return self._access_token  # type: ignore[return-value]

        async with self._token_lock:
            # Another caller may have refreshed while we waited
            if self._token_is_fresh():
                return self._access_token  # type: ignore[return-value]

            if not (self._consumer_key and self._consumer_secret):
                raise GatewayAuthError("Consumer key and secret are not configured")

            credentials = base64.b64encode(f"{self._consumer_key}:{self._consumer_secret}".encode()).decode()
            try:
                response = await self._get_client().get(
                    "/oauth/v1/generate",
                    params={"grant_type": "client_credentials"},
                    headers={"Authorization": f"Basic {credentials}"},
                )
            except httpx.ConnectError as e:
                logger.error(f"[MPESA] Connection error acquiring token: {e}")
                raise GatewayConnectionError(f"Could not connect to M-Pesa: {e}") from e
            except httpx.TimeoutException as e:
                logger.error(f"[MPESA] Timeout acquiring token: {e}")
                raise GatewayConnectionError(f"M-Pesa token request timed out: {e}") from e

            if response.status_code in (400, 401, 403):
                raise GatewayAuthError("Invalid consumer key or secret")
            if response.status_code >= 400:
                raise GatewayAuthError(f"Token request failed with HTTP {response.status_code}")

            data = response.json()
            token = data.get("access_token")
            if not token:
                raise GatewayAuthError("Token response did not include an access token")

            expires_in = int(data.get("expires_in", 3599))
            self._access_token = token
            self._token_expires_at = time.monotonic() + max(expires_in - self.TOKEN_EXPIRY_MARGIN_SECONDS, 0)
            logger.info("[MPESA] Access token refreshed")
            return token

    def _token_is_fresh(self) -> bool:
        return self._access_token is not None and time.monotonic() < self._token_expires_at

    # ==================== COLLECTION ====================

    async def initiate_collection(
        self,
        phone_number: str,
        amount: Decimal,
        account_reference: str,
        description: str,
    ) -> CollectionAccepted:
        """
        Send an STK push prompt to the customer's phone.

        Args:
            phone_number: Normalized 254XXXXXXXXX number
            amount: Amount in KES, floored to a whole shilling
            account_reference: Reference shown to the customer (property code)
            description: Transaction description

        Returns:
            CollectionAccepted with the checkout and merchant request ids

        Raises:
            GatewayAuthError: Token could not be obtained
            GatewayRequestError: Provider rejected the push
            GatewayConnectionError: Network error
        """
        timestamp = self._timestamp()
        payload = {
            "BusinessShortCode": self._short_code,
            "Password": self.build_password(self._short_code, self._passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": self._whole_amount(amount),
            "PartyA": phone_number,
            "PartyB": self._short_code,
            "PhoneNumber": phone_number,
            "CallBackURL": self._callback_url,
            "AccountReference": account_reference,
            "TransactionDesc": description,
        }

        logger.info(f"[MPESA] STK push: amount={payload['Amount']}, ref={account_reference}")
        data = await self._post("/mpesa/stkpush/v1/processrequest", payload)
        self._ensure_accepted(data)

        checkout_request_id = data.get("CheckoutRequestID")
        if not checkout_request_id:
            raise GatewayRequestError("STK push response did not include a CheckoutRequestID")

        logger.info(f"[MPESA] STK push accepted: {checkout_request_id}")
        return CollectionAccepted(
            checkout_request_id=checkout_request_id,
            merchant_request_id=data.get("MerchantRequestID"),
            customer_message=data.get("CustomerMessage"),
        )

    async def query_collection_status(self, checkout_request_id: str) -> CollectionStatusResult:
        """
        Ask the provider how a previously accepted STK push ended.

        Returns a result with `result_code=None` while the push is still
        being processed.
        """
        timestamp = self._timestamp()
        payload = {
            "BusinessShortCode": self._short_code,
            "Password": self.build_password(self._short_code, self._passkey, timestamp),
            "Timestamp": timestamp,
            "CheckoutRequestID": checkout_request_id,
        }

        try:
            data = await self._post("/mpesa/stkpushquery/v1/query", payload)
        except GatewayRequestError as e:
            if e.error_code in PENDING_QUERY_ERROR_CODES:
                return CollectionStatusResult(result_code=None, result_desc=e.error_message)
            raise

        result_code = data.get("ResultCode")
        result_desc = data.get("ResultDesc", "")
        if result_code is None or str(result_code) in PENDING_QUERY_RESULT_CODES:
            return CollectionStatusResult(result_code=None, result_desc=result_desc)
        return CollectionStatusResult(result_code=str(result_code), result_desc=result_desc)

    # ==================== DISBURSEMENT ====================

    async def initiate_disbursement(
        self,
        destination_paybill: str,
        amount: Decimal,
        destination_reference: str,
        remarks: str,
    ) -> DisbursementAccepted:
        """
        Pay a business paybill (B2B BusinessPayBill).

        Raises:
            GatewayConfigError: Initiator name or security credential missing
            GatewayRequestError: Provider rejected the request
            GatewayConnectionError: Network error
        """
        if not (self._initiator_name and self._security_credential):
            raise GatewayConfigError(
                "B2B disbursement requires MPESA_INITIATOR_NAME and MPESA_SECURITY_CREDENTIAL"
            )

        payload = {
            "Initiator": self._initiator_name,
            "SecurityCredential": self._security_credential,
            "CommandID": "BusinessPayBill",
            "SenderIdentifierType": "4",
            "RecieverIdentifierType": "4",
            "Amount": self._whole_amount(amount),
            "PartyA": self._short_code,
            "PartyB": destination_paybill,
            "AccountReference": destination_reference,
            "Remarks": remarks,
            "QueueTimeOutURL": self._b2b_timeout_url,
            "ResultURL": self._b2b_result_url,
        }

        logger.info(f"[MPESA] B2B request: amount={payload['Amount']}, paybill={destination_paybill}")
        data = await self._post("/mpesa/b2b/v1/paymentrequest", payload)
        self._ensure_accepted(data)

        conversation_id = data.get("ConversationID")
        if not conversation_id:
            raise GatewayRequestError("B2B response did not include a ConversationID")

        logger.info(f"[MPESA] B2B accepted: {conversation_id}")
        return DisbursementAccepted(
            conversation_id=conversation_id,
            originator_conversation_id=data.get("OriginatorConversationID"),
        )

    # ==================== HELPERS ====================

    @staticmethod
    def build_password(short_code: str, passkey: str, timestamp: str) -> str:
        """STK password: base64(short code + passkey + timestamp)."""
        return base64.b64encode(f"{short_code}{passkey}{timestamp}".encode()).decode()

    @staticmethod
    def _timestamp() -> str:
        return datetime.now(NAIROBI).strftime("%Y%m%d%H%M%S")

    @staticmethod
    def _whole_amount(amount: Decimal) -> int:
        return int(Decimal(amount).to_integral_value(rounding=ROUND_FLOOR))

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        token = await self.acquire_access_token()
        try:
            response = await self._get_client().post(
                path,
                json=payload,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.ConnectError as e:
            logger.error(f"[MPESA] Connection error on {path}: {e}")
            raise GatewayConnectionError(f"Could not connect to M-Pesa: {e}") from e
        except httpx.TimeoutException as e:
            logger.error(f"[MPESA] Timeout on {path}: {e}")
            raise GatewayConnectionError(f"M-Pesa request timed out: {e}") from e

        if response.status_code == 401:
            # Token revoked early; force a refresh on the next call
            self._access_token = None
            raise GatewayAuthError("Access token rejected")

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = data.get("errorMessage") or data.get("ResponseDescription") or response.reason_phrase
            error_code = str(data.get("errorCode") or f"HTTP_{response.status_code}")
            logger.warning(f"[MPESA] {path} rejected ({error_code}): {message}")
            raise GatewayRequestError(message, error_code)

        return data

    @staticmethod
    def _ensure_accepted(data: dict[str, Any]) -> None:
        response_code = data.get("ResponseCode")
        if response_code is not None and str(response_code) != "0":
            message = data.get("ResponseDescription") or data.get("errorMessage") or "Request not accepted"
            raise GatewayRequestError(message, f"RESPONSE_{response_code}")
