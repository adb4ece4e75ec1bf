"""
FCM Notification Sender

Push notifications over the Firebase Cloud Messaging HTTP endpoint.
Delivery is best-effort: every failure is logged and reported as False,
never raised into the payment flow.
"""

import logging

import httpx

from rentpay.config.settings import Settings, get_settings
from rentpay.domains.payments.application.ports import INotificationSender

logger = logging.getLogger(__name__)


class FcmNotificationSender(INotificationSender):
    def __init__(self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None):
        settings = settings or get_settings()
        self._enabled = settings.FCM_ENABLED and bool(settings.FCM_SERVER_KEY)
        self._server_key = settings.FCM_SERVER_KEY
        self._url = settings.FCM_URL
        self._timeout = settings.FCM_TIMEOUT
        self._client = http_client
        self._owns_client = http_client is None

        if settings.FCM_ENABLED and not settings.FCM_SERVER_KEY:
            logger.warning("[FCM] FCM_ENABLED=true but FCM_SERVER_KEY is not set, notifications disabled")

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def send(self, token: str, title: str, body: str, data: dict[str, str] | None = None) -> bool:
        """Send one notification. Returns whether FCM accepted it."""
        if not self._enabled or not token:
            return False

        payload = {
            "to": token,
            "notification": {"title": title, "body": body},
            "data": data or {},
        }
        try:
            response = await self._get_client().post(
                self._url,
                json=payload,
                headers={"Authorization": f"key={self._server_key}"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"[FCM] Send failed: {e}")
            return False

        if response.status_code >= 400:
            logger.warning(f"[FCM] Send rejected with HTTP {response.status_code}")
            return False
        return True
