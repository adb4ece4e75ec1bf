"""
Base Container - Shared Singletons.

Single Responsibility: create and cache the process-wide provider clients.
"""

import logging

from rentpay.clients.mpesa_client import MpesaClient
from rentpay.config.settings import Settings, get_settings
from rentpay.domains.payments.application.ports import INotificationSender, IPaymentGateway
from rentpay.domains.payments.infrastructure.notifications import FcmNotificationSender

logger = logging.getLogger(__name__)


class BaseContainer:
    """
    Base container for shared singletons.

    The gateway keeps its OAuth token and HTTP connection pool across
    requests, so it is created once per process.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._gateway: MpesaClient | None = None
        self._notification_sender: FcmNotificationSender | None = None
        logger.info("BaseContainer initialized")

    def get_gateway(self) -> IPaymentGateway:
        if self._gateway is None:
            logger.info(f"Creating MpesaClient ({self.settings.MPESA_ENVIRONMENT})")
            self._gateway = MpesaClient(self.settings)
        return self._gateway

    def get_notification_sender(self) -> INotificationSender:
        if self._notification_sender is None:
            self._notification_sender = FcmNotificationSender(self.settings)
        return self._notification_sender

    async def aclose(self) -> None:
        """Close provider HTTP clients."""
        if self._gateway is not None:
            await self._gateway.aclose()
            self._gateway = None
        if self._notification_sender is not None:
            await self._notification_sender.aclose()
            self._notification_sender = None
