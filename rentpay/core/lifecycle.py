"""
Application lifecycle management using the FastAPI lifespan pattern.

Handles only application startup/shutdown logic.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from rentpay.config.settings import get_settings
from rentpay.core.container import reset_container
from rentpay.database.async_db import dispose_async_engine, get_async_engine

logger = logging.getLogger(__name__)


class LifecycleManager:
    """
    Manages application lifecycle events.

    Startup only warns about missing configuration; the payment endpoints
    report gateway misconfiguration themselves when called.
    """

    def __init__(self) -> None:
        self._initialized = False

    async def startup(self) -> None:
        if self._initialized:
            logger.warning("Lifecycle already initialized, skipping startup")
            return

        logger.info("Starting application lifecycle...")

        self._verify_configurations()
        await self._verify_database()

        self._initialized = True
        logger.info("Application lifecycle startup completed")

    async def shutdown(self) -> None:
        if not self._initialized:
            logger.warning("Lifecycle not initialized, skipping shutdown")
            return

        logger.info("Stopping application lifecycle...")

        await reset_container()
        await dispose_async_engine()

        self._initialized = False
        logger.info("Application lifecycle shutdown completed")

    def _verify_configurations(self) -> None:
        """Verify critical application configurations."""
        settings = get_settings()

        if not settings.MPESA_CONSUMER_KEY or not settings.MPESA_CONSUMER_SECRET:
            logger.warning("MPESA_CONSUMER_KEY/MPESA_CONSUMER_SECRET not configured - collections will fail")

        if not settings.MPESA_CALLBACK_URL:
            logger.warning("MPESA_CALLBACK_URL not configured - payment results cannot be delivered")

        if not settings.MPESA_INITIATOR_NAME or not settings.MPESA_SECURITY_CREDENTIAL:
            logger.warning("B2B initiator credentials not configured - disbursements will fail")

        if not settings.AUTO_DISBURSEMENT_ENABLED:
            logger.info("Auto-disbursement is disabled via AUTO_DISBURSEMENT_ENABLED=False")

        if settings.FCM_ENABLED and not settings.FCM_SERVER_KEY:
            logger.warning("FCM_ENABLED is set but FCM_SERVER_KEY is empty - notifications disabled")

    async def _verify_database(self) -> None:
        """Verify the database is reachable."""
        try:
            async with get_async_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            logger.info("Database connectivity verified")
        except Exception as e:
            logger.error(f"Database connectivity check failed: {e}")


_lifecycle_manager: LifecycleManager | None = None


def get_lifecycle_manager() -> LifecycleManager:
    """Get or create the global lifecycle manager instance."""
    global _lifecycle_manager
    if _lifecycle_manager is None:
        _lifecycle_manager = LifecycleManager()
    return _lifecycle_manager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Usage:
        app = FastAPI(lifespan=lifespan)
    """
    lifecycle = get_lifecycle_manager()

    await lifecycle.startup()

    yield

    await lifecycle.shutdown()
