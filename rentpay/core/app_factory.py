"""
FastAPI application factory for the payments service.

Builds the app from settings: middleware, error mapping, the versioned API
router and a health probe. Startup and shutdown live in `lifecycle`.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rentpay.api.exception_handlers import register_exception_handlers
from rentpay.api.middleware import RequestLoggingMiddleware
from rentpay.api.router import api_router
from rentpay.config.settings import Settings, get_settings
from rentpay.core.lifecycle import lifespan

logger = logging.getLogger(__name__)


class AppFactory:
    """
    Assembles a configured FastAPI instance.

    Tests pass their own Settings; the running service uses `get_settings()`.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def create_app(self) -> FastAPI:
        settings = self._settings
        docs_prefix = settings.API_V1_STR if settings.DEBUG else None

        app = FastAPI(
            title=settings.PROJECT_NAME,
            description=settings.PROJECT_DESCRIPTION,
            version=settings.VERSION,
            docs_url=f"{docs_prefix}/docs" if docs_prefix else None,
            redoc_url=f"{docs_prefix}/redoc" if docs_prefix else None,
            lifespan=lifespan,
        )

        self._add_middleware(app)
        register_exception_handlers(app)
        app.include_router(api_router, prefix=settings.API_V1_STR)
        self._add_health_probe(app)

        logger.info(
            f"Application created: {settings.PROJECT_NAME} "
            f"(environment={settings.ENVIRONMENT}, mpesa={settings.MPESA_ENVIRONMENT})"
        )
        return app

    def _add_middleware(self, app: FastAPI) -> None:
        """
        Request logging sits inside CORS; the last middleware added is the
        outermost one.

        No authentication middleware is installed here. The host must add one
        (`app.add_middleware(...)` or `@app.middleware("http")`) that sets
        `request.state.user` as described in `rentpay.api.auth`; until it
        does, every route except the webhooks answers 401.
        """
        app.add_middleware(RequestLoggingMiddleware)
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self._settings.DEBUG else self._settings.CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _add_health_probe(self, app: FastAPI) -> None:
        settings = self._settings

        @app.get("/health", tags=["health"])
        async def health_check() -> dict[str, object]:
            """Liveness plus whether each M-Pesa leg has credentials."""
            return {
                "status": "ok",
                "environment": settings.ENVIRONMENT,
                "mpesa_environment": settings.MPESA_ENVIRONMENT,
                "collections_configured": bool(settings.MPESA_CONSUMER_KEY and settings.MPESA_CALLBACK_URL),
                "disbursements_configured": bool(
                    settings.MPESA_INITIATOR_NAME and settings.MPESA_SECURITY_CREDENTIAL
                ),
                "auto_disbursement": settings.AUTO_DISBURSEMENT_ENABLED,
            }


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application; `rentpay.main` calls this with default settings."""
    return AppFactory(settings).create_app()
