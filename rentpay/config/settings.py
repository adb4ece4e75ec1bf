from decimal import Decimal
from urllib.parse import urlsplit, urlunsplit

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and `.env`.
    """

    # API Configuration
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "RentPay Payments API"
    PROJECT_DESCRIPTION: str = "Rent collection and owner disbursement over M-Pesa"
    VERSION: str = "0.1.0"

    # Application Settings
    DEBUG: bool = Field(False, description="Enable debug mode")
    ENVIRONMENT: str = Field("development", description="Deployment environment name")
    LOG_LEVEL: str = Field("INFO", description="Root log level")
    LOG_FORMAT: str = Field("colored", description="Log format: colored, json or plain")
    SENTRY_DSN: str | None = Field(None, description="Sentry DSN; error tracking is off when unset")
    CORS_ORIGINS: list[str] = Field(default_factory=list, description="Allowed CORS origins outside debug")

    # PostgreSQL Database Settings
    DB_HOST: str = Field("localhost", description="PostgreSQL host")
    DB_PORT: int = Field(5432, description="PostgreSQL port")
    DB_NAME: str = Field("rentpay", description="Database name")
    DB_USER: str = Field("postgres", description="Database user")
    DB_PASSWORD: str | None = Field(None, description="Database password")
    DB_ECHO: bool = Field(False, description="Log SQL queries (debug only)")

    # Database connection pool settings
    DB_POOL_SIZE: int = Field(20, description="Connection pool size")
    DB_MAX_OVERFLOW: int = Field(30, description="Maximum pool overflow")
    DB_POOL_RECYCLE: int = Field(3600, description="Recycle connections every N seconds")
    DB_POOL_TIMEOUT: int = Field(30, description="Seconds to wait for a pooled connection")

    # M-Pesa (Daraja) Settings
    MPESA_ENVIRONMENT: str = Field("sandbox", description="Daraja environment: sandbox or production")
    MPESA_CONSUMER_KEY: str = Field("", description="Daraja app consumer key")
    MPESA_CONSUMER_SECRET: str = Field("", description="Daraja app consumer secret")
    MPESA_BUSINESS_SHORT_CODE: str = Field("", description="Platform paybill/till short code")
    MPESA_PASSKEY: str = Field("", description="Lipa na M-Pesa online passkey")
    MPESA_CALLBACK_URL: str = Field("", description="STK push result webhook URL")
    MPESA_B2B_CALLBACK_URL: str = Field(
        "", description="B2B result webhook URL (defaults to the b2b-callback route beside MPESA_CALLBACK_URL)"
    )
    MPESA_TIMEOUT_URL: str = Field(
        "", description="B2B queue timeout webhook URL (defaults to the b2b-timeout route beside the result URL)"
    )
    MPESA_INITIATOR_NAME: str = Field("", description="B2B API initiator username")
    MPESA_SECURITY_CREDENTIAL: str = Field("", description="Encrypted B2B initiator credential")
    MPESA_TIMEOUT: int = Field(30, description="Daraja request timeout in seconds")

    # Payment Settings
    PLATFORM_FEE_PERCENTAGE: Decimal = Field(Decimal("5"), description="Platform fee taken from each rent payment")
    AUTO_DISBURSEMENT_ENABLED: bool = Field(True, description="Disburse automatically after a successful collection")
    PAYMENT_MIN_AMOUNT: Decimal = Field(Decimal("1"), description="Smallest accepted rent payment (KES)")
    PAYMENT_MAX_AMOUNT: Decimal = Field(Decimal("150000"), description="Largest accepted rent payment (KES)")
    BALANCE_WINDOW_SIZE: int = Field(5, description="Recent successful payments considered for the balance")
    RENT_DUE_DAY: int = Field(5, description="Day of month rent falls due")
    DISBURSEMENT_RETRY_BATCH_LIMIT: int = Field(50, description="Maximum failed disbursements retried per batch")

    # Push Notifications (FCM)
    FCM_ENABLED: bool = Field(False, description="Send push notifications through FCM")
    FCM_SERVER_KEY: str = Field("", description="FCM server key")
    FCM_URL: str = Field("https://fcm.googleapis.com/fcm/send", description="FCM send endpoint")
    FCM_TIMEOUT: int = Field(10, description="FCM request timeout in seconds")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("PLATFORM_FEE_PERCENTAGE")
    @classmethod
    def validate_fee_percentage(cls, v):
        if v < 0 or v > 100:
            raise ValueError("PLATFORM_FEE_PERCENTAGE must be between 0 and 100")
        return v

    @field_validator("MPESA_ENVIRONMENT")
    @classmethod
    def validate_mpesa_environment(cls, v):
        v = v.lower()
        if v not in ("sandbox", "production"):
            raise ValueError("MPESA_ENVIRONMENT must be 'sandbox' or 'production'")
        return v

    @field_validator("RENT_DUE_DAY")
    @classmethod
    def validate_due_day(cls, v):
        if not 1 <= v <= 28:
            raise ValueError("RENT_DUE_DAY must be between 1 and 28")
        return v

    @field_validator("DB_POOL_SIZE")
    @classmethod
    def validate_pool_size(cls, v):
        if v < 1:
            raise ValueError("DB_POOL_SIZE must be at least 1")
        if v > 100:
            raise ValueError("DB_POOL_SIZE should not exceed 100")
        return v

    @computed_field
    @property
    def database_url(self) -> str:
        """Synchronous PostgreSQL URL (used by Alembic)."""
        if self.DB_PASSWORD:
            return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        return f"postgresql://{self.DB_USER}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT.lower() in ["development", "dev", "local"]

    @computed_field
    @property
    def mpesa_b2b_result_url(self) -> str:
        return self.MPESA_B2B_CALLBACK_URL or _sibling_webhook_url(self.MPESA_CALLBACK_URL, "b2b-callback")

    @computed_field
    @property
    def mpesa_timeout_url(self) -> str:
        return self.MPESA_TIMEOUT_URL or _sibling_webhook_url(self.mpesa_b2b_result_url, "b2b-timeout")


def _sibling_webhook_url(sibling_url: str, route: str) -> str:
    """
    Webhook URL for `route` in the same directory as `sibling_url`.

    Payout results go to their own routes, never to the STK callback.
    """
    if not sibling_url:
        return ""
    parts = urlsplit(sibling_url)
    parent = parts.path.rstrip("/").rpartition("/")[0]
    return urlunsplit(parts._replace(path=f"{parent}/{route}"))


# Settings singleton
_settings_instance = None


def get_settings() -> Settings:
    """
    Return the cached settings instance.

    Avoids re-reading the environment on every call.
    """
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
