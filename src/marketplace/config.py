"""Runtime settings for the marketplace.

Business rates, the gateway secret and adapter selection come from the
environment (or a ``.env`` file) through pydantic-settings. Protean's own
infrastructure (database, broker, event store) stays in ``domain.toml``.

Provides get_settings() / set_settings() / reset_settings() so tests can swap
in a tuned instance without touching the process environment.
"""

from decimal import Decimal
from typing import Annotated, Any, Literal, Self

from pydantic import BeforeValidator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Upper bound of the cancellation policy; configuration may only narrow it.
CANCELLABLE_STATES_MAX = ("pending_seller", "seller_accepted", "preparing", "ready")


def parse_list(v: Any) -> list[str] | str:
    """Accept ``a,b,c`` as well as a JSON-ish list from the environment."""
    if isinstance(v, str) and not v.startswith("["):
        return [i.strip() for i in v.split(",") if i.strip()]
    elif isinstance(v, list | tuple | set | frozenset):
        return [str(i) for i in v]
    elif isinstance(v, str):
        return v
    raise ValueError(v)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    ENVIRONMENT: Literal["development", "test", "staging", "production"] = "development"

    # Settlement rates (applied at settlement time, never stored on orders)
    PLATFORM_FEE_RATE: Decimal = Decimal("0.05")
    TCS_RATE: Decimal = Decimal("0.01")
    TDS_RATE: Decimal = Decimal("0.02")

    # Payment
    COD_SURCHARGE: Decimal = Decimal("10")
    PAYMENT_GATEWAY_SECRET: str = "changethis"

    # Order lifecycle
    ORDER_LOCK_TIMEOUT_SECONDS: float = 5.0
    ORDER_CANCELLABLE_STATES: Annotated[list[str] | str, BeforeValidator(parse_list)] = list(CANCELLABLE_STATES_MAX)
    PENDING_REMINDER_MINUTES: int = 10

    # Notification fan-out
    NOTIFICATION_WORKERS: int = 4
    NOTIFICATION_CHANNEL_TIMEOUT_SECONDS: float = 10.0
    DELIVERY_LOG_SIZE: int = 1000
    DELIVERY_LOG_RETENTION_HOURS: int = 24

    EMAIL_ADAPTER: Literal["fake", "smtp"] = "fake"
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_TLS: bool = True
    EMAILS_FROM_EMAIL: str = "orders@tastesphere.local"
    EMAILS_FROM_NAME: str = "TasteSphere"

    MESSAGING_ADAPTER: Literal["fake", "twilio"] = "fake"
    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_WHATSAPP_NUMBER: str | None = None
    TWILIO_API_BASE_URL: str = "https://api.twilio.com/2010-04-01"
    WHATSAPP_DEFAULT_COUNTRY_CODE: str = "+91"

    # Background jobs run inside the API process so their broadcasts reach live
    # clients; leave enabled on exactly one replica.
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "UTC"

    @model_validator(mode="after")
    def _cancellable_states_within_policy(self) -> Self:
        unknown = [s for s in self.ORDER_CANCELLABLE_STATES if s not in CANCELLABLE_STATES_MAX]
        if unknown:
            raise ValueError(
                f"ORDER_CANCELLABLE_STATES may only contain {', '.join(CANCELLABLE_STATES_MAX)}; got {', '.join(unknown)}"
            )
        return self

    @model_validator(mode="after")
    def _reject_default_secret_outside_development(self) -> Self:
        if self.PAYMENT_GATEWAY_SECRET == "changethis" and self.ENVIRONMENT in ("staging", "production"):
            raise ValueError('PAYMENT_GATEWAY_SECRET is "changethis"; set a real gateway key secret for deployments.')
        return self


_current_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings, loading them from the environment on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = Settings()
    return _current_settings


def set_settings(settings: Settings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _current_settings
    _current_settings = None
