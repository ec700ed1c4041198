"""Channel adapter registry — pluggable notification delivery channels.

Provides singleton access to the three channels the fan-out uses. Fake
adapters are the default; SMTP email and Twilio WhatsApp are selected with
the EMAIL_ADAPTER / MESSAGING_ADAPTER settings, and the web app installs the
WebSocket hub as the live channel at startup.
"""

from marketplace.config import get_settings

LIVE = "live"
EMAIL = "email"
WHATSAPP = "whatsapp"

_channel_instances: dict[str, object] = {}


def _build(channel_type: str):
    settings = get_settings()

    if channel_type == LIVE:
        from marketplace.notification.channel.memory_bus import InMemoryEventBus

        return InMemoryEventBus()
    elif channel_type == EMAIL:
        if settings.EMAIL_ADAPTER == "smtp" and settings.SMTP_HOST:
            from marketplace.notification.channel.smtp_email import SMTPEmailAdapter

            return SMTPEmailAdapter(
                host=settings.SMTP_HOST,
                port=settings.SMTP_PORT,
                username=settings.SMTP_USER,
                password=settings.SMTP_PASSWORD,
                use_tls=settings.SMTP_TLS,
                from_email=settings.EMAILS_FROM_EMAIL,
                from_name=settings.EMAILS_FROM_NAME,
                timeout=settings.NOTIFICATION_CHANNEL_TIMEOUT_SECONDS,
            )
        from marketplace.notification.channel.fake_email import FakeEmailAdapter

        return FakeEmailAdapter()
    elif channel_type == WHATSAPP:
        if settings.MESSAGING_ADAPTER == "twilio":
            from marketplace.notification.channel.twilio_whatsapp import TwilioWhatsAppAdapter

            return TwilioWhatsAppAdapter(
                account_sid=settings.TWILIO_ACCOUNT_SID,
                auth_token=settings.TWILIO_AUTH_TOKEN,
                from_number=settings.TWILIO_WHATSAPP_NUMBER,
                base_url=settings.TWILIO_API_BASE_URL,
                default_country_code=settings.WHATSAPP_DEFAULT_COUNTRY_CODE,
                timeout=settings.NOTIFICATION_CHANNEL_TIMEOUT_SECONDS,
            )
        from marketplace.notification.channel.fake_whatsapp import FakeWhatsAppAdapter

        return FakeWhatsAppAdapter()
    raise ValueError(f"Unknown channel type: {channel_type}")


def get_channel(channel_type: str):
    """Return the configured channel adapter (singleton per channel type).

    Args:
        channel_type: One of "live", "email", "whatsapp"
    """
    if channel_type not in _channel_instances:
        _channel_instances[channel_type] = _build(channel_type)
    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    """Install a specific adapter for a channel (the web app uses this for the WebSocket hub)."""
    if channel_type not in (LIVE, EMAIL, WHATSAPP):
        raise ValueError(f"Unknown channel type: {channel_type}")
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
