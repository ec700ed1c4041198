"""Twilio WhatsApp adapter — sends chat messages through Twilio's REST API with httpx."""

import httpx
import structlog

from marketplace.notification.channel.messaging_port import MessagingPort

logger = structlog.get_logger(__name__)


class TwilioWhatsAppAdapter(MessagingPort):
    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        base_url: str = "https://api.twilio.com/2010-04-01",
        default_country_code: str = "+91",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.account_sid = (account_sid or "").strip()
        self.auth_token = (auth_token or "").strip()
        self.from_number = (from_number or "").strip()
        self.base_url = base_url.rstrip("/")
        self.default_country_code = default_country_code
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def _address(self, phone: str) -> str:
        phone = phone.strip().replace(" ", "")
        if not phone.startswith("+"):
            phone = f"{self.default_country_code}{phone}"
        return f"whatsapp:{phone}"

    def send(self, to: str, body: str) -> dict:
        url = f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"
        data = {
            "From": self._address(self.from_number),
            "To": self._address(to),
            "Body": body,
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, data=data, auth=(self.account_sid, self.auth_token))
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as exc:
            logger.warning("WhatsApp delivery failed", to=to, error=str(exc))
            return {"message_id": None, "status": "failed", "error": str(exc)}

        return {"message_id": payload.get("sid"), "status": "sent"}
