"""Fake WhatsApp adapter — records sent messages for testing."""

from uuid import uuid4

from marketplace.notification.channel.messaging_port import MessagingPort


class FakeWhatsAppAdapter(MessagingPort):
    """WhatsApp adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "WhatsApp delivery failed"
        self.is_configured = True

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "WhatsApp delivery failed",
        is_configured: bool = True,
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.is_configured = is_configured

    @property
    def configured(self) -> bool:
        return self.is_configured

    def send(self, to: str, body: str) -> dict:
        if not self.should_succeed:
            return {
                "message_id": None,
                "status": "failed",
                "error": self.failure_reason,
            }

        message_id = f"wa-{uuid4().hex[:12]}"
        self.sent_messages.append({"message_id": message_id, "to": to, "body": body})
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent_messages.clear()
        self.should_succeed = True
        self.failure_reason = "WhatsApp delivery failed"
        self.is_configured = True
