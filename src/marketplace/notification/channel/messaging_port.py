"""Messaging channel port — abstract interface for WhatsApp-style chat messages."""

from abc import ABC, abstractmethod


class MessagingPort(ABC):
    """Abstract interface for chat message dispatch adapters."""

    @property
    def configured(self) -> bool:
        """False when credentials are missing; the fan-out then skips the channel silently."""
        return True

    @abstractmethod
    def send(self, to: str, body: str) -> dict:
        """Send a chat message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
