"""Live channel port — abstract interface for pushing events to socket rooms."""

from abc import ABC, abstractmethod


class EventBus(ABC):
    """Abstract interface for real-time room broadcasts.

    Rooms follow the ``user-{customer_id}``, ``order-{order_ref}`` and
    ``seller-{seller_id}`` naming. Broadcasting to a room nobody has joined is
    not an error.
    """

    @abstractmethod
    def broadcast(self, room: str, event: str, payload: dict) -> None:
        """Fire-and-forget delivery of ``event`` with ``payload`` to everyone in ``room``."""
        ...
