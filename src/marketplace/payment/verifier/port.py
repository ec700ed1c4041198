"""Payment verifier port (abstract interface).

Defines the contract that gateway proof verifiers implement, so the order
placement flow never depends on a particular gateway's signing scheme.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentProof:
    """What the gateway hands back to the client after a successful checkout."""

    gateway_order_id: str
    gateway_payment_id: str
    signature: str

    @property
    def is_complete(self) -> bool:
        return bool(self.gateway_order_id and self.gateway_payment_id and self.signature)


class PaymentVerifier(ABC):
    """Abstract gateway proof verifier."""

    @abstractmethod
    def verify(self, proof: PaymentProof) -> bool:
        """Return True only if the proof was issued by the gateway for this payment."""
        ...
