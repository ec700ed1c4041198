"""Configurable fake verifier for development and testing.

Accepts or rejects every proof depending on configuration, and records the
proofs it was asked about.
"""

from marketplace.payment.verifier.port import PaymentProof, PaymentVerifier


class FakeVerifier(PaymentVerifier):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.calls: list[PaymentProof] = []

    def configure(self, should_succeed: bool) -> None:
        """Configure verifier behavior at runtime."""
        self.should_succeed = should_succeed

    def verify(self, proof: PaymentProof) -> bool:
        self.calls.append(proof)
        return self.should_succeed and proof.is_complete
