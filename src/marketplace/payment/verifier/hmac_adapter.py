"""Razorpay-style signature verifier.

The gateway signs ``"{order_id}|{payment_id}"`` with the merchant key secret
using HMAC-SHA256 and returns the hex digest to the browser. Recomputing it
server side proves the payment callback was not forged or altered.
"""

import hashlib
import hmac

from marketplace.payment.verifier.port import PaymentProof, PaymentVerifier


def sign(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    """Compute the signature the gateway would issue for this order/payment pair."""
    body = f"{gateway_order_id}|{gateway_payment_id}".encode()
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class HmacSignatureVerifier(PaymentVerifier):
    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("A gateway key secret is required to verify payments")
        self._secret = secret

    def verify(self, proof: PaymentProof) -> bool:
        if not proof.is_complete:
            return False
        expected = sign(proof.gateway_order_id, proof.gateway_payment_id, self._secret)
        return hmac.compare_digest(expected, proof.signature.strip().lower())
