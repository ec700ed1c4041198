"""Payment verifier factory.

Provides get_verifier() / set_verifier() to swap implementations:
- HmacSignatureVerifier keyed with PAYMENT_GATEWAY_SECRET (default)
- FakeVerifier for tests that do not care about signatures
"""

from marketplace.config import get_settings
from marketplace.payment.verifier.hmac_adapter import HmacSignatureVerifier
from marketplace.payment.verifier.port import PaymentProof, PaymentVerifier

_current_verifier: PaymentVerifier | None = None


def get_verifier() -> PaymentVerifier:
    """Return the current verifier. Defaults to the HMAC verifier."""
    global _current_verifier
    if _current_verifier is None:
        _current_verifier = HmacSignatureVerifier(get_settings().PAYMENT_GATEWAY_SECRET)
    return _current_verifier


def set_verifier(verifier: PaymentVerifier) -> None:
    """Override the active verifier (useful for tests)."""
    global _current_verifier
    _current_verifier = verifier


def reset_verifier() -> None:
    """Reset to the default verifier."""
    global _current_verifier
    _current_verifier = None


__all__ = ["PaymentProof", "PaymentVerifier", "get_verifier", "set_verifier", "reset_verifier"]
