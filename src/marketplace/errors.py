"""Stable error kinds surfaced by the marketplace.

Business rule violations subclass Protean's ValidationError so they carry the
usual ``{"field": ["message"]}`` payload and behave like any other domain
validation failure. Operational conditions (a busy order lock, a failed
notification channel) are plain exceptions with a retry hint.

Each kind declares the HTTP status and the ``kind`` string the API layer
returns to clients.
"""

from protean.exceptions import ValidationError


class InvalidTransition(ValidationError):
    """The requested status change is not permitted from the current state."""

    kind = "invalid_transition"
    status_code = 400
    retryable = False


class PaymentVerificationFailed(ValidationError):
    """The gateway proof did not verify; no order was created."""

    kind = "payment_verification_failed"
    status_code = 400
    retryable = False


class DuplicatePaymentReference(ValidationError):
    """An order already exists for this gateway payment id."""

    kind = "duplicate_payment_reference"
    status_code = 409
    retryable = False


class SettlementComputationError(ValidationError):
    """Order data is inconsistent and a settlement cannot be derived from it."""

    kind = "settlement_computation_error"
    status_code = 422
    retryable = False


class MarketplaceError(Exception):
    """Base class for operational (non-validation) failures."""

    kind = "marketplace_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class OrderBusy(MarketplaceError):
    """The per-order lock could not be acquired in time. Safe to retry."""

    kind = "order_busy"
    status_code = 503
    retryable = True

    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"{key} is being updated by another request; retry shortly")
        self.key = key
        self.timeout = timeout
        self.retry_after = max(1, int(round(timeout)))


class NotificationDeliveryFailed(MarketplaceError):
    """A notification channel rejected or dropped a message. Never reaches callers."""

    kind = "notification_delivery_failed"
    retryable = True

    def __init__(self, channel: str, recipient: str, reason: str) -> None:
        super().__init__(f"{channel} delivery to {recipient} failed: {reason}")
        self.channel = channel
        self.recipient = recipient
        self.reason = reason


def first_message(exc: ValidationError) -> str:
    """Flatten a ValidationError's message dict into a single human readable line."""
    messages = getattr(exc, "messages", None)
    if isinstance(messages, dict):
        for field, errors in messages.items():
            if isinstance(errors, list | tuple) and errors:
                return str(errors[0])
            if errors:
                return str(errors)
            return str(field)
    return str(messages or exc)
