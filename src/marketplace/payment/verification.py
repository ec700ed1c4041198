"""Payment verification — command, handler and the locked entry point.

Turns a gateway payment proof (or a cash-on-delivery request) into exactly one
persisted order:

* online: the gateway signature must verify, and the gateway payment id must
  not already belong to an order;
* cash on delivery: no proof, but the COD surcharge is added to the total.

The order is created and stored in the same unit of work; if anything fails
nothing is persisted.
"""

import json
from decimal import Decimal

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.errors import DuplicatePaymentReference, PaymentVerificationFailed
from marketplace.order.locks import order_locks
from marketplace.order.order import Order, PaymentMethod, PaymentStatus
from marketplace.order.queries import find_by_payment_reference
from marketplace.payment.verifier import PaymentProof, get_verifier

logger = structlog.get_logger(__name__)

_METHOD_ALIASES = {
    "online": PaymentMethod.ONLINE,
    "razorpay": PaymentMethod.ONLINE,
    "card": PaymentMethod.ONLINE,
    "upi": PaymentMethod.ONLINE,
    "netbanking": PaymentMethod.ONLINE,
    "cod": PaymentMethod.COD,
    "cash": PaymentMethod.COD,
}


def classify_payment_method(value: str | None) -> PaymentMethod:
    """Map what the checkout page sends to the two ways an order can be paid."""
    method = _METHOD_ALIASES.get((value or "").strip().lower())
    if method is None:
        raise PaymentVerificationFailed({"payment_method": [f"Unsupported payment method: {value}"]})
    return method


@marketplace.command(part_of="Order")
class VerifyAndPlaceOrder:
    """Verify how the customer paid and create the order."""

    payment_method = String(required=True, max_length=20)
    gateway_order_id = String(max_length=100)
    gateway_payment_id = String(max_length=100)
    signature = String(max_length=256)

    customer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    customer_name = String(max_length=100)
    customer_email = String(max_length=254)
    customer_phone = String(max_length=20)
    delivery_address = Text()
    estimated_delivery = String(max_length=50)
    item = Text(required=True)  # JSON item snapshot
    breakdown = Text()  # JSON price breakdown
    total_amount = Float(required=True)


@marketplace.command_handler(part_of=Order)
class VerifyAndPlaceOrderHandler:
    @handle(VerifyAndPlaceOrder)
    def verify_and_place(self, command):
        method = classify_payment_method(command.payment_method)
        item = json.loads(command.item) if isinstance(command.item, str) else command.item
        breakdown = json.loads(command.breakdown) if isinstance(command.breakdown, str) else dict(command.breakdown or {})
        total = Decimal(str(command.total_amount))

        if method == PaymentMethod.ONLINE:
            proof = PaymentProof(
                gateway_order_id=command.gateway_order_id or "",
                gateway_payment_id=command.gateway_payment_id or "",
                signature=command.signature or "",
            )
            if not proof.is_complete:
                raise PaymentVerificationFailed({"signature": ["Missing payment verification details"]})
            if not get_verifier().verify(proof):
                logger.warning(
                    "Payment signature mismatch",
                    gateway_order_id=proof.gateway_order_id,
                    gateway_payment_id=proof.gateway_payment_id,
                )
                raise PaymentVerificationFailed({"signature": ["Payment verification failed"]})

            existing = find_by_payment_reference(proof.gateway_payment_id)
            if existing is not None:
                raise DuplicatePaymentReference(
                    {"gateway_payment_id": [f"Payment already recorded on order {existing.order_id}"]}
                )
            payment_status = PaymentStatus.COMPLETED
        else:
            surcharge = get_settings().COD_SURCHARGE
            total += surcharge
            breakdown["cod_fee"] = float(surcharge)
            payment_status = PaymentStatus.PENDING

        order = Order.place(
            customer_id=command.customer_id,
            seller_id=command.seller_id,
            item=item,
            total_amount=float(total),
            payment_method=method.value,
            payment_status=payment_status.value,
            breakdown=breakdown,
            customer_name=command.customer_name,
            customer_email=command.customer_email,
            customer_phone=command.customer_phone,
            delivery_address=command.delivery_address,
            estimated_delivery=command.estimated_delivery,
            gateway_order_id=command.gateway_order_id if method == PaymentMethod.ONLINE else None,
            gateway_payment_id=command.gateway_payment_id if method == PaymentMethod.ONLINE else None,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=order.order_id,
            seller_id=str(order.seller_id),
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            total_amount=order.total_amount,
        )
        return order


def verify_and_place_order(payment_method: str, draft: dict, proof: PaymentProof | None = None) -> Order:
    """Verify the payment and persist the order described by ``draft``.

    ``draft`` carries the customer, seller, item snapshot, breakdown and
    pre-surcharge ``total_amount``. Online payments are serialized per gateway
    payment id so a retried callback cannot create a second order.
    """
    command = VerifyAndPlaceOrder(
        payment_method=payment_method,
        gateway_order_id=proof.gateway_order_id if proof else None,
        gateway_payment_id=proof.gateway_payment_id if proof else None,
        signature=proof.signature if proof else None,
        customer_id=draft.get("customer_id"),
        seller_id=draft.get("seller_id"),
        customer_name=draft.get("customer_name"),
        customer_email=draft.get("customer_email"),
        customer_phone=draft.get("customer_phone"),
        delivery_address=draft.get("delivery_address"),
        estimated_delivery=draft.get("estimated_delivery"),
        item=json.dumps(draft.get("item") or {}),
        breakdown=json.dumps(draft.get("breakdown") or {}),
        total_amount=draft.get("total_amount"),
    )

    if proof is not None and proof.gateway_payment_id:
        timeout = get_settings().ORDER_LOCK_TIMEOUT_SECONDS
        with order_locks.hold(f"payment:{proof.gateway_payment_id}", timeout):
            return current_domain.process(command, asynchronous=False)
    return current_domain.process(command, asynchronous=False)
