"""FastAPI routes for orders, payments, settlements and notification deliveries."""

from datetime import date, datetime

import structlog
from fastapi import APIRouter, Header, Query
from fastapi.responses import Response
from protean.exceptions import ValidationError

from marketplace.api.schemas import (
    CancelOrderRequest,
    CashOnDeliveryRequest,
    DashboardResponse,
    DeliveryResponse,
    OrderResponse,
    RejectOrderRequest,
    SettlementResponse,
    TransitionRequest,
    VerifyPaymentRequest,
)
from marketplace.notification.delivery_log import get_delivery_log
from marketplace.order.queries import find_order
from marketplace.order.transition import accept_order, cancel_order, reject_order, transition_order
from marketplace.payment.verification import verify_and_place_order
from marketplace.payment.verifier.port import PaymentProof
from marketplace.settlement.engine import as_utc, day_bounds
from marketplace.settlement.report import report_filename
from marketplace.settlement.service import (
    seller_csv_report,
    seller_dashboard,
    seller_weekly_settlements,
    settle_seller,
)

logger = structlog.get_logger(__name__)


def _parse_bound(value: str, field: str, upper: bool) -> datetime:
    try:
        if len(value) == 10:
            start, end = day_bounds(date.fromisoformat(value))
            return end if upper else start
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        raise ValidationError({field: [f"Invalid date: {value}"]}) from None


def _period(start: str, end: str) -> tuple[datetime, datetime]:
    """Plain dates cover the whole day, so ``?start=2024-03-04&end=2024-03-10`` includes the 10th."""
    return _parse_bound(start, "start", upper=False), _parse_bound(end, "end", upper=True)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return OrderResponse.from_order(find_order(order_id))


@order_router.post("/{order_id}/transitions", response_model=OrderResponse)
async def transition(
    order_id: str,
    body: TransitionRequest,
    x_actor_id: str | None = Header(default=None),
) -> OrderResponse:
    logger.info(
        "Transition requested",
        order_id=order_id,
        target_status=body.target_status,
        actor=body.actor,
        actor_id=x_actor_id,
    )
    order = transition_order(order_id, body.target_status, body.actor, body.note)
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/accept", response_model=OrderResponse)
async def accept(order_id: str, x_actor_id: str | None = Header(default=None)) -> OrderResponse:
    logger.info("Seller accepting order", order_id=order_id, actor_id=x_actor_id)
    return OrderResponse.from_order(accept_order(order_id))


@order_router.put("/{order_id}/reject", response_model=OrderResponse)
async def reject(
    order_id: str,
    body: RejectOrderRequest,
    x_actor_id: str | None = Header(default=None),
) -> OrderResponse:
    logger.info("Seller rejecting order", order_id=order_id, actor_id=x_actor_id)
    return OrderResponse.from_order(reject_order(order_id, body.reason))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel(
    order_id: str,
    body: CancelOrderRequest,
    x_actor_id: str | None = Header(default=None),
) -> OrderResponse:
    logger.info("Order cancellation requested", order_id=order_id, actor=body.actor, actor_id=x_actor_id)
    return OrderResponse.from_order(cancel_order(order_id, body.reason, body.actor))


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/verify", status_code=201, response_model=OrderResponse)
async def verify_payment(body: VerifyPaymentRequest) -> OrderResponse:
    proof = PaymentProof(
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
    )
    order = verify_and_place_order(body.payment_method, body.order.model_dump(exclude_none=True), proof)
    return OrderResponse.from_order(order)


@payment_router.post("/cod", status_code=201, response_model=OrderResponse)
async def cash_on_delivery(body: CashOnDeliveryRequest) -> OrderResponse:
    order = verify_and_place_order("cod", body.order.model_dump(exclude_none=True))
    return OrderResponse.from_order(order)


# ---------------------------------------------------------------------------
# Settlement Router
# ---------------------------------------------------------------------------
settlement_router = APIRouter(prefix="/settlements", tags=["settlements"])


@settlement_router.get("/{seller_id}", response_model=SettlementResponse)
async def get_settlement(
    seller_id: str,
    start: str = Query(...),
    end: str = Query(...),
) -> SettlementResponse:
    period_start, period_end = _period(start, end)
    return SettlementResponse.from_period(settle_seller(seller_id, period_start, period_end))


@settlement_router.get("/{seller_id}/report.csv")
async def get_settlement_report(
    seller_id: str,
    start: str = Query(...),
    end: str = Query(...),
) -> Response:
    period_start, period_end = _period(start, end)
    period, content = seller_csv_report(seller_id, period_start, period_end)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(period)}"'},
    )


@settlement_router.get("/{seller_id}/weekly", response_model=list[SettlementResponse])
async def get_weekly_settlements(seller_id: str) -> list[SettlementResponse]:
    return [SettlementResponse.from_period(p) for p in seller_weekly_settlements(seller_id)]


@settlement_router.get("/{seller_id}/dashboard", response_model=DashboardResponse)
async def get_settlement_dashboard(seller_id: str) -> DashboardResponse:
    return DashboardResponse.from_dashboard(seller_dashboard(seller_id))


# ---------------------------------------------------------------------------
# Notification Router
# ---------------------------------------------------------------------------
notification_router = APIRouter(prefix="/notifications", tags=["notifications"])


@notification_router.get("/deliveries", response_model=list[DeliveryResponse])
async def list_deliveries(
    order_id: str | None = None,
    channel: str | None = None,
    delivered: bool | None = None,
) -> list[DeliveryResponse]:
    entries = get_delivery_log().entries(order_id=order_id, channel=channel, delivered=delivered)
    return [DeliveryResponse(**entry.to_dict()) for entry in entries]
