"""Background jobs run by the worker's scheduler.

Each job pushes its own domain context, only reads orders, and reports
through the live channel and the log. A job never changes an order.
"""

from datetime import UTC, datetime, timedelta

import structlog

from marketplace.config import get_settings
from marketplace.domain import marketplace
from marketplace.notification.channel import LIVE, get_channel
from marketplace.notification.delivery_log import get_delivery_log
from marketplace.notification.fanout import seller_room
from marketplace.order.order import OrderStatus
from marketplace.order.queries import iter_orders
from marketplace.settlement.engine import as_utc
from marketplace.settlement.service import previous_week, settle_all_sellers

logger = structlog.get_logger(__name__)

SETTLEMENT_READY = "settlement-ready"
PENDING_REMINDER = "pending-order-reminder"


def _now(now: datetime | None) -> datetime:
    return as_utc(now) if now is not None else datetime.now(UTC)


def _broadcast(room: str, event: str, payload: dict) -> bool:
    try:
        get_channel(LIVE).broadcast(room, event, payload)
    except Exception as exc:
        logger.warning("Job broadcast failed", room=room, live_event=event, error=str(exc))
        return False
    return True


def run_weekly_settlement(now: datetime | None = None) -> list[dict]:
    """Settle the previous ISO week for every seller and tell each seller their payout is ready."""
    now = _now(now)
    period_start, period_end = previous_week(now)

    with marketplace.domain_context():
        periods = settle_all_sellers(period_start, period_end)

    summaries = []
    for period in periods:
        summary = {
            "sellerId": period.seller_id,
            "week": period.week_label,
            "periodStart": period.period_start.isoformat(),
            "periodEnd": period.period_end.isoformat(),
            "orderCount": period.order_count,
            "grossRevenue": str(period.gross_revenue),
            "platformFee": str(period.platform_fee),
            "taxWithheld": str(period.tax_withheld),
            "netPayable": str(period.net_payable),
        }
        _broadcast(seller_room(period.seller_id), SETTLEMENT_READY, summary)
        summaries.append(summary)

    logger.info(
        "Weekly settlement run completed",
        period_start=period_start.isoformat(),
        period_end=period_end.isoformat(),
        sellers=len(summaries),
    )
    return summaries


def remind_stale_pending_orders(now: datetime | None = None) -> list[str]:
    """Nudge sellers about orders that have waited for confirmation too long."""
    now = _now(now)
    threshold = now - timedelta(minutes=get_settings().PENDING_REMINDER_MINUTES)

    reminded = []
    with marketplace.domain_context():
        for order in iter_orders(order_status=OrderStatus.PENDING_SELLER.value):
            if order.created_at is None or as_utc(order.created_at) > threshold:
                continue
            waiting = int((now - as_utc(order.created_at)).total_seconds() // 60)
            _broadcast(
                seller_room(order.seller_id),
                PENDING_REMINDER,
                {
                    "orderId": order.order_id,
                    "orderMongoId": str(order.id),
                    "customerName": order.customer_name,
                    "waitingMinutes": waiting,
                    "message": f"Order {order.order_id} has been waiting {waiting} minutes for confirmation",
                },
            )
            reminded.append(order.order_id)

    if reminded:
        logger.info("Pending order reminders sent", count=len(reminded))
    return reminded


def prune_delivery_log(now: datetime | None = None) -> int:
    """Drop delivery log entries older than the retention window."""
    cutoff = _now(now) - timedelta(hours=get_settings().DELIVERY_LOG_RETENTION_HOURS)
    removed = get_delivery_log().prune(cutoff)
    logger.info("Delivery log pruned", removed=removed, cutoff=cutoff.isoformat())
    return removed


JOBS = {
    "weekly-settlement": run_weekly_settlement,
    "pending-reminders": remind_stale_pending_orders,
    "prune-delivery-log": prune_delivery_log,
}
