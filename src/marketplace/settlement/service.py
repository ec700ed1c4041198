"""Settlement reads against the order store.

Thin wrappers that load a seller's orders page by page and hand them to the
pure engine. Nothing is persisted; every call recomputes from current orders.
"""

from datetime import UTC, datetime, timedelta

import structlog

from marketplace.errors import SettlementComputationError, first_message
from marketplace.order.queries import iter_orders
from marketplace.settlement.engine import (
    SettlementDashboard,
    SettlementPeriod,
    SettlementRates,
    compute_settlement,
    group_by_seller,
    settlement_dashboard,
    week_bounds,
    weekly_settlements,
)
from marketplace.settlement.report import build_csv_report

logger = structlog.get_logger(__name__)


def settle_seller(seller_id: str, period_start, period_end, rates: SettlementRates | None = None) -> SettlementPeriod:
    orders = list(iter_orders(seller_id=seller_id))
    period = compute_settlement(orders, seller_id, period_start, period_end, rates)
    logger.info(
        "Settlement computed",
        seller_id=seller_id,
        period_start=period.period_start.isoformat(),
        period_end=period.period_end.isoformat(),
        order_count=period.order_count,
        net_payable=str(period.net_payable),
    )
    return period


def seller_weekly_settlements(seller_id: str, rates: SettlementRates | None = None) -> list[SettlementPeriod]:
    return weekly_settlements(iter_orders(seller_id=seller_id), seller_id, rates)


def seller_dashboard(seller_id: str, now: datetime | None = None) -> SettlementDashboard:
    return settlement_dashboard(iter_orders(seller_id=seller_id), seller_id, now or datetime.now(UTC))


def seller_csv_report(seller_id: str, period_start, period_end) -> tuple[SettlementPeriod, str]:
    orders = list(iter_orders(seller_id=seller_id))
    period = compute_settlement(orders, seller_id, period_start, period_end)
    return period, build_csv_report(period, orders)


def previous_week(now: datetime) -> tuple[datetime, datetime]:
    """Bounds of the ISO week before the one containing ``now``."""
    this_monday, _ = week_bounds(now)
    return week_bounds(this_monday - timedelta(days=1))


def settle_all_sellers(period_start, period_end, rates: SettlementRates | None = None) -> list[SettlementPeriod]:
    """Settle every seller with a delivered order in the period. Sellers with nothing to pay are left out."""
    rates = rates or SettlementRates.from_settings()
    grouped = group_by_seller(iter_orders(order_status="delivered"))

    periods = []
    for seller_id in sorted(grouped):
        try:
            period = compute_settlement(grouped[seller_id], seller_id, period_start, period_end, rates)
        except SettlementComputationError as exc:
            logger.error("Settlement skipped for seller", seller_id=seller_id, error=first_message(exc))
            continue
        if period.order_count:
            periods.append(period)
    return periods
