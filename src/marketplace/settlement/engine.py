"""Settlement engine — seller payouts derived from completed orders.

Everything here is a pure function of the orders passed in and the rates in
force: no I/O, no clock reads unless a ``now`` is supplied, and nothing is
written back. Running the same computation twice gives the same result, so a
settlement can always be re-derived instead of stored.

Money is summed as ``Decimal`` from each order's ``total_amount`` (the stored
display breakdown is never consulted) and rounded half-up to two places only
when the result is produced.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import UTC, date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from marketplace.config import Settings, get_settings
from marketplace.errors import SettlementComputationError

CENT = Decimal("0.01")
ZERO = Decimal("0")

_DELIVERED = "delivered"
_COMPLETED = "completed"
_COD = "cod"


@dataclass(frozen=True)
class SettlementRates:
    platform_fee_rate: Decimal
    tcs_rate: Decimal
    tds_rate: Decimal

    @property
    def tax_rate(self) -> Decimal:
        return self.tcs_rate + self.tds_rate

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "SettlementRates":
        settings = settings or get_settings()
        return cls(
            platform_fee_rate=Decimal(str(settings.PLATFORM_FEE_RATE)),
            tcs_rate=Decimal(str(settings.TCS_RATE)),
            tds_rate=Decimal(str(settings.TDS_RATE)),
        )


@dataclass(frozen=True)
class SettlementPeriod:
    seller_id: str
    period_start: datetime
    period_end: datetime
    gross_revenue: Decimal
    platform_fee: Decimal
    tcs: Decimal
    tds: Decimal
    tax_withheld: Decimal
    net_payable: Decimal
    order_count: int
    online_order_count: int = 0
    cod_order_count: int = 0
    online_amount: Decimal = ZERO
    cod_amount: Decimal = ZERO
    order_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def week_label(self) -> str:
        iso_year, iso_week, _ = self.period_start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["order_ids"] = list(self.order_ids)
        return data


@dataclass(frozen=True)
class SettlementDashboard:
    seller_id: str
    generated_at: datetime
    summary: SettlementPeriod
    current_week: SettlementPeriod
    past_weeks: list[SettlementPeriod]
    daily: list[SettlementPeriod]
    recent_orders: list[dict]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def as_utc(value: datetime | date) -> datetime:
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def week_key(moment: datetime) -> tuple[int, int]:
    """(ISO year, ISO week) of a moment; weeks start on Monday."""
    iso_year, iso_week, _ = as_utc(moment).isocalendar()
    return iso_year, iso_week


def week_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """Monday 00:00 to Sunday 23:59:59.999999 (UTC) of the week containing ``moment``."""
    moment = as_utc(moment)
    start = datetime.combine(moment.date() - timedelta(days=moment.weekday()), time.min, tzinfo=UTC)
    return start, start + timedelta(days=7) - timedelta(microseconds=1)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=UTC)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def period_bounds(period_start, period_end) -> tuple[datetime, datetime]:
    """UTC bounds of a closed settlement period.

    A plain ``date`` end covers that whole day, so ``(date(2024, 3, 4), date(2024, 3, 10))``
    is the full week rather than stopping at midnight on the Sunday.
    """
    start = as_utc(period_start)
    if isinstance(period_end, datetime):
        end = as_utc(period_end)
    else:
        _, end = day_bounds(period_end)
    if start > end:
        raise SettlementComputationError({"period": ["period_start must not be after period_end"]})
    return start, end


def _amount(order) -> Decimal:
    raw = getattr(order, "total_amount", None)
    try:
        amount = Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise SettlementComputationError(
            {"total_amount": [f"Order {order.order_id} has an unreadable total amount: {raw!r}"]}
        ) from None
    if raw is None or not amount.is_finite() or amount <= 0:
        raise SettlementComputationError({"total_amount": [f"Order {order.order_id} has no positive total amount"]})
    return amount


def _created_at(order) -> datetime:
    created_at = getattr(order, "created_at", None)
    if created_at is None:
        raise SettlementComputationError({"created_at": [f"Order {order.order_id} has no creation time"]})
    return as_utc(created_at)


def _is_settleable(order) -> bool:
    return order.order_status == _DELIVERED and order.payment_status == _COMPLETED


def seller_orders(orders: Iterable, seller_id: str) -> list:
    return [o for o in orders if str(o.seller_id) == str(seller_id)]


def contributing_orders(orders: Iterable, seller_id: str, period_start, period_end) -> list:
    """Delivered, paid orders of ``seller_id`` created inside the closed interval, oldest first."""
    start, end = period_bounds(period_start, period_end)

    selected = []
    for order in seller_orders(orders, seller_id):
        if not _is_settleable(order):
            continue
        if start <= _created_at(order) <= end:
            selected.append(order)
    return sorted(selected, key=lambda o: (_created_at(o), o.order_id))


# ---------------------------------------------------------------------------
# Computations
# ---------------------------------------------------------------------------
def compute_settlement(
    orders: Iterable,
    seller_id: str,
    period_start,
    period_end,
    rates: SettlementRates | None = None,
) -> SettlementPeriod:
    """Settlement for one seller over ``[period_start, period_end]``."""
    rates = rates or SettlementRates.from_settings()
    period_start, period_end = period_bounds(period_start, period_end)
    selected = contributing_orders(orders, seller_id, period_start, period_end)

    gross = ZERO
    online_amount = cod_amount = ZERO
    online_count = cod_count = 0
    for order in selected:
        amount = _amount(order)
        gross += amount
        if order.payment_method == _COD:
            cod_amount += amount
            cod_count += 1
        else:
            online_amount += amount
            online_count += 1

    platform_fee = gross * rates.platform_fee_rate
    tcs = gross * rates.tcs_rate
    tds = gross * rates.tds_rate
    tax_withheld = gross * rates.tax_rate
    net = gross - platform_fee - tax_withheld

    return SettlementPeriod(
        seller_id=str(seller_id),
        period_start=period_start,
        period_end=period_end,
        gross_revenue=money(gross),
        platform_fee=money(platform_fee),
        tcs=money(tcs),
        tds=money(tds),
        tax_withheld=money(tax_withheld),
        net_payable=money(net),
        order_count=len(selected),
        online_order_count=online_count,
        cod_order_count=cod_count,
        online_amount=money(online_amount),
        cod_amount=money(cod_amount),
        order_ids=tuple(o.order_id for o in selected),
    )


def weekly_settlements(orders: Iterable, seller_id: str, rates: SettlementRates | None = None) -> list[SettlementPeriod]:
    """One settlement per ISO week that has at least one settleable order, oldest week first."""
    rates = rates or SettlementRates.from_settings()
    orders = seller_orders(orders, seller_id)

    weeks: dict[tuple[int, int], datetime] = {}
    for order in orders:
        if _is_settleable(order):
            created_at = _created_at(order)
            weeks.setdefault(week_key(created_at), created_at)

    periods = []
    for key in sorted(weeks):
        start, end = week_bounds(weeks[key])
        periods.append(compute_settlement(orders, seller_id, start, end, rates))
    return periods


def daily_settlements(
    orders: Iterable,
    seller_id: str,
    period_start,
    period_end,
    rates: SettlementRates | None = None,
) -> list[SettlementPeriod]:
    """One settlement per calendar day (UTC) between the two bounds, including empty days."""
    rates = rates or SettlementRates.from_settings()
    orders = seller_orders(orders, seller_id)
    first, last = as_utc(period_start).date(), as_utc(period_end).date()

    periods = []
    day = first
    while day <= last:
        start, end = day_bounds(day)
        periods.append(compute_settlement(orders, seller_id, start, end, rates))
        day += timedelta(days=1)
    return periods


def settlement_dashboard(
    orders: Iterable,
    seller_id: str,
    now: datetime,
    rates: SettlementRates | None = None,
    past_week_count: int = 4,
    recent_count: int = 10,
) -> SettlementDashboard:
    """Everything a seller's payout screen shows, computed from one pass over their orders."""
    rates = rates or SettlementRates.from_settings()
    now = as_utc(now)
    orders = seller_orders(orders, seller_id)

    epoch = datetime(1970, 1, 1, tzinfo=UTC)
    summary = compute_settlement(orders, seller_id, epoch, now, rates)

    week_start, week_end = week_bounds(now)
    current_week = compute_settlement(orders, seller_id, week_start, week_end, rates)

    past_weeks = []
    for offset in range(1, past_week_count + 1):
        start, end = week_bounds(week_start - timedelta(weeks=offset))
        past_weeks.append(compute_settlement(orders, seller_id, start, end, rates))

    month_start = datetime(now.year, now.month, 1, tzinfo=UTC)
    daily = daily_settlements(orders, seller_id, month_start, now, rates)

    recent = sorted(orders, key=lambda o: _created_at(o), reverse=True)[:recent_count]
    recent_orders = [
        {
            "order_id": o.order_id,
            "customer_name": o.customer_name,
            "order_status": o.order_status,
            "payment_method": o.payment_method,
            "payment_status": o.payment_status,
            "total_amount": money(_amount(o)),
            "created_at": _created_at(o),
        }
        for o in recent
    ]

    return SettlementDashboard(
        seller_id=str(seller_id),
        generated_at=now,
        summary=summary,
        current_week=current_week,
        past_weeks=past_weeks,
        daily=daily,
        recent_orders=recent_orders,
    )


def group_by_seller(orders: Iterable) -> dict[str, list]:
    grouped: dict[str, list] = defaultdict(list)
    for order in orders:
        grouped[str(order.seller_id)].append(order)
    return dict(grouped)
