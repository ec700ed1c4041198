"""CSV settlement report: one row per contributing order, then a summary block."""

import csv
import io
from collections.abc import Iterable
from decimal import Decimal

from marketplace.settlement.engine import SettlementPeriod, as_utc, money

ORDER_COLUMNS = ["Order ID", "Date", "Customer", "Item", "Amount", "Payment Method", "Status"]


def _item_name(order) -> str:
    item = getattr(order, "item", None)
    return item.name if item is not None and item.name else "N/A"


def build_csv_report(period: SettlementPeriod, orders: Iterable) -> str:
    """Render ``period`` as CSV.

    Only orders listed in ``period.order_ids`` are written, in the same order
    the settlement summed them, so the rows always add up to the summary.
    """
    by_id = {o.order_id: o for o in orders}

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Settlement Report"])
    writer.writerow(["Seller", period.seller_id])
    writer.writerow(["Period", period.period_start.isoformat(), period.period_end.isoformat()])
    writer.writerow([])

    writer.writerow(ORDER_COLUMNS)
    for order_id in period.order_ids:
        order = by_id.get(order_id)
        if order is None:
            continue
        writer.writerow(
            [
                order.order_id,
                as_utc(order.created_at).isoformat(),
                order.customer_name or "N/A",
                _item_name(order),
                f"{money(Decimal(str(order.total_amount))):.2f}",
                order.payment_method,
                order.order_status,
            ]
        )

    writer.writerow([])
    writer.writerow(["Summary"])
    rows = [
        ("Total Orders", period.order_count, ""),
        ("Online Orders", period.online_order_count, f"{period.online_amount:.2f}"),
        ("COD Orders", period.cod_order_count, f"{period.cod_amount:.2f}"),
        ("Total Revenue", "", f"{period.gross_revenue:.2f}"),
        ("Platform Fees", "", f"{period.platform_fee:.2f}"),
        ("TCS", "", f"{period.tcs:.2f}"),
        ("TDS", "", f"{period.tds:.2f}"),
        ("Net Settlement", "", f"{period.net_payable:.2f}"),
    ]
    for label, count, amount in rows:
        writer.writerow([label, count, amount])

    return buffer.getvalue()


def report_filename(period: SettlementPeriod) -> str:
    return f"settlement-{period.seller_id}-{period.period_start:%Y%m%d}-{period.period_end:%Y%m%d}.csv"
