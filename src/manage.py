"""TasteSphere management CLI.

Database schema management and on-demand seller settlements.

Usage:
    python src/manage.py setup-db                     # Create all tables
    python src/manage.py drop-db                      # Drop all tables
    python src/manage.py settle --seller S1 --start 2024-03-04 --end 2024-03-10
    python src/manage.py settle --seller S1 --start 2024-03-04 --end 2024-03-10 --csv report.csv
"""

import argparse
import sys
from datetime import date


def _init():
    from marketplace.domain import marketplace
    from marketplace.utils.logging import configure_logging

    configure_logging()
    marketplace.init()
    return marketplace


def setup_database():
    from marketplace.utils.db import setup_db

    domain = _init()
    print("Creating marketplace database schema...")
    touched = setup_db(domain)
    if not touched:
        print("  No SQL providers configured (is PROTEAN_ENV=production set?).")
    print("Done.")


def drop_database():
    from marketplace.utils.db import drop_db

    domain = _init()
    print("Dropping marketplace database schema...")
    drop_db(domain)
    print("Done.")


def settle(seller_id: str, start: date, end: date, csv_path: str | None = None):
    from marketplace.settlement.engine import day_bounds
    from marketplace.settlement.service import seller_csv_report

    domain = _init()
    period_start, _ = day_bounds(start)
    _, period_end = day_bounds(end)

    with domain.domain_context():
        period, content = seller_csv_report(seller_id, period_start, period_end)

    print(f"Settlement for {seller_id} ({period.week_label}, {start} to {end})")
    print(f"  Orders:         {period.order_count} ({period.online_order_count} online, {period.cod_order_count} COD)")
    print(f"  Gross revenue:  {period.gross_revenue}")
    print(f"  Platform fee:   {period.platform_fee}")
    print(f"  TCS:            {period.tcs}")
    print(f"  TDS:            {period.tds}")
    print(f"  Net payable:    {period.net_payable}")

    if csv_path:
        with open(csv_path, "w", newline="") as handle:
            handle.write(content)
        print(f"  Report written to {csv_path}")
    return period


def main():
    parser = argparse.ArgumentParser(description="TasteSphere management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    settle_parser = subparsers.add_parser("settle", help="Compute a seller settlement")
    settle_parser.add_argument("--seller", required=True, help="Seller id")
    settle_parser.add_argument("--start", required=True, type=date.fromisoformat, help="First day (YYYY-MM-DD)")
    settle_parser.add_argument("--end", required=True, type=date.fromisoformat, help="Last day (YYYY-MM-DD)")
    settle_parser.add_argument("--csv", dest="csv_path", help="Write the CSV report to this path")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "settle":
        settle(args.seller, args.start, args.end, args.csv_path)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
