"""
Command-line entry point for Cordage Tracker.

Administrative commands for the back office database:

    cordage-tracker init                     create tables if missing
    cordage-tracker reset --confirm          drop and recreate all tables
    cordage-tracker stock MATERIAL|PRODUCT   print non-zero balances
    cordage-tracker receivables [--customer ID]
"""

import argparse
import logging
import sys
from typing import List, Optional

from .services import receivables_service, stock_ledger_service
from .services.database import initialize_app_database, reset_database
from .services.exceptions import ServiceError
from .utils.config import get_config


def _cmd_init(args) -> int:
    config = get_config()
    print(f"Environment: {config.environment}")
    print(f"Database: {config.database_url}")
    initialize_app_database()
    return 0


def _cmd_reset(args) -> int:
    if not args.confirm:
        print("Refusing to reset without --confirm")
        return 1
    reset_database(confirm=True)
    print("Database reset")
    return 0


def _cmd_stock(args) -> int:
    rows = stock_ledger_service.stock_summary(args.item_kind)
    if not rows:
        print("No stock")
        return 0
    for row in rows:
        line = f"item {row['item_id']:>5}  zone {row['zone_id']:>3}  {row['quantity']:>14} kg"
        if row.get("presentation_id") is not None:
            line += f"  presentation {row['presentation_id']}"
        print(line)
    return 0


def _cmd_receivables(args) -> int:
    if args.customer is not None:
        report = receivables_service.get_customer_receivable(args.customer, balance=args.balance)
        print(f"{report['customer_name']} (IGV {report['igv_rate']})")
        for row in report["deliveries"]:
            print(
                f"  delivery {row['delivery_id']:>5}  {row['delivery_date']}  "
                f"total {row['total']:>12}  pending {row['pending']:>12}"
            )
    else:
        report = receivables_service.get_receivables_summary()
        for row in report["customers"]:
            print(f"  {row['customer_name']:<30} total {row['total']:>12}  pending {row['pending']:>12}")
    print(f"Total {report['total']}  Paid {report['paid']}  Pending {report['pending']}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cordage-tracker", description="Cordage back office")
    parser.add_argument("--verbose", action="store_true", help="Log service operations")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init", help="Create the database if needed").set_defaults(func=_cmd_init)

    reset = commands.add_parser("reset", help="Drop and recreate all tables")
    reset.add_argument("--confirm", action="store_true", help="Really delete all data")
    reset.set_defaults(func=_cmd_reset)

    stock = commands.add_parser("stock", help="Print stock balances")
    stock.add_argument("item_kind", choices=["MATERIAL", "PRODUCT"])
    stock.set_defaults(func=_cmd_stock)

    receivables = commands.add_parser("receivables", help="Print what customers owe")
    receivables.add_argument("--customer", type=int, default=None, help="Customer ID")
    receivables.add_argument(
        "--balance", choices=list(receivables_service.BALANCE_FILTERS), default="all"
    )
    receivables.set_defaults(func=_cmd_receivables)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments and run one command.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
