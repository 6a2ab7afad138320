"""
Ledger CLI Utility

Command-line interface to the batch ledger for scripting, back-office
operations and testing. Every command initializes the database first.

Usage Examples:
    # Create tables
    cafe-ledger init-db

    # Start over (deletes everything)
    cafe-ledger reset-db --yes

    # Load product reference data exported from the catalog
    cafe-ledger load-products products.json

    # Check in today's stock
    cafe-ledger add-batch 3 12
    cafe-ledger add-batch 7 1.250 --date 2025-03-10

    # Record a sale (FIFO) or just preview it
    cafe-ledger deduct 3 5
    cafe-ledger deduct 3 5 --dry-run

    # End-of-day return: return everything listed except the kept batches
    cafe-ledger process-return --by alice --batches 4 5 6 --keep 6 --override 5=100

    # History and undo
    cafe-ledger list-returns --from 2025-03-01 --to 2025-03-31
    cafe-ledger show-return 12
    cafe-ledger undo-return 12
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from ..services import (
    batch_service,
    fifo_service,
    product_service,
    return_service,
    return_undo_service,
    stock_service,
)
from ..services.database import initialize_app_database, reset_database
from ..services.exceptions import ServiceError
from ..models.base import serialize_value
from .constants import APP_NAME, APP_VERSION, DATE_FORMAT


def _parse_date(value: str) -> date:
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def _parse_override(value: str):
    batch_id, sep, percentage = value.partition("=")
    if not sep or not batch_id.strip().isdigit():
        raise argparse.ArgumentTypeError(f"invalid override {value!r}, expected BATCH_ID=PERCENT")
    return int(batch_id), percentage.strip()


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=serialize_value))


def init_db() -> int:
    """Create the ledger tables."""
    print("Database ready.")
    return 0


def reset_db(confirm: bool) -> int:
    """Drop and recreate every ledger table."""
    reset_database(confirm=confirm)
    print("Database reset: all batches, returns and products deleted.")
    return 0


def load_products(path: str) -> int:
    """Import product reference data from a JSON file."""
    result = product_service.import_products_from_json(path)
    print(f"Products created: {result['created']}, updated: {result['updated']}")
    return 0


def add_batch(product_id: int, quantity: str, date_added: Optional[date]) -> int:
    """Check in a batch of one product."""
    batch = batch_service.create_batch(product_id, quantity, date_added=date_added)
    print(f"Created batch {batch.id}: product {product_id}, {batch.quantity} on {batch.date_added}")
    return 0


def list_batches(search: Optional[str], age: Optional[str]) -> int:
    """List active batches, oldest first."""
    batches = batch_service.list_all_active_batches()
    batches = batch_service.filter_batches(batches, search=search, age_category=age)
    if not batches:
        print("No active batches.")
        return 0
    print(f"{'ID':>6}  {'Product':<30} {'Quantity':>12}  {'Added':<10} {'Age':>4}  Category")
    for batch in batches:
        row = batch_service.batch_to_dict(batch)
        print(
            f"{row['id']:>6}  {row['product_name'][:30]:<30} {row['quantity']:>12}  "
            f"{row['date_added'].strftime(DATE_FORMAT):<10} {row['age']:>4}  {row['age_category']}"
        )
    return 0


def show_stock(product_id: Optional[int]) -> int:
    """Print active stock of one product or all products."""
    if product_id is not None:
        print(f"Product {product_id}: {stock_service.total_stock(product_id)}")
        return 0
    levels = stock_service.stock_by_product()
    if not levels:
        print("No stock on hand.")
    for pid, total in sorted(levels.items()):
        print(f"Product {pid}: {total}")
    return 0


def deduct(product_id: int, quantity: str, dry_run: bool) -> int:
    """Deduct sold quantity FIFO."""
    result = fifo_service.deduct(product_id, quantity, dry_run=dry_run)
    label = "Would consume" if dry_run else "Consumed"
    print(f"{label} {result['consumed']} of {result['requested']} for product {product_id}")
    for line in result["breakdown"]:
        print(
            f"  batch {line['batch_id']} ({line['date_added']}): "
            f"-{line['quantity_consumed']}, {line['remaining_in_batch']} left"
        )
    if not result["satisfied"]:
        print(f"  shortfall: {result['shortfall']}")
        return 1
    return 0


def process_return(
    processed_by: str,
    batch_ids: List[int],
    keep_ids: List[int],
    overrides: Dict[int, str],
    preview: bool,
) -> int:
    """Preview or commit a return."""
    if preview:
        _print_json(return_service.preview_return(batch_ids, keep_ids, overrides))
        return 0

    result = return_service.process_return(
        batch_ids, processed_by, keep_batch_ids=keep_ids, percentage_overrides=overrides
    )
    print(
        f"Return {result['return_id']} recorded: {result['total_batches']} batch(es), "
        f"quantity {result['total_quantity']}, value {result['total_value']:.2f}"
    )
    for warning in result["warnings"]:
        print(f"WARNING: {warning}")
    return 0


def undo_return(return_id: int) -> int:
    """Undo a committed return."""
    result = return_undo_service.undo_return(return_id)
    print(
        f"Return {return_id} undone: {result['batches_restored']} batch(es) restored, "
        f"value {result['total_value']:.2f} reversed"
    )
    for warning in result["warnings"]:
        print(f"WARNING: {warning}")
    return 0


def list_returns(start: Optional[date], end: Optional[date]) -> int:
    """List return records, newest first."""
    records = return_service.list_returns(start_date=start, end_date=end)
    if not records:
        print("No returns found.")
        return 0
    for record in records:
        print(
            f"#{record.id}  {record.return_date}  by {record.processed_by}  "
            f"{record.total_batches} batch(es)  qty {record.total_quantity}  "
            f"value {Decimal(record.total_value):.2f}"
        )
    return 0


def show_return(return_id: int) -> int:
    """Print a return with its items."""
    _print_json(return_service.get_return_details(return_id))
    return 0


def purge_depleted() -> int:
    """Delete depleted batches."""
    count = batch_service.purge_depleted_batches()
    print(f"Purged {count} depleted batch(es)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cafe-ledger",
        description=f"{APP_NAME} {APP_VERSION} - batch inventory ledger",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log service operations")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create database tables")

    reset_parser = subparsers.add_parser("reset-db", help="Delete all data and recreate tables")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm deleting all data")

    load_parser = subparsers.add_parser("load-products", help="Import product reference data")
    load_parser.add_argument("file", help="JSON file path")

    add_parser = subparsers.add_parser("add-batch", help="Check in a batch")
    add_parser.add_argument("product_id", type=int)
    add_parser.add_argument("quantity")
    add_parser.add_argument("--date", dest="date_added", type=_parse_date, help="YYYY-MM-DD")

    list_parser = subparsers.add_parser("list-batches", help="List active batches")
    list_parser.add_argument("--search", help="Product name contains")
    list_parser.add_argument("--age", choices=["all", "fresh", "medium", "old"])

    stock_parser = subparsers.add_parser("stock", help="Show active stock")
    stock_parser.add_argument("product_id", type=int, nargs="?")

    deduct_parser = subparsers.add_parser("deduct", help="Deduct sold quantity (FIFO)")
    deduct_parser.add_argument("product_id", type=int)
    deduct_parser.add_argument("quantity")
    deduct_parser.add_argument("--dry-run", action="store_true", help="Preview without changes")

    return_parser = subparsers.add_parser("process-return", help="Return batches")
    return_parser.add_argument("--by", dest="processed_by", required=True, help="Acting user")
    return_parser.add_argument(
        "--batches", dest="batch_ids", type=int, nargs="+", required=True, help="Candidate batch ids"
    )
    return_parser.add_argument(
        "--keep", dest="keep_ids", type=int, nargs="*", default=[], help="Batch ids to keep"
    )
    return_parser.add_argument(
        "--override",
        dest="overrides",
        type=_parse_override,
        action="append",
        default=[],
        help="BATCH_ID=PERCENT (repeatable)",
    )
    return_parser.add_argument("--preview", action="store_true", help="Show valuation only")

    undo_parser = subparsers.add_parser("undo-return", help="Undo a return")
    undo_parser.add_argument("return_id", type=int)

    history_parser = subparsers.add_parser("list-returns", help="List returns")
    history_parser.add_argument("--from", dest="start", type=_parse_date)
    history_parser.add_argument("--to", dest="end", type=_parse_date)

    show_parser = subparsers.add_parser("show-return", help="Show a return and its items")
    show_parser.add_argument("return_id", type=int)

    subparsers.add_parser("purge-depleted", help="Delete batches at quantity 0")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    initialize_app_database()

    try:
        if args.command == "init-db":
            return init_db()
        elif args.command == "reset-db":
            return reset_db(args.yes)
        elif args.command == "load-products":
            return load_products(args.file)
        elif args.command == "add-batch":
            return add_batch(args.product_id, args.quantity, args.date_added)
        elif args.command == "list-batches":
            return list_batches(args.search, args.age)
        elif args.command == "stock":
            return show_stock(args.product_id)
        elif args.command == "deduct":
            return deduct(args.product_id, args.quantity, args.dry_run)
        elif args.command == "process-return":
            return process_return(
                args.processed_by,
                args.batch_ids,
                args.keep_ids,
                dict(args.overrides),
                args.preview,
            )
        elif args.command == "undo-return":
            return undo_return(args.return_id)
        elif args.command == "list-returns":
            return list_returns(args.start, args.end)
        elif args.command == "show-return":
            return show_return(args.return_id)
        elif args.command == "purge-depleted":
            return purge_depleted()
        else:
            print(f"Unknown command: {args.command}")
            return 1
    except ServiceError as e:
        print(f"ERROR: {e}")
        return 1
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
