"""Shopping cart management CLI.

Database schema management plus the two cart lifecycle jobs meant to be run
by an external scheduler (cron, K8s CronJob).

Usage:
    python src/manage.py setup-db          # Create all tables
    python src/manage.py drop-db           # Drop all tables
    python src/manage.py mark-abandoned    # Flag carts idle for more than 24h
    python src/manage.py cleanup-expired   # Delete carts past their time-to-live
"""

import argparse
import sys
from datetime import datetime


def _domain():
    from shopping.domain import shopping

    shopping.init()
    return shopping


def setup_database():
    from shopping.utils.db import setup_db

    domain = _domain()
    print("Creating shopping database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from shopping.utils.db import drop_db

    domain = _domain()
    print("Dropping shopping database schema...")
    drop_db(domain)
    print("Done.")


def mark_abandoned_carts(idle_hours: int = 24, as_of: datetime | None = None) -> int:
    """Run abandonment detection. Needs an active shopping domain context."""
    from protean.utils.globals import current_domain
    from shopping.cart.abandonment import DetectAbandonedCarts

    return current_domain.process(
        DetectAbandonedCarts(idle_threshold_hours=idle_hours, as_of=as_of),
        asynchronous=False,
    )


def cleanup_expired_carts(as_of: datetime | None = None) -> int:
    """Run expired cart cleanup. Needs an active shopping domain context."""
    from protean.utils.globals import current_domain
    from shopping.cart.expiry import CleanupExpiredCarts

    return current_domain.process(CleanupExpiredCarts(as_of=as_of), asynchronous=False)


def _as_of(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def main():
    from shopping.utils.logging import configure_logging

    parser = argparse.ArgumentParser(description="Shopping cart management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    abandon_parser = subparsers.add_parser("mark-abandoned", help="Flag idle carts as abandoned")
    abandon_parser.add_argument("--idle-hours", type=int, default=24, help="Idle threshold in hours (default: 24)")
    abandon_parser.add_argument("--as-of", help="ISO timestamp to evaluate against (default: now)")

    cleanup_parser = subparsers.add_parser("cleanup-expired", help="Delete carts past their time-to-live")
    cleanup_parser.add_argument("--as-of", help="ISO timestamp to evaluate against (default: now)")

    args = parser.parse_args()
    configure_logging()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "mark-abandoned":
        with _domain().domain_context():
            count = mark_abandoned_carts(args.idle_hours, _as_of(args.as_of))
        print(f"Marked {count} cart(s) as abandoned.")
    elif args.command == "cleanup-expired":
        with _domain().domain_context():
            count = cleanup_expired_carts(_as_of(args.as_of))
        print(f"Deleted {count} expired cart(s).")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
