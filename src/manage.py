"""Checkout database management CLI.

Creates and drops the completion ledger schema when the checkout domain is
configured with an SQL provider.

Usage:
    python src/manage.py setup-db   # Create ledger tables
    python src/manage.py drop-db    # Drop ledger tables
"""

import argparse
import sys


def setup_databases():
    """Create the checkout ledger schema."""
    from checkout.domain import checkout
    from checkout.utils.db import setup_db

    print("Initializing checkout domain...")
    checkout.init()
    print("Creating checkout database schema...")
    setup_db(checkout)
    print("  checkout schema ready.")
    print("Done.")


def drop_databases():
    """Drop the checkout ledger schema."""
    from checkout.domain import checkout
    from checkout.utils.db import drop_db

    print("Initializing checkout domain...")
    checkout.init()
    print("Dropping checkout database schema...")
    drop_db(checkout)
    print("  checkout schema dropped.")
    print("Done.")


def main():
    parser = argparse.ArgumentParser(description="Storefront checkout database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
