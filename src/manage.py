"""Grocery engine database management CLI.

Creates or drops the relational schema when the grocery domain is configured
with a SQL provider. With the default in-memory provider there is nothing to
create and the commands say so.

Usage:
    python src/manage.py setup-db   # Create all tables
    python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

import structlog

logger = structlog.get_logger(__name__)


def setup_database():
    from grocery.domain import grocery
    from grocery.utils.db import setup_db

    grocery.init()
    providers = setup_db(grocery)
    logger.info("schema_created", providers=providers)
    print(f"Schema ready for providers: {', '.join(providers) or 'none (no SQL provider configured)'}")


def drop_database():
    from grocery.domain import grocery
    from grocery.utils.db import drop_db

    grocery.init()
    providers = drop_db(grocery)
    logger.info("schema_dropped", providers=providers)
    print(f"Schema dropped for providers: {', '.join(providers) or 'none (no SQL provider configured)'}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Grocery engine database management")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
