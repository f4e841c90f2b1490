"""Fulfillment database management CLI.

Creates and drops the database schema of the fulfillment domain for the
environment selected through ``PROTEAN_ENV``.

Usage:
    PROTEAN_ENV=development python src/manage.py setup-db   # Create all tables
    PROTEAN_ENV=development python src/manage.py drop-db    # Drop all tables
"""

import argparse
import sys

import structlog

from fulfillment.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


def setup_database():
    from fulfillment.domain import fulfillment
    from fulfillment.utils.db import setup_db

    fulfillment.init()
    logger.info("Creating fulfillment database schema")
    setup_db(fulfillment)
    logger.info("Fulfillment schema ready")


def drop_database():
    from fulfillment.domain import fulfillment
    from fulfillment.utils.db import drop_db

    fulfillment.init()
    logger.info("Dropping fulfillment database schema")
    drop_db(fulfillment)
    logger.info("Fulfillment schema dropped")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Fulfillment database management")
    parser.add_argument("--log-dir", default="logs", help="Directory for rotating log files")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    args = parser.parse_args(argv)
    configure_logging(args.log_dir)

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
