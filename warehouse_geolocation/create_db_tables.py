#!/usr/bin/env python
# create_db_tables.py - Script to create the warehouse geolocation tables

import sys
import logging
import argparse

from warehouse_geolocation.db import DatabaseConnection
from warehouse_geolocation.exceptions import GeolocationError
from warehouse_geolocation.logging_setup import get_logger
from warehouse_geolocation.services.warehouse_service import WarehouseService

def create_tables(database, drop_existing=False, seed_warehouses=None):
    """Create database tables and optionally seed warehouses.

    Args:
        database: DatabaseConnection to use
        drop_existing: If True, drop existing tables before creating new ones
        seed_warehouses: Optional list of warehouse names to create when missing

    Returns:
        True if tables were created successfully
    """
    logger = get_logger('create_tables')

    try:
        database.test_connection()

        if drop_existing:
            logger.info("Dropping existing tables...")
            database.drop_all_tables()
            logger.info("Existing tables dropped successfully.")

        logger.info("Creating database tables...")
        database.create_all_tables()
        logger.info("Database tables created successfully.")

        if seed_warehouses:
            with database.session_scope() as session:
                warehouses = WarehouseService(session)
                for name in seed_warehouses:
                    if warehouses.exists(name):
                        logger.info(f"Warehouse '{name}' already exists. Skipping.")
                        continue
                    warehouses.create(name)

        return True

    except GeolocationError as e:
        logger.error(f"Error creating database tables: {str(e)}")
        return False

def main(argv=None):
    """Create database tables."""
    parser = argparse.ArgumentParser(description='Create warehouse geolocation database tables')
    parser.add_argument('--drop', '-d', action='store_true', help='Drop existing tables before creating new ones')
    parser.add_argument('--url', help='SQLAlchemy database URL (defaults to configuration)')
    parser.add_argument('--seed-warehouse', action='append', default=[], metavar='NAME',
                        help='Warehouse to create if missing (repeatable)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable verbose logging')

    args = parser.parse_args(argv)

    logger = get_logger('create_tables_runner')
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)

    logger.info("Starting database table creation...")
    logger.info(f"Drop existing tables: {args.drop}")

    try:
        database = DatabaseConnection(args.url)
    except GeolocationError as e:
        logger.error(f"Could not connect to the database: {str(e)}")
        return 1

    try:
        if create_tables(database, args.drop, args.seed_warehouse):
            return 0
        logger.error("Failed to create database tables.")
        return 1
    finally:
        database.dispose()

if __name__ == "__main__":
    sys.exit(main())
