#!/usr/bin/env python3
"""Script to list tables and their indexes for the configured database."""
from sqlalchemy import create_engine, inspect

from common.config import get_settings


def check_indexes():
    inspector = inspect(create_engine(get_settings().database_url))
    tables = inspector.get_table_names()
    print("Tables:")
    for table in tables:
        print(f"  {table}")

    print("\nDatabase Indexes:")
    for table in tables:
        for index in inspector.get_indexes(table):
            unique = " (unique)" if index.get("unique") else ""
            print(f"Table: {table}, Index: {index['name']}, Columns: {', '.join(index['column_names'])}{unique}")


if __name__ == "__main__":
    check_indexes()
