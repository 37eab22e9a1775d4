"""Storage layer: PostgreSQL connection management and schema setup."""

from curator.storage.database import Database, rows_affected
from curator.storage.schema import create_all_tables

__all__ = ["Database", "create_all_tables", "rows_affected"]
