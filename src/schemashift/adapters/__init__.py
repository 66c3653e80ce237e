"""Database adapters package.

Provides the ``DatabaseClient`` Protocol and the PostgreSQL adapter the
executor runs plans through.

Usage:
    from schemashift.adapters import DatabaseClient, PostgresAdapter
"""

from schemashift.adapters.base import DatabaseClient
from schemashift.adapters.postgres import PostgresAdapter

__all__ = [
    "DatabaseClient",
    "PostgresAdapter",
]
