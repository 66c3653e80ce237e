"""Database client protocol definition.

Defines the ``DatabaseClient`` Protocol the executor runs plans through.
Methods are synchronous: a plan is applied statement by statement over a
single connection.

Usage:
    from schemashift.adapters.base import DatabaseClient

    def do_work(client: DatabaseClient) -> None:
        longest = client.scalar('SELECT MAX(char_length("Name")) FROM "User"')
        client.execute('ALTER TABLE "User" ALTER COLUMN "Name" TYPE varchar(50)')
        client.close()
"""

from typing import Any, Protocol


class DatabaseClient(Protocol):
    """Database client interface the executor depends on.

    This Protocol keeps the executor testable with a ``MagicMock`` and
    independent of the concrete driver.
    """

    def execute(self, sql: str, params: dict | None = None) -> None:
        """Execute a raw SQL statement (DDL or DML) in its own transaction.

        A failed statement must not affect later ones.

        Args:
            sql: Raw SQL statement to execute.
            params: Optional dict of named parameters for the SQL statement.

        Example:
            client.execute('ALTER TABLE "User" ADD COLUMN "Email" varchar(255)')
        """
        ...

    def scalar(self, sql: str, params: dict | None = None) -> Any:
        """Run a read-only query and return the first column of the first row.

        Returns None when the query yields no rows.

        Example:
            count = client.scalar('SELECT COUNT(*) FROM "User"')
        """
        ...

    def close(self) -> None:
        """Close the connection and release resources."""
        ...
