"""PostgreSQL schema introspection into an actual ``DatabaseSchema``.

This module queries the live database to build the model the planner compares
against:
- Tables and columns (type, length/precision/scale, nullability, identity)
- Primary keys
- Single-column foreign keys
- Non-primary indexes (field order, uniqueness, clustering)

Every column type goes through the same type registry the compiler uses, so a
live ``character varying(50)`` compares equal to a compiled ``string(50)``.

Uses psycopg (v3) for PostgreSQL connections.
"""

import logging

import psycopg
from psycopg import Connection

from schemashift.schema.models import (
    DatabaseSchema,
    FieldSchema,
    ForeignKeySchema,
    IndexKind,
    IndexSchema,
    TableSchema,
)
from schemashift.schema.types import canonicalize_storage_type

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """Introspects a PostgreSQL schema into a ``DatabaseSchema``.

    Usage:
        with SchemaIntrospector(database_url) as introspector:
            actual = introspector.introspect()

            # Or just the table names
            tables = introspector.get_table_names()
    """

    # Tables to exclude from introspection (system tables)
    EXCLUDED_TABLES = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    def __init__(self, database_url: str):
        """Initialize with database connection URL.

        Args:
            database_url: PostgreSQL connection URL.  A SQLAlchemy driver
                suffix (``postgresql+psycopg://``) is stripped.
        """
        self._database_url = database_url
        self._conn: Connection | None = None

    def __enter__(self) -> "SchemaIntrospector":
        """Context manager entry - opens connection."""
        url = self._database_url
        for scheme in ("postgresql+psycopg://", "postgres://"):
            if url.startswith(scheme):
                url = "postgresql://" + url[len(scheme):]

        # Append connect_timeout if not already in URL
        if "connect_timeout" not in url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}connect_timeout=10"

        self._conn = psycopg.connect(url)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit - closes connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def introspect(self, schema_name: str = "public") -> DatabaseSchema:
        """Introspect the full schema.

        Args:
            schema_name: PostgreSQL schema to introspect (default: public)

        Returns:
            DatabaseSchema with every table, its fields, foreign keys and indexes.
        """
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use with statement.")

        db_schema = DatabaseSchema()

        for table_name in self.get_table_names(schema_name):
            table = TableSchema(name=table_name)
            table.fields = self._get_columns(schema_name, table_name)

            pk_columns = self._get_primary_key(schema_name, table_name)
            for f in table.fields:
                f.is_primary_key = f.name in pk_columns

            table.foreign_keys = self._get_foreign_keys(schema_name, table_name, table.fields)
            table.indexes = self._get_indexes(schema_name, table_name)

            db_schema.add_table(table)

        logger.info(f"Introspected {len(db_schema.tables)} table(s) from schema '{schema_name}'")
        return db_schema

    def get_table_names(self, schema_name: str = "public") -> list[str]:
        """Get all base table names in schema, minus excluded system tables."""
        if not self._conn:
            raise RuntimeError("Introspector not connected. Use with statement.")

        query = """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s
              AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """
        with self._conn.cursor() as cur:
            cur.execute(query, (schema_name,))
            return [row[0] for row in cur.fetchall() if row[0] not in self.EXCLUDED_TABLES]

    def _get_columns(self, schema_name: str, table_name: str) -> list[FieldSchema]:
        """Get columns for a table in ordinal order."""
        query = """
            SELECT
                column_name,
                data_type,
                character_maximum_length,
                numeric_precision,
                numeric_scale,
                is_nullable,
                is_identity,
                column_default
            FROM information_schema.columns
            WHERE table_schema = %s
              AND table_name = %s
            ORDER BY ordinal_position
        """
        with self._conn.cursor() as cur:
            cur.execute(query, (schema_name, table_name))
            fields = []
            for row in cur.fetchall():
                (
                    col_name,
                    data_type,
                    char_length,
                    num_precision,
                    num_scale,
                    is_nullable,
                    is_identity,
                    default,
                ) = row

                precision = char_length if char_length is not None else num_precision
                storage, precision, scale = canonicalize_storage_type(data_type, precision, num_scale)

                fields.append(
                    FieldSchema(
                        name=col_name,
                        type=storage,
                        is_nullable=(is_nullable == "YES"),
                        precision=precision,
                        scale=scale,
                        is_identity=(is_identity == "YES" or str(default or "").startswith("nextval(")),
                    )
                )
            return fields

    def _get_primary_key(self, schema_name: str, table_name: str) -> set[str]:
        """Get primary key column names for a table."""
        query = """
            SELECT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
                AND tc.table_name = kcu.table_name
            WHERE tc.table_schema = %s
              AND tc.table_name = %s
              AND tc.constraint_type = 'PRIMARY KEY'
        """
        with self._conn.cursor() as cur:
            cur.execute(query, (schema_name, table_name))
            return {row[0] for row in cur.fetchall()}

    def _get_foreign_keys(
        self, schema_name: str, table_name: str, fields: list[FieldSchema]
    ) -> list[ForeignKeySchema]:
        """Get single-column foreign keys for a table.

        Nullability comes from the source column.
        """
        query = """
            SELECT
                att.attname AS column_name,
                ref.relname AS target_table,
                refatt.attname AS target_column
            FROM pg_constraint con
            JOIN pg_class cls ON cls.oid = con.conrelid
            JOIN pg_namespace ns ON ns.oid = cls.relnamespace
            JOIN pg_class ref ON ref.oid = con.confrelid
            JOIN pg_attribute att
                ON att.attrelid = con.conrelid AND att.attnum = con.conkey[1]
            JOIN pg_attribute refatt
                ON refatt.attrelid = con.confrelid AND refatt.attnum = con.confkey[1]
            WHERE con.contype = 'f'
              AND array_length(con.conkey, 1) = 1
              AND ns.nspname = %s
              AND cls.relname = %s
            ORDER BY con.conname
        """
        nullable = {f.name: f.is_nullable for f in fields}
        with self._conn.cursor() as cur:
            cur.execute(query, (schema_name, table_name))
            return [
                ForeignKeySchema(
                    column_name=column,
                    target_table=target_table,
                    target_column=target_column,
                    is_nullable=nullable.get(column, False),
                )
                for column, target_table, target_column in cur.fetchall()
            ]

    def _get_indexes(self, schema_name: str, table_name: str) -> list[IndexSchema]:
        """Get indexes for a table (excluding primary key)."""
        query = """
            SELECT
                i.relname AS index_name,
                array_agg(a.attname ORDER BY x.ordinality) AS columns,
                ix.indisunique AS is_unique,
                ix.indisclustered AS is_clustered
            FROM pg_index ix
            JOIN pg_class t ON t.oid = ix.indrelid
            JOIN pg_class i ON i.oid = ix.indexrelid
            JOIN pg_namespace n ON n.oid = t.relnamespace
            JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS x(attnum, ordinality) ON TRUE
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = x.attnum
            WHERE n.nspname = %s
              AND t.relname = %s
              AND NOT ix.indisprimary
            GROUP BY i.relname, ix.indisunique, ix.indisclustered
            ORDER BY i.relname
        """
        with self._conn.cursor() as cur:
            cur.execute(query, (schema_name, table_name))
            indexes = []
            for row in cur.fetchall():
                name, columns, is_unique, is_clustered = row
                indexes.append(
                    IndexSchema(
                        name=name,
                        fields=list(columns),
                        is_unique=is_unique,
                        is_alternate_key=name.startswith("AK_"),
                        kind=IndexKind.CLUSTERED if is_clustered else IndexKind.NONCLUSTERED,
                    )
                )
            return indexes
