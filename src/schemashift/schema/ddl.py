"""PostgreSQL DDL generation for migration steps.

Every identifier is double-quoted so mixed-case model names survive.  The
generated statements contain no ``:name`` tokens, so they are safe to pass
through SQLAlchemy ``text()``.

Constraint and index names are built from fixed templates
(``PK_<table>``, ``FK_<table>_<column>``, ``IX_<table>_<fields>``,
``AK_<table>_<fields>``, ``IX_<table>_<column>_FK``) and shortened by
``build_identifier()`` when they exceed the database's identifier limit.

Usage:
    from schemashift.schema.ddl import index_name, step_sql

    index_name("User", ["Email"])
    # 'IX_User_Email'

    for sql in step_sql(step):
        adapter.execute(sql)
"""

import hashlib

from schemashift.schema.models import (
    FieldSchema,
    ForeignKeySchema,
    IndexSchema,
    MigrationAction,
    MigrationStep,
)
from schemashift.schema.names import name_key
from schemashift.schema.types import TypeFamily, render_sql_type, type_family

#: PostgreSQL NAMEDATALEN - 1.
DEFAULT_MAX_IDENTIFIER_LENGTH = 63

HASH_LENGTH = 8


# ------------------------------------------------------------------
# Identifiers
# ------------------------------------------------------------------


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, escaping embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def build_identifier(base: str, max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH) -> str:
    """Fit *base* into *max_length* characters.

    Names within the limit are returned unchanged.  Longer names are cut to
    ``max_length - 9`` characters and suffixed with ``_`` plus the first 8 hex
    characters of the SHA-256 of the full name, so two long names sharing a
    prefix still get distinct identifiers.

    Raises:
        ValueError: If *max_length* leaves no room for the hash suffix.

    Examples:
        >>> build_identifier("IX_User_Email")
        'IX_User_Email'
        >>> len(build_identifier("IX_" + "A" * 100, 63))
        63
    """
    if len(base) <= max_length:
        return base

    suffix_length = 1 + HASH_LENGTH
    if max_length <= suffix_length:
        raise ValueError(f"max_length must exceed {suffix_length}, got {max_length}")

    digest = hashlib.sha256(base.encode("utf-8")).hexdigest()[:HASH_LENGTH]
    return f"{base[: max_length - suffix_length]}_{digest}"


def primary_key_name(table_name: str, max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH) -> str:
    return build_identifier(f"PK_{table_name}", max_length)


def foreign_key_name(
    table_name: str, column_name: str, max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH
) -> str:
    return build_identifier(f"FK_{table_name}_{column_name}", max_length)


def index_name(
    table_name: str,
    fields: list[str],
    is_alternate_key: bool = False,
    max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH,
) -> str:
    """Name an index ``IX_<table>_<f1>_<f2>`` (``AK_`` for alternate keys)."""
    prefix = "AK" if is_alternate_key else "IX"
    return build_identifier(f"{prefix}_{table_name}_{'_'.join(fields)}", max_length)


def foreign_key_index_name(
    table_name: str, column_name: str, max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH
) -> str:
    """Name the supporting index of a foreign key ``IX_<table>_<column>_FK``.

    Kept apart from ``index_name()`` so a declared index over the same column
    never collides with it.
    """
    return build_identifier(f"IX_{table_name}_{column_name}_FK", max_length)


# ------------------------------------------------------------------
# Columns
# ------------------------------------------------------------------


def synthesize_default(field: FieldSchema) -> str | None:
    """Default used to backfill existing rows when adding a NOT NULL column.

    Identifier-like numeric columns (name ending in ``ID``, any case) get 1,
    other numbers 0.  Returns None for types with no convention.
    """
    family = type_family(field.type)
    if family in (TypeFamily.INTEGER, TypeFamily.DECIMAL, TypeFamily.FLOAT):
        return "1" if name_key(field.name).endswith(name_key("ID")) else "0"
    if family is TypeFamily.BOOLEAN:
        return "false"
    if family is TypeFamily.TIMESTAMP:
        return "CURRENT_TIMESTAMP"
    if family is TypeFamily.DATE:
        return "CURRENT_DATE"
    if family is TypeFamily.UUID:
        return "gen_random_uuid()"
    if family is TypeFamily.STRING:
        return "''"
    if family is TypeFamily.BINARY:
        return "decode('', 'hex')"
    return None


def column_type(field: FieldSchema) -> str:
    return render_sql_type(field.type, field.precision, field.scale)


def column_definition(field: FieldSchema, default: str | None = None) -> str:
    """Render ``"Name" type [identity] [DEFAULT x] [NOT NULL]``."""
    parts = [quote_identifier(field.name), column_type(field)]
    if field.is_identity:
        parts.append("GENERATED BY DEFAULT AS IDENTITY")
    elif default is not None:
        parts.append(f"DEFAULT {default}")
    if not field.is_nullable:
        parts.append("NOT NULL")
    return " ".join(parts)


# ------------------------------------------------------------------
# Statements per action
# ------------------------------------------------------------------


def create_table_sql(
    table_name: str, fields: list[FieldSchema], max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH
) -> str:
    """One CREATE TABLE with every field and the primary key constraint."""
    lines = [f"  {column_definition(f)}" for f in fields]

    pk_fields = [f.name for f in fields if f.is_primary_key]
    if pk_fields:
        columns = ", ".join(quote_identifier(name) for name in pk_fields)
        constraint = quote_identifier(primary_key_name(table_name, max_length))
        lines.append(f"  CONSTRAINT {constraint} PRIMARY KEY ({columns})")

    body = ",\n".join(lines)
    return f"CREATE TABLE {quote_identifier(table_name)} (\n{body}\n)"


def add_column_sql(table_name: str, field: FieldSchema) -> list[str]:
    """ADD COLUMN, backfilling NOT NULL columns through a temporary default.

    Example:
        add_column_sql("User", FieldSchema(name="Age", type="integer"))
        # ['ALTER TABLE "User" ADD COLUMN "Age" integer DEFAULT 0 NOT NULL',
        #  'ALTER TABLE "User" ALTER COLUMN "Age" DROP DEFAULT']
    """
    table = quote_identifier(table_name)

    if field.is_nullable or field.is_identity:
        return [f"ALTER TABLE {table} ADD COLUMN {column_definition(field)}"]

    default = synthesize_default(field)
    statements = [f"ALTER TABLE {table} ADD COLUMN {column_definition(field, default)}"]
    if default is not None:
        statements.append(
            f"ALTER TABLE {table} ALTER COLUMN {quote_identifier(field.name)} DROP DEFAULT"
        )
    return statements


def alter_column_type_sql(table_name: str, field: FieldSchema) -> str:
    return (
        f"ALTER TABLE {quote_identifier(table_name)} "
        f"ALTER COLUMN {quote_identifier(field.name)} TYPE {column_type(field)}"
    )


def add_foreign_key_sql(
    table_name: str, fk: ForeignKeySchema, max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH
) -> list[str]:
    """The foreign key constraint plus its supporting index."""
    table = quote_identifier(table_name)
    column = quote_identifier(fk.column_name)
    constraint = quote_identifier(foreign_key_name(table_name, fk.column_name, max_length))
    support_index = quote_identifier(foreign_key_index_name(table_name, fk.column_name, max_length))

    return [
        f"ALTER TABLE {table} ADD CONSTRAINT {constraint} FOREIGN KEY ({column}) "
        f"REFERENCES {quote_identifier(fk.target_table)} ({quote_identifier(fk.target_column)})",
        f"CREATE INDEX IF NOT EXISTS {support_index} ON {table} ({column})",
    ]


def add_index_sql(
    table_name: str, index: IndexSchema, max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH
) -> str:
    """CREATE [UNIQUE] INDEX.  Clustering kind has no PostgreSQL equivalent."""
    name = quote_identifier(index_name(table_name, index.fields, index.is_alternate_key, max_length))
    unique = "UNIQUE " if index.is_unique else ""
    columns = ", ".join(quote_identifier(f) for f in index.fields)
    return f"CREATE {unique}INDEX {name} ON {quote_identifier(table_name)} ({columns})"


def step_sql(step: MigrationStep, max_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH) -> list[str]:
    """Every statement a step runs, excluding data-loss fixups."""
    if step.action == MigrationAction.CREATE_TABLE:
        return [create_table_sql(step.table_name, step.fields, max_length)]
    if step.action == MigrationAction.ADD_COLUMN:
        return [sql for f in step.fields for sql in add_column_sql(step.table_name, f)]
    if step.action == MigrationAction.ALTER_COLUMN:
        return [alter_column_type_sql(step.table_name, f) for f in step.fields]
    if step.action == MigrationAction.ADD_FOREIGN_KEY:
        if step.foreign_key is None:
            raise ValueError(f"AddForeignKey step for '{step.table_name}' has no foreign key")
        return add_foreign_key_sql(step.table_name, step.foreign_key, max_length)
    if step.action == MigrationAction.ADD_INDEX:
        if step.index is None:
            raise ValueError(f"AddIndex step for '{step.table_name}' has no index")
        return [add_index_sql(step.table_name, step.index, max_length)]
    raise ValueError(f"Unsupported migration action: {step.action}")
