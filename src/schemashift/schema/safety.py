"""Live-data safety checks for narrowing column alterations.

Before a column is narrowed, the executor asks the database whether any
existing value would be truncated or lose precision:

- string columns: ``MAX(char_length(col))`` against the new length
- binary columns: ``MAX(octet_length(col))`` against the new length
- decimal columns: count of rows that overflow the new integer digits once
  rounded, or that change when rounded to the new scale

When data loss is explicitly allowed, ``fixup_sql()`` returns the UPDATE
statements that truncate, round and clamp existing values so the alteration
succeeds.

Usage:
    from schemashift.schema.safety import check_narrowing, fixup_sql

    check = check_narrowing(adapter, "User", field)
    if not check.is_safe:
        for sql in fixup_sql("User", field):
            adapter.execute(sql)
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from schemashift.schema.ddl import quote_identifier
from schemashift.schema.models import FieldSchema
from schemashift.schema.types import MAX_LENGTH, TypeFamily, type_family

if TYPE_CHECKING:
    from schemashift.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)


@dataclass
class SafetyCheck:
    """Outcome of a pre-flight check for one narrowing alteration.

    Attributes:
        table_name: Table being altered.
        field: Target field definition.
        is_safe: True if no existing row would lose data.
        observed: Longest length found, or number of offending decimal rows.
        message: Human-readable summary.
    """

    table_name: str
    field: FieldSchema
    is_safe: bool
    observed: int = 0
    message: str = ""


def _is_bounded(field: FieldSchema) -> bool:
    return field.precision is not None and field.precision != MAX_LENGTH


def _integer_limit(precision: int, scale: int) -> str:
    """Smallest magnitude that overflows numeric(precision, scale), as a literal."""
    return "1" + "0" * (precision - scale)


def _max_value(precision: int, scale: int) -> str:
    """Largest magnitude numeric(precision, scale) can hold, as a literal."""
    digits = precision - scale
    integer_part = "9" * digits if digits > 0 else "0"
    return f"{integer_part}.{'9' * scale}" if scale else integer_part


def check_sql(table_name: str, field: FieldSchema) -> str | None:
    """Read-only query measuring existing data against the narrower type.

    Returns None when the type has no bound to check.
    """
    table = quote_identifier(table_name)
    column = quote_identifier(field.name)
    family = type_family(field.type)

    if family is TypeFamily.STRING and _is_bounded(field):
        return f"SELECT MAX(char_length({column})) FROM {table}"
    if family is TypeFamily.BINARY and _is_bounded(field):
        return f"SELECT MAX(octet_length({column})) FROM {table}"
    if family is TypeFamily.DECIMAL and field.precision is not None:
        scale = field.scale or 0
        return (
            f"SELECT COUNT(*) FROM {table} "
            f"WHERE abs(round({column}, {scale})) >= {_integer_limit(field.precision, scale)} "
            f"OR {column} <> round({column}, {scale})"
        )
    return None


def check_narrowing(adapter: "DatabaseClient", table_name: str, field: FieldSchema) -> SafetyCheck:
    """Run the pre-flight check for narrowing *field* on *table_name*.

    Args:
        adapter: Database client used for the read-only query.
        table_name: Table holding the column.
        field: Target (narrower) field definition.

    Returns:
        ``SafetyCheck`` describing whether existing data fits.

    Example:
        check = check_narrowing(adapter, "User", FieldSchema(name="Name", type="varchar", precision=50))
        check.is_safe  # False if any Name is longer than 50 characters
    """
    sql = check_sql(table_name, field)
    if sql is None:
        return SafetyCheck(table_name, field, is_safe=True, message="No bound to check")

    logger.debug(f"Safety check: {sql}")
    observed = int(adapter.scalar(sql) or 0)
    family = type_family(field.type)

    if family is TypeFamily.DECIMAL:
        is_safe = observed == 0
        message = (
            f"{observed} row(s) in {table_name}.{field.name} do not fit "
            f"numeric({field.precision},{field.scale or 0})"
        )
    else:
        is_safe = observed <= field.precision
        unit = "bytes" if family is TypeFamily.BINARY else "characters"
        message = (
            f"Longest value in {table_name}.{field.name} is {observed} {unit}; "
            f"new limit is {field.precision}"
        )

    return SafetyCheck(table_name, field, is_safe=is_safe, observed=observed, message=message)


def fixup_sql(table_name: str, field: FieldSchema) -> list[str]:
    """UPDATE statements that make existing data fit the narrower type.

    Strings are truncated with ``left()``, binaries with ``substring()``,
    decimals are rounded to the new scale and then clamped to the largest
    representable magnitude.
    """
    table = quote_identifier(table_name)
    column = quote_identifier(field.name)
    family = type_family(field.type)

    if family is TypeFamily.STRING and _is_bounded(field):
        return [
            f"UPDATE {table} SET {column} = left({column}, {field.precision}) "
            f"WHERE char_length({column}) > {field.precision}"
        ]
    if family is TypeFamily.BINARY and _is_bounded(field):
        return [
            f"UPDATE {table} SET {column} = substring({column} from 1 for {field.precision}) "
            f"WHERE octet_length({column}) > {field.precision}"
        ]
    if family is TypeFamily.DECIMAL and field.precision is not None:
        scale = field.scale or 0
        limit = _max_value(field.precision, scale)
        return [
            f"UPDATE {table} SET {column} = round({column}, {scale}) "
            f"WHERE {column} <> round({column}, {scale})",
            f"UPDATE {table} SET {column} = sign({column}) * {limit} "
            f"WHERE abs({column}) > {limit}",
        ]
    return []
