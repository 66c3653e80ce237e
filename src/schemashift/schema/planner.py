"""Migration planning: diff a target model against an actual model.

Pure logic -- no I/O, no database connections.  Both inputs are
``DatabaseSchema`` instances; the target usually comes from the compiler and
the actual from ``SchemaIntrospector``.

The plan is built in four phases, every name compared case-insensitively:

1. ``CreateTable`` for each target table missing from the actual model.
2. ``AddColumn`` for each missing field of a shared table, plus
   ``AlterColumn`` for size changes (widening always, narrowing only for
   fields marked ``@ReduceSize``).
3. ``AddForeignKey`` for each missing foreign key whose target table is
   defined in the target model.  New tables are included, so forward
   references resolve regardless of creation order.
4. ``AddIndex`` for each missing index.  New tables are included.

Objects found only in the actual model go into the ``ExtrasReport``; they are
never scheduled for removal.

Usage:
    from schemashift.schema.loader import load_from_paths
    from schemashift.schema.introspector import SchemaIntrospector
    from schemashift.schema.planner import plan_migration

    target = load_from_paths(["./models"])
    with SchemaIntrospector(database_url) as introspector:
        actual = introspector.introspect()

    plan = plan_migration(target, actual)
    for step in plan.steps:
        print(step.describe())
"""

import logging
from enum import Enum

from schemashift.schema.ddl import foreign_key_index_name
from schemashift.schema.models import (
    REDUCE_SIZE,
    DatabaseSchema,
    ExtraColumn,
    ExtraIndex,
    ExtrasReport,
    FieldSchema,
    ForeignKeySchema,
    IndexSchema,
    MigrationAction,
    MigrationPlan,
    MigrationStep,
    TableSchema,
)
from schemashift.schema.names import name_sequences_equal, names_equal
from schemashift.schema.types import MAX_LENGTH, TypeFamily, type_family

logger = logging.getLogger(__name__)


class SizeChange(str, Enum):
    """Direction of a column size difference."""

    WIDEN = "widen"
    NARROW = "narrow"


# ------------------------------------------------------------------
# Field comparison
# ------------------------------------------------------------------


def _compare_length(target: int | None, actual: int | None) -> SizeChange | None:
    if target == actual or target is None or actual is None:
        return None
    if target == MAX_LENGTH:
        return SizeChange.WIDEN
    if actual == MAX_LENGTH:
        return SizeChange.NARROW
    return SizeChange.WIDEN if target > actual else SizeChange.NARROW


def _compare_decimal(target: FieldSchema, actual: FieldSchema) -> SizeChange | None:
    if target.precision is None or actual.precision is None:
        return None

    target_scale = target.scale or 0
    actual_scale = actual.scale or 0
    if target.precision == actual.precision and target_scale == actual_scale:
        return None

    target_digits = target.precision - target_scale
    actual_digits = actual.precision - actual_scale
    if target_scale >= actual_scale and target_digits >= actual_digits:
        return SizeChange.WIDEN
    return SizeChange.NARROW


def compare_field_size(target: FieldSchema, actual: FieldSchema) -> SizeChange | None:
    """Classify the size difference between two versions of a column.

    Only same-type string, binary and decimal columns are compared; any other
    difference returns None (type changes are not planned).

    Examples:
        >>> compare_field_size(varchar(100), varchar(50))
        <SizeChange.WIDEN: 'widen'>
        >>> compare_field_size(numeric(10, 2), numeric(10, 4))
        <SizeChange.NARROW: 'narrow'>
    """
    if not names_equal(target.type, actual.type):
        return None

    family = type_family(target.type)
    if family in (TypeFamily.STRING, TypeFamily.BINARY):
        return _compare_length(target.precision, actual.precision)
    if family is TypeFamily.DECIMAL:
        return _compare_decimal(target, actual)
    return None


def _same_foreign_key(left: ForeignKeySchema, right: ForeignKeySchema) -> bool:
    return (
        names_equal(left.column_name, right.column_name)
        and names_equal(left.target_table, right.target_table)
        and names_equal(left.target_column, right.target_column)
    )


def _same_index(left: IndexSchema, right: IndexSchema) -> bool:
    return left.is_unique == right.is_unique and name_sequences_equal(left.fields, right.fields)


def _foreign_key_support_index(table_name: str, fk: ForeignKeySchema) -> IndexSchema:
    """The index the executor creates alongside every foreign key."""
    return IndexSchema(fields=[fk.column_name], name=foreign_key_index_name(table_name, fk.column_name))


# ------------------------------------------------------------------
# Phases
# ------------------------------------------------------------------


def _plan_tables(target: DatabaseSchema, actual: DatabaseSchema) -> list[MigrationStep]:
    steps: list[MigrationStep] = []
    for table in target.tables.values():
        if actual.has_table(table.name):
            continue
        steps.append(
            MigrationStep(
                action=MigrationAction.CREATE_TABLE,
                table_name=table.name,
                fields=[f.model_copy(deep=True) for f in table.fields],
            )
        )
    return steps


def _plan_columns(target_table: TableSchema, actual_table: TableSchema) -> list[MigrationStep]:
    steps: list[MigrationStep] = []

    for target_field in target_table.fields:
        actual_field = actual_table.get_field(target_field.name)

        if actual_field is None:
            steps.append(
                MigrationStep(
                    action=MigrationAction.ADD_COLUMN,
                    table_name=target_table.name,
                    fields=[target_field.model_copy(deep=True)],
                )
            )
            continue

        change = compare_field_size(target_field, actual_field)
        if change is SizeChange.WIDEN:
            steps.append(
                MigrationStep(
                    action=MigrationAction.ALTER_COLUMN,
                    table_name=target_table.name,
                    fields=[target_field.model_copy(deep=True)],
                    is_widening=True,
                )
            )
        elif change is SizeChange.NARROW:
            if target_field.has_attribute(REDUCE_SIZE):
                steps.append(
                    MigrationStep(
                        action=MigrationAction.ALTER_COLUMN,
                        table_name=target_table.name,
                        fields=[target_field.model_copy(deep=True)],
                    )
                )
            else:
                logger.debug(
                    f"Not narrowing {target_table.name}.{target_field.name}: "
                    f"field is not marked @{REDUCE_SIZE}"
                )

    return steps


def _plan_foreign_keys(
    target: DatabaseSchema, target_table: TableSchema, actual_table: TableSchema | None
) -> list[MigrationStep]:
    steps: list[MigrationStep] = []
    existing = actual_table.foreign_keys if actual_table is not None else []

    for fk in target_table.foreign_keys:
        if any(_same_foreign_key(fk, other) for other in existing):
            continue
        if not target.has_table(fk.target_table):
            logger.debug(
                f"Skipping foreign key {target_table.name}.{fk.column_name}: "
                f"target table '{fk.target_table}' is not in the model"
            )
            continue
        steps.append(
            MigrationStep(
                action=MigrationAction.ADD_FOREIGN_KEY,
                table_name=target_table.name,
                foreign_key=fk.model_copy(deep=True),
            )
        )

    return steps


def _plan_indexes(target_table: TableSchema, actual_table: TableSchema | None) -> list[MigrationStep]:
    steps: list[MigrationStep] = []
    existing = actual_table.indexes if actual_table is not None else []

    for index in target_table.indexes:
        if any(_same_index(index, other) for other in existing):
            continue
        steps.append(
            MigrationStep(
                action=MigrationAction.ADD_INDEX,
                table_name=target_table.name,
                index=index.model_copy(deep=True),
            )
        )

    return steps


def _collect_extras(target: DatabaseSchema, actual: DatabaseSchema) -> ExtrasReport:
    extras = ExtrasReport()

    for actual_table in actual.tables.values():
        target_table = target.get_table(actual_table.name)
        if target_table is None:
            extras.extra_tables.append(actual_table.name)
            continue

        for actual_field in actual_table.fields:
            if not target_table.has_field(actual_field.name):
                extras.extra_columns.append(
                    ExtraColumn(
                        table=actual_table.name,
                        column=actual_field.name,
                        data_type=actual_field.type,
                    )
                )

        expected = list(target_table.indexes)
        expected.extend(_foreign_key_support_index(target_table.name, fk) for fk in target_table.foreign_keys)
        for actual_index in actual_table.indexes:
            if not any(_same_index(actual_index, other) for other in expected):
                extras.extra_indexes.append(
                    ExtraIndex(
                        table=actual_table.name,
                        fields=list(actual_index.fields),
                        is_unique=actual_index.is_unique,
                        name=actual_index.name,
                    )
                )

    return extras


# ------------------------------------------------------------------
# Entry point
# ------------------------------------------------------------------


def plan_migration(target: DatabaseSchema, actual: DatabaseSchema) -> MigrationPlan:
    """Compute the ordered steps that bring *actual* in line with *target*.

    Args:
        target: Desired schema, usually compiled from DSL files.
        actual: Current schema, usually introspected from the live database.

    Returns:
        ``MigrationPlan`` with ordered ``steps`` and an ``extras`` report.

    Raises:
        ValueError: If either model is None.

    Examples:
        >>> plan = plan_migration(schema, schema.model_copy(deep=True))
        >>> plan.has_changes
        False

        >>> plan = plan_migration(schema, DatabaseSchema())
        >>> {s.action for s in plan.steps} >= {MigrationAction.CREATE_TABLE}
        True
    """
    if target is None:
        raise ValueError("Target model is required")
    if actual is None:
        raise ValueError("Actual model is required")

    plan = MigrationPlan()

    # 1. Tables
    plan.steps.extend(_plan_tables(target, actual))

    # 2. Columns (shared tables only)
    for target_table in target.tables.values():
        actual_table = actual.get_table(target_table.name)
        if actual_table is not None:
            plan.steps.extend(_plan_columns(target_table, actual_table))

    # 3. Foreign keys
    for target_table in target.tables.values():
        actual_table = actual.get_table(target_table.name)
        plan.steps.extend(_plan_foreign_keys(target, target_table, actual_table))

    # 4. Indexes
    for target_table in target.tables.values():
        actual_table = actual.get_table(target_table.name)
        plan.steps.extend(_plan_indexes(target_table, actual_table))

    plan.extras = _collect_extras(target, actual)

    logger.info(
        f"Planned {len(plan.steps)} step(s); "
        f"{plan.extras.count} extra object(s) in database"
    )
    return plan
