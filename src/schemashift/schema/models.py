"""Schema models shared by the compiler, planner, executor and introspector.

This module contains schema-domain models:
- Model structure: FieldSchema, ForeignKeySchema, IndexSchema, TableSchema,
  MixinSchema, DatabaseSchema
- Extras report: ExtraColumn, ExtraIndex, ExtrasReport
- Migration plan: MigrationAction, MigrationStep, MigrationPlan

Both the target model (compiled from DSL) and the actual model (introspected
from a live database) use the same structures, so the planner compares them
directly.  Table and mixin mappings are keyed by ``name_key()`` so lookups are
case-insensitive; the stored objects keep their original spelling.

Configuration models (ShiftConfig, DatabaseProfile) live in
schemashift.config.models.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from schemashift.schema.names import find_by_name, has_attribute, name_key
from schemashift.schema.types import MAX_LENGTH

__all__ = [
    "MAX_LENGTH",
    "RelationshipType",
    "IndexKind",
    "FieldSchema",
    "ForeignKeySchema",
    "IndexSchema",
    "TableSchema",
    "MixinSchema",
    "DatabaseSchema",
    "ExtraColumn",
    "ExtraIndex",
    "ExtrasReport",
    "MigrationAction",
    "MigrationStep",
    "MigrationPlan",
]

#: Field attribute that allows the planner to schedule a narrowing alteration.
REDUCE_SIZE = "ReduceSize"

#: Field attribute that lets the executor truncate/round data to fit a narrower column.
ALLOW_DATA_LOSS = "AllowDataLoss"

#: Table attribute that suppresses the identity property of the generated key.
NO_IDENTITY = "NoIdentity"


# ============================================================================
# Model Structure
# ============================================================================


class RelationshipType(str, Enum):
    """Cardinality of a relationship declaration."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"


class IndexKind(str, Enum):
    """Clustering kind of an index."""

    CLUSTERED = "clustered"
    NONCLUSTERED = "nonclustered"


class FieldSchema(BaseModel):
    """A column in a table or mixin.

    ``type`` holds the canonical storage type (``varchar``, ``numeric``, ...).
    ``is_optional`` is descriptive metadata for downstream consumers and never
    affects generated nullability.

    Example:
        >>> field = FieldSchema(name="Email", type="varchar", precision=100)
        >>> field.is_nullable
        False
    """

    name: str
    type: str
    is_nullable: bool = False
    is_optional: bool = False
    precision: int | None = None
    scale: int | None = None
    is_primary_key: bool = False
    is_identity: bool = False
    attributes: dict[str, bool] = Field(default_factory=dict)

    @property
    def is_max_length(self) -> bool:
        """True if precision is the unbounded sentinel."""
        return self.precision == MAX_LENGTH

    def has_attribute(self, name: str) -> bool:
        """True if the field carries attribute *name* (case-insensitive)."""
        return has_attribute(self.attributes, name)


class ForeignKeySchema(BaseModel):
    """A foreign key owned by a table, pointing at another table's key."""

    column_name: str
    target_table: str
    target_column: str
    relationship: RelationshipType = RelationshipType.ONE_TO_MANY
    is_nullable: bool = False


class IndexSchema(BaseModel):
    """An index over an ordered list of field names.

    ``name`` is only populated for introspected indexes; compiled indexes get
    their name at DDL time.
    """

    fields: list[str] = Field(default_factory=list)
    is_unique: bool = False
    is_alternate_key: bool = False
    kind: IndexKind = IndexKind.NONCLUSTERED
    name: str | None = None


class TableSchema(BaseModel):
    """A table with its fields, foreign keys, indexes and applied mixins."""

    name: str
    fields: list[FieldSchema] = Field(default_factory=list)
    foreign_keys: list[ForeignKeySchema] = Field(default_factory=list)
    indexes: list[IndexSchema] = Field(default_factory=list)
    mixins: list[str] = Field(default_factory=list)
    attributes: dict[str, bool] = Field(default_factory=dict)

    def get_field(self, name: str) -> FieldSchema | None:
        """Return the field called *name* (case-insensitive), or None."""
        return find_by_name(self.fields, name, lambda f: f.name)

    def has_field(self, name: str) -> bool:
        """True if a field called *name* exists (case-insensitive)."""
        return self.get_field(name) is not None

    @property
    def primary_key(self) -> FieldSchema | None:
        """The primary key field, or None for a keyless (introspected) table."""
        for f in self.fields:
            if f.is_primary_key:
                return f
        return None

    def has_attribute(self, name: str) -> bool:
        """True if the table carries attribute *name* (case-insensitive)."""
        return has_attribute(self.attributes, name)


class MixinSchema(BaseModel):
    """A reusable template of fields and foreign keys."""

    name: str
    fields: list[FieldSchema] = Field(default_factory=list)
    foreign_keys: list[ForeignKeySchema] = Field(default_factory=list)


class DatabaseSchema(BaseModel):
    """A complete model: tables and mixins keyed by case-insensitive name.

    Example:
        >>> schema = DatabaseSchema()
        >>> schema.add_table(TableSchema(name="User"))
        >>> schema.has_table("USER")
        True
    """

    tables: dict[str, TableSchema] = Field(default_factory=dict)
    mixins: dict[str, MixinSchema] = Field(default_factory=dict)

    def get_table(self, name: str) -> TableSchema | None:
        return self.tables.get(name_key(name))

    def has_table(self, name: str) -> bool:
        return name_key(name) in self.tables

    def add_table(self, table: TableSchema) -> None:
        """Register *table*.

        Raises:
            ValueError: If a table with the same case-insensitive name exists.
        """
        key = name_key(table.name)
        if key in self.tables:
            raise ValueError(f"Duplicate table '{table.name}'")
        self.tables[key] = table

    def get_mixin(self, name: str) -> MixinSchema | None:
        return self.mixins.get(name_key(name))

    def add_mixin(self, mixin: MixinSchema) -> None:
        """Register *mixin*.

        Raises:
            ValueError: If a mixin with the same case-insensitive name exists.
        """
        key = name_key(mixin.name)
        if key in self.mixins:
            raise ValueError(f"Duplicate mixin '{mixin.name}'")
        self.mixins[key] = mixin


# ============================================================================
# Extras Report
# ============================================================================


class ExtraColumn(BaseModel):
    """A column found in the live database but not in the target model."""

    table: str
    column: str
    data_type: str = ""


class ExtraIndex(BaseModel):
    """An index found in the live database but not in the target model."""

    table: str
    fields: list[str] = Field(default_factory=list)
    is_unique: bool = False
    name: str | None = None


class ExtrasReport(BaseModel):
    """Objects present only in the actual model.

    Reported for visibility, never scheduled for removal.

    Example:
        >>> report = ExtrasReport()
        >>> report.is_empty
        True
        >>> report.format_report()
        'No extra objects'
    """

    extra_tables: list[str] = Field(default_factory=list)
    extra_columns: list[ExtraColumn] = Field(default_factory=list)
    extra_indexes: list[ExtraIndex] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.extra_tables or self.extra_columns or self.extra_indexes)

    @property
    def count(self) -> int:
        """Total number of extra objects."""
        return len(self.extra_tables) + len(self.extra_columns) + len(self.extra_indexes)

    def format_report(self) -> str:
        """Format the extras as a human-readable report."""
        if self.is_empty:
            return "No extra objects"

        lines = ["Objects in database but not in model:"]

        if self.extra_tables:
            lines.append(f"\n  Extra tables ({len(self.extra_tables)}):")
            for table in self.extra_tables:
                lines.append(f"    - {table}")

        if self.extra_columns:
            lines.append(f"\n  Extra columns ({len(self.extra_columns)}):")
            for col in self.extra_columns:
                suffix = f" ({col.data_type})" if col.data_type else ""
                lines.append(f"    - {col.table}.{col.column}{suffix}")

        if self.extra_indexes:
            lines.append(f"\n  Extra indexes ({len(self.extra_indexes)}):")
            for idx in self.extra_indexes:
                unique = "unique " if idx.is_unique else ""
                lines.append(f"    - {idx.table}: {unique}({', '.join(idx.fields)})")

        return "\n".join(lines)


# ============================================================================
# Migration Plan
# ============================================================================


class MigrationAction(str, Enum):
    """Kind of change a migration step performs."""

    CREATE_TABLE = "CreateTable"
    ADD_COLUMN = "AddColumn"
    ALTER_COLUMN = "AlterColumn"
    ADD_FOREIGN_KEY = "AddForeignKey"
    ADD_INDEX = "AddIndex"


@dataclass
class MigrationStep:
    """One ordered change in a plan.

    Carries ``fields`` for CreateTable/AddColumn/AlterColumn, a single
    ``foreign_key`` for AddForeignKey, or a single ``index`` for AddIndex.
    ``is_widening`` marks alterations that cannot lose data.

    Example:
        step = MigrationStep(MigrationAction.ADD_COLUMN, "User", fields=[email])
        step.describe()
        # 'AddColumn User (Email)'
    """

    action: MigrationAction
    table_name: str
    fields: list[FieldSchema] = field(default_factory=list)
    foreign_key: ForeignKeySchema | None = None
    index: IndexSchema | None = None
    is_widening: bool = False

    def describe(self) -> str:
        """Short one-line description for logs and reports."""
        if self.foreign_key is not None:
            fk = self.foreign_key
            detail = f"{fk.column_name} -> {fk.target_table}.{fk.target_column}"
        elif self.index is not None:
            detail = ", ".join(self.index.fields)
        else:
            detail = ", ".join(f.name for f in self.fields)
        return f"{self.action.value} {self.table_name} ({detail})"


@dataclass
class MigrationPlan:
    """Ordered steps plus the extras report for one planner run.

    Attributes:
        steps: Changes in execution order.
        extras: Objects found only in the live database.
    """

    steps: list[MigrationStep] = field(default_factory=list)
    extras: ExtrasReport = field(default_factory=ExtrasReport)

    @property
    def has_changes(self) -> bool:
        """True if there are any steps to apply."""
        return bool(self.steps)

    def step_counts(self) -> dict[MigrationAction, int]:
        """Number of steps per action, in action declaration order."""
        counts = Counter(step.action for step in self.steps)
        return {action: counts[action] for action in MigrationAction if counts[action]}

    def steps_for(self, action: MigrationAction) -> list[MigrationStep]:
        return [step for step in self.steps if step.action == action]
