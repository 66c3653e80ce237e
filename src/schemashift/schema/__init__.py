"""DSL compilation, migration planning and safety-gated execution.

Provides the compiler (``parse_schema``, ``load_from_paths``), the planner
(``plan_migration``), the executor (``apply_plan``, ``render_plan_sql``) and
live database introspection (``SchemaIntrospector``).

Usage:
    from schemashift.schema import load_from_paths, plan_migration, apply_plan
    from schemashift.schema import SchemaIntrospector
"""

from schemashift.schema.ddl import build_identifier, index_name
from schemashift.schema.executor import (
    ApplyResult,
    SkippedStep,
    StepFailure,
    apply_plan,
    render_plan_sql,
)
from schemashift.schema.introspector import SchemaIntrospector
from schemashift.schema.loader import load_from_paths
from schemashift.schema.models import (
    DatabaseSchema,
    ExtrasReport,
    FieldSchema,
    ForeignKeySchema,
    IndexSchema,
    MigrationAction,
    MigrationPlan,
    MigrationStep,
    MixinSchema,
    TableSchema,
)
from schemashift.schema.parser import SchemaParseError, SchemaParser, parse_schema
from schemashift.schema.planner import plan_migration

__all__ = [
    "parse_schema",
    "SchemaParser",
    "SchemaParseError",
    "load_from_paths",
    "plan_migration",
    "apply_plan",
    "render_plan_sql",
    "ApplyResult",
    "StepFailure",
    "SkippedStep",
    "build_identifier",
    "index_name",
    "SchemaIntrospector",
    "DatabaseSchema",
    "TableSchema",
    "MixinSchema",
    "FieldSchema",
    "ForeignKeySchema",
    "IndexSchema",
    "ExtrasReport",
    "MigrationAction",
    "MigrationStep",
    "MigrationPlan",
]
