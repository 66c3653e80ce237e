"""schemashift: compile schema DSL files and migrate PostgreSQL to match.

Compiles ``.dmd``/``.dmdx`` model files into a schema model, diffs it against
the live database, and applies the resulting plan with safety checks against
silent data loss.

Usage:
    from schemashift import load_from_paths, plan_migration, apply_plan
    from schemashift import PostgresAdapter, SchemaIntrospector
    from schemashift import migrate, preview, load_shift_config
"""

__version__ = "0.1.0"

# Adapters
from schemashift.adapters.base import DatabaseClient
from schemashift.adapters.postgres import PostgresAdapter

# Config
from schemashift.config.loader import load_shift_config
from schemashift.config.models import DatabaseProfile, ShiftConfig

# Factory
from schemashift.factory import (
    MigrationRun,
    ProfileNotFoundError,
    get_adapter,
    migrate,
    preview,
    resolve_url,
)

# Report
from schemashift.report import print_apply_result, print_plan

# Schema
from schemashift.schema import (
    ApplyResult,
    DatabaseSchema,
    MigrationPlan,
    SchemaIntrospector,
    SchemaParseError,
    apply_plan,
    load_from_paths,
    parse_schema,
    plan_migration,
    render_plan_sql,
)

__all__ = [
    # Adapters
    "DatabaseClient",
    "PostgresAdapter",
    # Config
    "load_shift_config",
    "DatabaseProfile",
    "ShiftConfig",
    # Factory
    "get_adapter",
    "migrate",
    "preview",
    "MigrationRun",
    "ProfileNotFoundError",
    "resolve_url",
    # Report
    "print_plan",
    "print_apply_result",
    # Schema
    "parse_schema",
    "load_from_paths",
    "SchemaParseError",
    "plan_migration",
    "apply_plan",
    "render_plan_sql",
    "ApplyResult",
    "DatabaseSchema",
    "MigrationPlan",
    "SchemaIntrospector",
]
