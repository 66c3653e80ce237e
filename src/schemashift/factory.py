"""Profile resolution, adapter creation and migration orchestration.

A run loads shift.toml, picks the active profile, compiles the model files,
introspects the live database, plans, and applies the plan.

Usage:
    from schemashift.factory import migrate, preview

    # Show what would change
    run = preview("local")
    print(run.plan.extras.format_report())

    # Apply it
    run = migrate("local")
    if not run.result.success:
        ...
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from schemashift.adapters import PostgresAdapter
from schemashift.config import DatabaseProfile, ShiftConfig, load_shift_config
from schemashift.schema.executor import ApplyResult, apply_plan
from schemashift.schema.introspector import SchemaIntrospector
from schemashift.schema.loader import load_from_paths
from schemashift.schema.models import DatabaseSchema, MigrationPlan
from schemashift.schema.planner import plan_migration

logger = logging.getLogger(__name__)

PROFILE_ENV_VAR = "SHIFT_DB_PROFILE"


# ============================================================================
# Profile Resolution
# ============================================================================


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured or the name is unknown."""

    pass


def get_active_profile_name(profile_name: str | None = None) -> str:
    """Get active profile name from argument or env var.

    Priority:
    1. Explicit *profile_name*
    2. SHIFT_DB_PROFILE env var
    3. Raise ProfileNotFoundError

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    if profile_name:
        return profile_name

    env_profile = os.environ.get(PROFILE_ENV_VAR)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Pass a profile name or set {PROFILE_ENV_VAR}=<name>."
    )


def get_active_profile(
    config: ShiftConfig, profile_name: str | None = None
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile is configured or it is not in the config
    """
    name = get_active_profile_name(profile_name)

    if name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ProfileNotFoundError(f"Profile '{name}' not found. Available profiles: {available}")

    return name, config.profiles[name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


def get_adapter(
    profile_name: str | None = None,
    config_path: Path | None = None,
) -> PostgresAdapter:
    """Create a ``PostgresAdapter`` for the active profile.

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ProfileNotFoundError: If no usable profile is configured
    """
    config = load_shift_config(config_path)
    _, profile = get_active_profile(config, profile_name)
    return PostgresAdapter(resolve_url(profile))


# ============================================================================
# Migration Runs
# ============================================================================


@dataclass
class MigrationRun:
    """Outcome of a preview or migration run.

    Attributes:
        profile_name: Profile the run targeted.
        plan: The computed plan.
        result: Apply outcome, None for previews.
    """

    profile_name: str
    plan: MigrationPlan
    result: ApplyResult | None = None


def _plan_for(config: ShiftConfig, url: str) -> MigrationPlan:
    target = load_from_paths(config.schema_settings.paths)

    with SchemaIntrospector(url) as introspector:
        actual: DatabaseSchema = introspector.introspect(config.schema_settings.name)

    return plan_migration(target, actual)


def preview(profile_name: str | None = None, config_path: Path | None = None) -> MigrationRun:
    """Plan against the active profile without applying anything.

    Raises:
        FileNotFoundError: If the config file or a model path doesn't exist
        ProfileNotFoundError: If no usable profile is configured
        SchemaParseError: If a model file fails to compile
    """
    config = load_shift_config(config_path)
    name, profile = get_active_profile(config, profile_name)

    plan = _plan_for(config, resolve_url(profile))
    return MigrationRun(profile_name=name, plan=plan)


def migrate(
    profile_name: str | None = None,
    config_path: Path | None = None,
    *,
    dry_run: bool = False,
    allow_data_loss: bool | None = None,
) -> MigrationRun:
    """Compile, introspect, plan and apply against the active profile.

    Args:
        profile_name: Profile from shift.toml.  If None, uses SHIFT_DB_PROFILE.
        config_path: Path to shift.toml (default: ./shift.toml).
        dry_run: Record statements instead of executing them.
        allow_data_loss: Override ``[migration] allow_data_loss``.

    Returns:
        MigrationRun with the plan and the apply result.

    Raises:
        FileNotFoundError: If the config file or a model path doesn't exist
        ProfileNotFoundError: If no usable profile is configured
        SchemaParseError: If a model file fails to compile

    Example:
        >>> run = migrate("local", dry_run=True)
        >>> run.result.success
        True
    """
    config = load_shift_config(config_path)
    name, profile = get_active_profile(config, profile_name)
    url = resolve_url(profile)

    if allow_data_loss is None:
        allow_data_loss = config.migration.allow_data_loss

    logger.info(f"Migrating profile '{name}'")
    plan = _plan_for(config, url)

    with PostgresAdapter(url) as adapter:
        result = apply_plan(
            adapter,
            plan,
            max_identifier_length=config.migration.max_identifier_length,
            allow_data_loss=allow_data_loss,
            dry_run=dry_run,
        )

    return MigrationRun(profile_name=name, plan=plan, result=result)
