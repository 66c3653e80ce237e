"""Configuration loading from shift.toml."""

import tomllib
from pathlib import Path

from schemashift.config.models import (
    DatabaseProfile,
    MigrationSettings,
    SchemaSettings,
    ShiftConfig,
)

DEFAULT_CONFIG_FILE = "shift.toml"


def load_shift_config(config_path: Path | None = None) -> ShiftConfig:
    """Load configuration from a TOML file.

    Relative ``[schema] paths`` are resolved against the config file's
    directory.

    Args:
        config_path: Path to shift.toml (default: ./shift.toml)

    Returns:
        ShiftConfig with all profiles and settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        pydantic.ValidationError: If a section has invalid values

    Example:
        config = load_shift_config(Path("shift.toml"))
        config.profiles["local"].url
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_FILE} with a [profiles.<name>] section."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        profiles[name] = DatabaseProfile(**profile_data)

    # Parse schema settings
    schema_settings = SchemaSettings(**data.get("schema", {}))
    base_dir = config_path.parent
    schema_settings.paths = [
        str(p if Path(p).is_absolute() else base_dir / p) for p in schema_settings.paths
    ]

    return ShiftConfig(
        profiles=profiles,
        schema_settings=schema_settings,
        migration=MigrationSettings(**data.get("migration", {})),
    )
