"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from schemashift.config import load_shift_config, DatabaseProfile, ShiftConfig
"""

from schemashift.config.loader import load_shift_config
from schemashift.config.models import (
    DatabaseProfile,
    MigrationSettings,
    SchemaSettings,
    ShiftConfig,
)

__all__ = [
    "load_shift_config",
    "ShiftConfig",
    "DatabaseProfile",
    "SchemaSettings",
    "MigrationSettings",
]
