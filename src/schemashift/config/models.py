"""Pydantic models for shift.toml configuration."""

from pydantic import BaseModel, Field

from schemashift.schema.ddl import DEFAULT_MAX_IDENTIFIER_LENGTH


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from shift.toml."""

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution


class SchemaSettings(BaseModel):
    """Where model files live and which database schema they describe."""

    paths: list[str] = Field(default_factory=lambda: ["models"])
    name: str = "public"


class MigrationSettings(BaseModel):
    """Executor defaults."""

    max_identifier_length: int = Field(default=DEFAULT_MAX_IDENTIFIER_LENGTH, gt=9)
    allow_data_loss: bool = False


class ShiftConfig(BaseModel):
    """Complete configuration from shift.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    schema_settings: SchemaSettings = Field(default_factory=SchemaSettings)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
