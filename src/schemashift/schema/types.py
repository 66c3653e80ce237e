"""Bidirectional type registry between DSL type codes and PostgreSQL storage types.

Two static tables drive all type handling:

- ``DSL_TYPES``: DSL code -> storage type, precision policy and defaults.
  Used by the compiler to canonicalize field declarations.
- ``STORAGE_TYPES``: storage type (plus catalog spellings) -> DSL code and
  type family.  Used by the introspector so a live column compares directly
  with a compiled field, and by the DDL generator to render column types.

Deprecated spellings (``char``, ``string``, ``text``) canonicalize to the same
storage type as their modern equivalents, and the inverse direction only ever
yields modern DSL codes, so a round trip never reintroduces them.

Usage:
    from schemashift.schema.types import canonicalize_dsl_type, render_sql_type

    canonicalize_dsl_type("string", None, None)
    # ('varchar', 255, None)
    render_sql_type("varchar", MAX_LENGTH, None)
    # 'varchar'
"""

from dataclasses import dataclass
from enum import Enum

from schemashift.schema.names import name_key

#: Precision sentinel meaning "unbounded" (rendered as the MAX variant).
MAX_LENGTH = -1


class PrecisionPolicy(str, Enum):
    """How a type accepts precision and scale parameters."""

    NONE = "none"
    PRECISION_ONLY = "precision"
    PRECISION_AND_SCALE = "precision_and_scale"


class TypeFamily(str, Enum):
    """Broad storage families used by the planner, executor and safety checks."""

    BOOLEAN = "boolean"
    UUID = "uuid"
    STRING = "string"
    BINARY = "binary"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    TIMESTAMP = "timestamp"
    DATE = "date"


@dataclass(frozen=True)
class DslType:
    """One row of the DSL -> storage table.

    ``fixed`` types always take their default precision/scale, whatever the
    declaration supplies (money family, deprecated large text).
    """

    code: str
    storage: str
    policy: PrecisionPolicy = PrecisionPolicy.NONE
    default_precision: int | None = None
    default_scale: int | None = None
    fixed: bool = False
    deprecated: bool = False


@dataclass(frozen=True)
class StorageType:
    """One row of the storage -> DSL table.

    Rows with ``converts_to`` are aliases that canonicalize to another storage
    type with a fixed precision/scale (``text`` -> unbounded ``varchar``,
    ``money`` -> ``numeric(19,4)``).
    """

    code: str
    dsl_code: str
    family: TypeFamily
    policy: PrecisionPolicy = PrecisionPolicy.NONE
    default_precision: int | None = None
    default_scale: int | None = None
    supports_max: bool = False
    aliases: tuple[str, ...] = ()
    converts_to: str | None = None
    fixed_precision: int | None = None
    fixed_scale: int | None = None


DSL_TYPES: tuple[DslType, ...] = (
    DslType("bool", "boolean"),
    DslType("guid", "uuid"),
    # ASCII string types
    DslType("achar", "char", PrecisionPolicy.PRECISION_ONLY, default_precision=1),
    DslType("astring", "varchar", PrecisionPolicy.PRECISION_ONLY, default_precision=255),
    # Unicode string types
    DslType("uchar", "char", PrecisionPolicy.PRECISION_ONLY, default_precision=1),
    DslType("ustring", "varchar", PrecisionPolicy.PRECISION_ONLY, default_precision=255),
    # Deprecated spellings
    DslType("char", "char", PrecisionPolicy.PRECISION_ONLY, default_precision=1, deprecated=True),
    DslType("string", "varchar", PrecisionPolicy.PRECISION_ONLY, default_precision=255, deprecated=True),
    DslType(
        "text",
        "varchar",
        PrecisionPolicy.PRECISION_ONLY,
        default_precision=MAX_LENGTH,
        fixed=True,
        deprecated=True,
    ),
    # Numeric types
    DslType("int", "integer"),
    DslType("long", "bigint"),
    DslType(
        "decimal",
        "numeric",
        PrecisionPolicy.PRECISION_AND_SCALE,
        default_precision=18,
        default_scale=0,
    ),
    DslType(
        "money",
        "numeric",
        PrecisionPolicy.PRECISION_AND_SCALE,
        default_precision=19,
        default_scale=4,
        fixed=True,
    ),
    DslType(
        "smallmoney",
        "numeric",
        PrecisionPolicy.PRECISION_AND_SCALE,
        default_precision=10,
        default_scale=4,
        fixed=True,
    ),
    DslType("float", "double precision"),
    # Date/time types
    DslType("datetime", "timestamp"),
    DslType("date", "date"),
    # Binary
    DslType("binary", "bytea"),
)

STORAGE_TYPES: tuple[StorageType, ...] = (
    StorageType("boolean", "bool", TypeFamily.BOOLEAN, aliases=("bool",)),
    StorageType("uuid", "guid", TypeFamily.UUID),
    StorageType(
        "char",
        "uchar",
        TypeFamily.STRING,
        PrecisionPolicy.PRECISION_ONLY,
        default_precision=1,
        aliases=("character", "bpchar"),
    ),
    StorageType(
        "varchar",
        "ustring",
        TypeFamily.STRING,
        PrecisionPolicy.PRECISION_ONLY,
        default_precision=255,
        supports_max=True,
        aliases=("character varying",),
    ),
    StorageType(
        "text",
        "ustring",
        TypeFamily.STRING,
        converts_to="varchar",
        fixed_precision=MAX_LENGTH,
    ),
    StorageType("integer", "int", TypeFamily.INTEGER, aliases=("int", "int4")),
    StorageType("bigint", "long", TypeFamily.INTEGER, aliases=("int8",)),
    StorageType(
        "numeric",
        "decimal",
        TypeFamily.DECIMAL,
        PrecisionPolicy.PRECISION_AND_SCALE,
        default_precision=18,
        default_scale=0,
        aliases=("decimal",),
    ),
    StorageType(
        "money",
        "decimal",
        TypeFamily.DECIMAL,
        converts_to="numeric",
        fixed_precision=19,
        fixed_scale=4,
    ),
    StorageType("double precision", "float", TypeFamily.FLOAT, aliases=("float8",)),
    StorageType(
        "timestamp",
        "datetime",
        TypeFamily.TIMESTAMP,
        aliases=("timestamp without time zone",),
    ),
    StorageType("date", "date", TypeFamily.DATE),
    StorageType("bytea", "binary", TypeFamily.BINARY),
)

_DSL_BY_CODE: dict[str, DslType] = {name_key(t.code): t for t in DSL_TYPES}

_STORAGE_BY_NAME: dict[str, StorageType] = {}
for _storage in STORAGE_TYPES:
    _STORAGE_BY_NAME[name_key(_storage.code)] = _storage
    for _alias in _storage.aliases:
        _STORAGE_BY_NAME[name_key(_alias)] = _storage


def lookup_dsl_type(code: str) -> DslType | None:
    """Find a DSL type by code (case-insensitive)."""
    return _DSL_BY_CODE.get(name_key(code))


def lookup_storage_type(name: str) -> StorageType | None:
    """Find a storage type by canonical name or catalog spelling (case-insensitive)."""
    return _STORAGE_BY_NAME.get(name_key(name.strip()))


def type_family(storage: str) -> TypeFamily | None:
    """Return the family of a storage type, or None for unknown types."""
    entry = lookup_storage_type(storage)
    return entry.family if entry else None


def canonicalize_dsl_type(
    code: str, precision: int | None, scale: int | None
) -> tuple[str, int | None, int | None]:
    """Map a DSL declaration to ``(storage_type, precision, scale)``.

    Omitted parameters take the type's defaults; types without a precision
    policy drop whatever was supplied.  Unknown codes pass through unchanged.

    Raises:
        ValueError: If ``max`` is given for a type without an unbounded variant.

    Examples:
        >>> canonicalize_dsl_type("decimal", 10, None)
        ('numeric', 10, 0)
        >>> canonicalize_dsl_type("money", 5, 1)
        ('numeric', 19, 4)
        >>> canonicalize_dsl_type("point", 3, None)
        ('point', 3, None)
    """
    dsl_type = lookup_dsl_type(code)
    if dsl_type is None:
        return code, precision, scale

    if dsl_type.fixed:
        return dsl_type.storage, dsl_type.default_precision, dsl_type.default_scale

    if dsl_type.policy is PrecisionPolicy.NONE:
        return dsl_type.storage, None, None

    if precision == MAX_LENGTH:
        storage = lookup_storage_type(dsl_type.storage)
        if storage is None or not storage.supports_max:
            raise ValueError(f"Type '{code}' does not support max length")
        return dsl_type.storage, MAX_LENGTH, None

    if precision is None:
        precision = dsl_type.default_precision

    if dsl_type.policy is PrecisionPolicy.PRECISION_ONLY:
        return dsl_type.storage, precision, None

    if scale is None:
        scale = dsl_type.default_scale
    return dsl_type.storage, precision, scale


def canonicalize_storage_type(
    data_type: str, precision: int | None, scale: int | None
) -> tuple[str, int | None, int | None]:
    """Map a catalog column type to ``(storage_type, precision, scale)``.

    Catalog spellings collapse onto canonical codes, aliases convert to their
    target type, types without a precision policy lose catalog-reported
    precision (e.g. ``integer`` reports 32), and an unbounded ``varchar``
    gets the ``MAX_LENGTH`` sentinel.  Unknown types pass through lowercased.

    Examples:
        >>> canonicalize_storage_type("character varying", 50, None)
        ('varchar', 50, None)
        >>> canonicalize_storage_type("text", None, None)
        ('varchar', -1, None)
        >>> canonicalize_storage_type("integer", 32, 0)
        ('integer', None, None)
    """
    storage = lookup_storage_type(data_type)
    if storage is None:
        return data_type.lower(), precision, scale

    if storage.converts_to is not None:
        return storage.converts_to, storage.fixed_precision, storage.fixed_scale

    if storage.policy is PrecisionPolicy.NONE:
        return storage.code, None, None

    if storage.policy is PrecisionPolicy.PRECISION_ONLY:
        if precision is None:
            precision = MAX_LENGTH if storage.supports_max else storage.default_precision
        return storage.code, precision, None

    if precision is None:
        precision = storage.default_precision
    if scale is None:
        scale = storage.default_scale
    return storage.code, precision, scale


def _format_parameters(
    base: str,
    policy: PrecisionPolicy | None,
    precision: int | None,
    scale: int | None,
    max_marker: str,
) -> str:
    if policy is PrecisionPolicy.NONE:
        return base

    if precision is None:
        return base
    if precision == MAX_LENGTH:
        return f"{base}{max_marker}"
    if scale is not None and policy is not PrecisionPolicy.PRECISION_ONLY:
        return f"{base}({precision},{scale})"
    return f"{base}({precision})"


def render_sql_type(type_name: str, precision: int | None = None, scale: int | None = None) -> str:
    """Render a canonical field type as PostgreSQL DDL.

    The MAX sentinel renders as the unbounded type (bare ``varchar``).

    Examples:
        >>> render_sql_type("varchar", 100)
        'varchar(100)'
        >>> render_sql_type("numeric", 18, 2)
        'numeric(18,2)'
    """
    storage = lookup_storage_type(type_name)
    if storage is None:
        return _format_parameters(type_name, None, precision, scale, "")

    if storage.converts_to is not None:
        return render_sql_type(storage.converts_to, storage.fixed_precision, storage.fixed_scale)

    if storage.policy is PrecisionPolicy.PRECISION_ONLY and precision is None:
        precision = storage.default_precision
    if storage.policy is PrecisionPolicy.PRECISION_AND_SCALE:
        precision = precision if precision is not None else storage.default_precision
        scale = scale if scale is not None else storage.default_scale

    return _format_parameters(storage.code, storage.policy, precision, scale, "")


def render_dsl_type(type_name: str, precision: int | None = None, scale: int | None = None) -> str:
    """Render a canonical field type back as a DSL type expression.

    Examples:
        >>> render_dsl_type("varchar", -1)
        'ustring(max)'
        >>> render_dsl_type("money")
        'decimal(19,4)'
    """
    storage = lookup_storage_type(type_name)
    if storage is None:
        return _format_parameters(type_name, None, precision, scale, "(max)")

    if storage.converts_to is not None:
        return render_dsl_type(storage.converts_to, storage.fixed_precision, storage.fixed_scale)

    if storage.policy is PrecisionPolicy.PRECISION_ONLY and precision is None:
        precision = storage.default_precision
    if storage.policy is PrecisionPolicy.PRECISION_AND_SCALE:
        precision = precision if precision is not None else storage.default_precision
        scale = scale if scale is not None else storage.default_scale

    return _format_parameters(storage.dsl_code, storage.policy, precision, scale, "(max)")
