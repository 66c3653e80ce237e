"""DSL compiler: turns model/mixin source text into a ``DatabaseSchema``.

Grammar (line-oriented):

    mixin Auditable {
        datetime CreatedAt
        datetime? UpdatedAt
    }

    model User [PkType] [with Auditable, SoftDelete] {
        string(100) Email @ReduceSize
        decimal(10,2)? Balance
        model ClientStatus
        !models Role? as Primary
        index (Email) @unique
        index (ClientStatus, Email) @alternatekey
        @NoIdentity
    }

    extends User {
        bool IsAdmin
    }

The opening ``{`` may sit on the header line or alone on the next line; a
block ends at a line holding only ``}``.  ``//``, ``#`` and ``/* ... */``
comments are ignored.

Blocks are compiled in three passes (mixins, models, extends) regardless of
source order.  Each block is compiled on a staged copy and only committed to
the schema once it has compiled cleanly, so a fatal error never leaves a
partial table behind.

Usage:
    from schemashift.schema.parser import SchemaParser, parse_schema

    schema = parse_schema(text, source="models/user.dmd")

    parser = SchemaParser()
    schema = parser.parse_sources([("base.dmdx", mixin_text), ("user.dmd", model_text)])
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from schemashift.schema.models import (
    NO_IDENTITY,
    DatabaseSchema,
    FieldSchema,
    ForeignKeySchema,
    IndexKind,
    IndexSchema,
    MixinSchema,
    RelationshipType,
    TableSchema,
)
from schemashift.schema.names import contains_name, name_key, names_equal
from schemashift.schema.types import (
    MAX_LENGTH,
    TypeFamily,
    canonicalize_dsl_type,
    type_family,
)

logger = logging.getLogger(__name__)


class SchemaParseError(ValueError):
    """Fatal compile error with source context.

    Attributes:
        source: Name of the source unit (usually a file path).
        line_number: 1-based line number, or None if not line-specific.
        line: The offending line text, stripped.
    """

    def __init__(
        self,
        message: str,
        source: str = "<string>",
        line_number: int | None = None,
        line: str | None = None,
    ) -> None:
        self.message = message
        self.source = source
        self.line_number = line_number
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        location = self.source if self.line_number is None else f"{self.source}:{self.line_number}"
        text = f"{location}: {self.message}"
        if self.line:
            text += f"\n    {self.line}"
        return text


# ------------------------------------------------------------------
# Line grammar
# ------------------------------------------------------------------

_HEADER_RE = re.compile(r"^(?P<kind>model|mixin|extends)\b\s*(?P<rest>.*)$")

_MODEL_HEADER_RE = re.compile(
    r"^(?P<name>[A-Za-z_]\w*)"
    r"(?:\s+(?!with\b)(?P<pk>[A-Za-z_]\w*(?:\([^)]*\))?))?"
    r"(?:\s+with\s+(?P<mixins>[A-Za-z_]\w*(?:\s*,\s*[A-Za-z_]\w*)*))?$"
)

_NAME_ONLY_RE = re.compile(r"^(?P<name>[A-Za-z_]\w*)$")

_RELATIONSHIP_RE = re.compile(
    r"^(?P<optional>!)?(?P<kind>models?)\s+"
    r"(?P<target>[A-Za-z_]\w*)(?P<nullable>\?)?"
    r"(?:\s+as\s+(?P<alias>[A-Za-z_]\w*)(?P<alias_nullable>\?)?)?$"
)

_INDEX_RE = re.compile(r"^index\s*\((?P<fields>[^)]*)\)(?P<attrs>(?:\s*@\w+)*)$")

_ATTRIBUTE_RE = re.compile(r"^@(?P<name>\w+)$")

_FIELD_RE = re.compile(
    r"^(?P<type>[A-Za-z_]\w*)"
    r"(?:\(\s*(?P<params>[^)]*)\))?"
    r"(?P<nullable>\?)?\s+"
    r"(?P<name>[A-Za-z_]\w*)"
    r"(?P<attrs>(?:\s+@\w+)*)$"
)

_ATTRS_RE = re.compile(r"@(\w+)")


@dataclass
class _Line:
    number: int
    text: str


@dataclass
class _Block:
    kind: str
    header: str
    source: str
    line_number: int
    body: list[_Line] = field(default_factory=list)

    def error(self, message: str, line: _Line | None = None) -> SchemaParseError:
        if line is None:
            return SchemaParseError(message, self.source, self.line_number, self.header_line)
        return SchemaParseError(message, self.source, line.number, line.text)

    @property
    def header_line(self) -> str:
        return f"{self.kind} {self.header}".strip()


def _strip_comments(text: str) -> list[_Line]:
    """Return non-blank lines with comments removed, keeping line numbers."""
    lines: list[_Line] = []
    in_block_comment = False

    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw
        cleaned = ""
        while line:
            if in_block_comment:
                end = line.find("*/")
                if end < 0:
                    line = ""
                    break
                line = line[end + 2:]
                in_block_comment = False
                continue
            start = line.find("/*")
            if start < 0:
                cleaned += line
                break
            cleaned += line[:start]
            line = line[start + 2:]
            in_block_comment = True

        for marker in ("//", "#"):
            pos = cleaned.find(marker)
            if pos >= 0:
                cleaned = cleaned[:pos]

        cleaned = cleaned.strip()
        if cleaned:
            lines.append(_Line(number, cleaned))

    return lines


def _split_blocks(text: str, source: str) -> list[_Block]:
    """Split source text into header + body blocks.

    Raises:
        SchemaParseError: For stray text, nested braces or an unterminated block.
    """
    blocks: list[_Block] = []
    current: _Block | None = None
    awaiting_brace = False

    for line in _strip_comments(text):
        if current is None:
            match = _HEADER_RE.match(line.text)
            if not match:
                raise SchemaParseError("Unexpected text outside a block", source, line.number, line.text)
            header = match.group("rest").strip()
            if header.replace(" ", "").endswith("{}"):
                # empty one-line block: "model Tag {}"
                header = header[: header.rindex("{")].strip()
                blocks.append(_Block(match.group("kind"), header, source, line.number))
                continue
            opened = header.endswith("{")
            if opened:
                header = header[:-1].strip()
            current = _Block(match.group("kind"), header, source, line.number)
            awaiting_brace = not opened
            continue

        if awaiting_brace:
            if line.text != "{":
                raise current.error("Expected '{' after block header")
            awaiting_brace = False
            continue

        if line.text == "}":
            blocks.append(current)
            current = None
            continue

        if "{" in line.text or "}" in line.text:
            raise current.error("Unexpected brace inside block", line)

        current.body.append(line)

    if current is not None:
        raise current.error(f"Unterminated {current.kind} block")

    return blocks


def _parse_params(params: str | None, block: _Block, line: _Line) -> tuple[int | None, int | None]:
    if params is None:
        return None, None

    parts = [p.strip() for p in params.split(",")]
    if len(parts) == 1 and parts[0].lower() == "max":
        return MAX_LENGTH, None
    if len(parts) in (1, 2) and all(p.isdigit() for p in parts):
        precision = int(parts[0])
        scale = int(parts[1]) if len(parts) == 2 else None
        return precision, scale
    raise block.error(f"Invalid precision '({params})'", line)


def _attribute_names(attrs: str | None) -> list[str]:
    return _ATTRS_RE.findall(attrs or "")


# ------------------------------------------------------------------
# Compiler
# ------------------------------------------------------------------


class SchemaParser:
    """Compiles DSL source units into one ``DatabaseSchema``.

    A parser instance accumulates into ``self.schema``; call ``parse()`` or
    ``parse_sources()`` as many times as needed.  Each call compiles its
    blocks in mixin, model, extends order.

    Args:
        schema: Existing schema to extend.  A new empty schema if omitted.
    """

    def __init__(self, schema: DatabaseSchema | None = None) -> None:
        self.schema = schema if schema is not None else DatabaseSchema()

    def parse(self, text: str, source: str = "<string>") -> DatabaseSchema:
        """Compile a single source unit."""
        return self.parse_sources([(source, text)])

    def parse_sources(self, sources: Iterable[tuple[str, str]]) -> DatabaseSchema:
        """Compile several ``(source_name, text)`` units as one batch.

        Raises:
            SchemaParseError: On the first fatal error.  Blocks committed
                before the error stay in ``self.schema``.
        """
        blocks: list[_Block] = []
        for source, text in sources:
            blocks.extend(_split_blocks(text, source))

        for kind in ("mixin", "model", "extends"):
            for block in blocks:
                if block.kind == kind:
                    self._compile_block(block)

        return self.schema

    def _compile_block(self, block: _Block) -> None:
        if block.kind == "mixin":
            self._compile_mixin(block)
        elif block.kind == "model":
            self._compile_model(block)
        else:
            self._compile_extends(block)

    # -- block kinds ----------------------------------------------------

    def _compile_mixin(self, block: _Block) -> None:
        match = _NAME_ONLY_RE.match(block.header)
        if not match:
            raise block.error("Malformed mixin header")

        name = match.group("name")
        if self.schema.get_mixin(name) is not None:
            raise block.error(f"Duplicate mixin '{name}'")

        mixin = MixinSchema(name=name)
        for line in block.body:
            if _INDEX_RE.match(line.text) or _ATTRIBUTE_RE.match(line.text):
                raise block.error("Only fields and relationships are allowed in a mixin", line)
            self._parse_member(mixin, block, line)

        self.schema.add_mixin(mixin)
        logger.debug(f"Compiled mixin {name} ({len(mixin.fields)} fields)")

    def _compile_model(self, block: _Block) -> None:
        match = _MODEL_HEADER_RE.match(block.header)
        if not match:
            raise block.error("Malformed model header")

        name = match.group("name")
        if self.schema.has_table(name):
            raise block.error(f"Duplicate table '{name}'")

        mixin_names = [m.strip() for m in (match.group("mixins") or "").split(",") if m.strip()]
        mixins: list[MixinSchema] = []
        for mixin_name in mixin_names:
            mixin = self.schema.get_mixin(mixin_name)
            if mixin is None:
                raise block.error(f"Unknown mixin '{mixin_name}'")
            mixins.append(mixin)

        table = TableSchema(name=name)
        table.fields.append(self._primary_key(name, match.group("pk"), block))

        self._parse_body(table, block)

        for mixin in mixins:
            self._apply_mixin(table, mixin, block)

        self._finish_table(table)
        self.schema.add_table(table)
        logger.debug(f"Compiled model {name} ({len(table.fields)} fields)")

    def _compile_extends(self, block: _Block) -> None:
        match = _NAME_ONLY_RE.match(block.header)
        if not match:
            raise block.error("Malformed extends header")

        base = self.schema.get_table(match.group("name"))
        if base is None:
            raise block.error(f"Cannot extend unknown table '{match.group('name')}'")

        staged = base.model_copy(deep=True)
        self._parse_body(staged, block)
        self._finish_table(staged)

        self.schema.tables[name_key(staged.name)] = staged
        logger.debug(f"Extended model {staged.name}")

    # -- members --------------------------------------------------------

    def _primary_key(self, table_name: str, pk_type: str | None, block: _Block) -> FieldSchema:
        code, precision, scale = "int", None, None
        if pk_type:
            pk_match = re.match(r"^(?P<type>\w+)(?:\((?P<params>[^)]*)\))?$", pk_type)
            code = pk_match.group("type")
            precision, scale = _parse_params(pk_match.group("params"), block, _Line(block.line_number, block.header_line))

        storage, precision, scale = self._canonicalize(code, precision, scale, block, None)
        return FieldSchema(
            name=f"{table_name}ID",
            type=storage,
            precision=precision,
            scale=scale,
            is_primary_key=True,
            is_identity=type_family(storage) is TypeFamily.INTEGER,
        )

    def _parse_body(self, table: TableSchema, block: _Block) -> None:
        for line in block.body:
            index_match = _INDEX_RE.match(line.text)
            if index_match:
                table.indexes.append(self._parse_index(index_match, block, line))
                continue

            attr_match = _ATTRIBUTE_RE.match(line.text)
            if attr_match:
                table.attributes[attr_match.group("name")] = True
                continue

            self._parse_member(table, block, line)

    def _parse_member(self, target: TableSchema | MixinSchema, block: _Block, line: _Line) -> None:
        """Parse a field or relationship line into *target*."""
        rel_match = _RELATIONSHIP_RE.match(line.text)
        if rel_match:
            field_schema, fk = self._parse_relationship(rel_match)
            self._add_field(target, field_schema, block, line)
            target.foreign_keys.append(fk)
            return

        field_match = _FIELD_RE.match(line.text)
        if not field_match:
            raise block.error("Malformed line", line)

        precision, scale = _parse_params(field_match.group("params"), block, line)
        storage, precision, scale = self._canonicalize(
            field_match.group("type"), precision, scale, block, line
        )
        field_schema = FieldSchema(
            name=field_match.group("name"),
            type=storage,
            is_nullable=field_match.group("nullable") is not None,
            precision=precision,
            scale=scale,
            attributes={attr: True for attr in _attribute_names(field_match.group("attrs"))},
        )
        self._add_field(target, field_schema, block, line)

    def _parse_relationship(self, match: re.Match) -> tuple[FieldSchema, ForeignKeySchema]:
        target = match.group("target")
        alias = match.group("alias") or ""
        is_nullable = bool(match.group("nullable") or match.group("alias_nullable"))
        relationship = (
            RelationshipType.ONE_TO_MANY if match.group("kind") == "models" else RelationshipType.ONE_TO_ONE
        )
        column = f"{alias}{target}ID"

        storage, _, _ = canonicalize_dsl_type("int", None, None)
        field_schema = FieldSchema(
            name=column,
            type=storage,
            is_nullable=is_nullable,
            is_optional=match.group("optional") is not None,
        )
        fk = ForeignKeySchema(
            column_name=column,
            target_table=target,
            target_column=f"{target}ID",
            relationship=relationship,
            is_nullable=is_nullable,
        )
        return field_schema, fk

    def _parse_index(self, match: re.Match, block: _Block, line: _Line) -> IndexSchema:
        fields = [f.strip() for f in match.group("fields").split(",")]
        if not all(fields):
            raise block.error("Index needs at least one field", line)

        attrs = {name_key(a) for a in _attribute_names(match.group("attrs"))}
        unknown = attrs - {"unique", "alternatekey", "ak", "clustered"}
        if unknown:
            raise block.error(f"Unknown index attribute '@{sorted(unknown)[0]}'", line)

        is_alternate_key = bool(attrs & {"alternatekey", "ak"})
        return IndexSchema(
            fields=fields,
            is_unique="unique" in attrs or is_alternate_key,
            is_alternate_key=is_alternate_key,
            kind=IndexKind.CLUSTERED if "clustered" in attrs else IndexKind.NONCLUSTERED,
        )

    def _canonicalize(
        self, code: str, precision: int | None, scale: int | None, block: _Block, line: _Line | None
    ) -> tuple[str, int | None, int | None]:
        try:
            return canonicalize_dsl_type(code, precision, scale)
        except ValueError as e:
            raise block.error(str(e), line) from e

    def _add_field(
        self, target: TableSchema | MixinSchema, field_schema: FieldSchema, block: _Block, line: _Line | None
    ) -> None:
        if contains_name((f.name for f in target.fields), field_schema.name):
            raise block.error(f"Duplicate field '{field_schema.name}' on '{target.name}'", line)
        target.fields.append(field_schema)

    # -- table assembly ---------------------------------------------------

    def _apply_mixin(self, table: TableSchema, mixin: MixinSchema, block: _Block) -> None:
        """Copy a mixin's fields and foreign keys into *table* (idempotent)."""
        if contains_name(table.mixins, mixin.name):
            return

        for template in mixin.fields:
            self._add_field(table, template.model_copy(deep=True), block, None)
        for fk in mixin.foreign_keys:
            table.foreign_keys.append(fk.model_copy(deep=True))
        table.mixins.append(mixin.name)

    def _finish_table(self, table: TableSchema) -> None:
        if table.has_attribute(NO_IDENTITY):
            for f in table.fields:
                if f.is_primary_key:
                    f.is_identity = False
        resolve_index_fields(table)


def resolve_index_fields(table: TableSchema) -> None:
    """Rewrite index tokens that name a foreign key's target table to its column.

    When several foreign keys target the same table, the last one wins.

    Example:
        # table has FK ClientStatusID -> ClientStatus
        # index (ClientStatus, Name) becomes index (ClientStatusID, Name)
    """
    for index in table.indexes:
        resolved: list[str] = []
        for token in index.fields:
            column = token
            for fk in table.foreign_keys:
                if names_equal(fk.target_table, token):
                    column = fk.column_name
            resolved.append(column)
        index.fields = resolved


def parse_schema(text: str, source: str = "<string>", schema: DatabaseSchema | None = None) -> DatabaseSchema:
    """Compile *text* into a schema (a new one unless *schema* is given)."""
    return SchemaParser(schema).parse(text, source)
