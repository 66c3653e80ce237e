"""Tests for the DSL compiler.

Covers headers, field/relationship/index/attribute lines, mixins, extends
blocks, compile order, index field resolution and fatal parse errors.
"""

import textwrap

import pytest

from schemashift.schema.models import IndexKind, RelationshipType
from schemashift.schema.parser import SchemaParseError, SchemaParser, parse_schema
from schemashift.schema.types import MAX_LENGTH


def dsl(text: str) -> str:
    return textwrap.dedent(text)


class TestModelBlocks:
    """Basic model compilation."""

    def test_generated_primary_key(self) -> None:
        """Every model gets an identity {Name}ID integer key."""
        schema = parse_schema(dsl("""\
            model User {
                string(100) Email
            }
        """))

        table = schema.get_table("User")
        pk = table.primary_key
        assert pk.name == "UserID"
        assert pk.type == "integer"
        assert pk.is_identity is True
        assert pk.is_nullable is False
        assert [f.name for f in table.fields] == ["UserID", "Email"]

    def test_field_types_are_canonical(self) -> None:
        schema = parse_schema(dsl("""\
            model Invoice {
                string(100) Number
                decimal(10,2)? Total
                money Fee
                text Notes
                bool IsPaid
                datetime IssuedAt
            }
        """))

        table = schema.get_table("Invoice")
        number = table.get_field("Number")
        assert (number.type, number.precision, number.scale) == ("varchar", 100, None)
        total = table.get_field("Total")
        assert (total.type, total.precision, total.scale, total.is_nullable) == ("numeric", 10, 2, True)
        fee = table.get_field("Fee")
        assert (fee.type, fee.precision, fee.scale) == ("numeric", 19, 4)
        assert table.get_field("Notes").precision == MAX_LENGTH
        assert table.get_field("IsPaid").type == "boolean"
        assert table.get_field("IssuedAt").type == "timestamp"

    def test_max_precision(self) -> None:
        schema = parse_schema("model Doc {\n    ustring(max) Body\n}\n")
        assert schema.get_table("Doc").get_field("Body").precision == MAX_LENGTH

    def test_brace_on_next_line(self) -> None:
        schema = parse_schema(dsl("""\
            model User
            {
                string Email
            }
        """))
        assert schema.get_table("User").get_field("Email").precision == 255

    def test_empty_one_line_block(self) -> None:
        schema = parse_schema("model Tag {}\n")
        assert [f.name for f in schema.get_table("Tag").fields] == ["TagID"]

    def test_explicit_guid_key_is_not_identity(self) -> None:
        schema = parse_schema("model Token guid {\n}\n")
        pk = schema.get_table("Token").primary_key
        assert pk.type == "uuid"
        assert pk.is_identity is False

    def test_no_identity_attribute(self) -> None:
        schema = parse_schema(dsl("""\
            model Country {
                achar(2) Code
                @NoIdentity
            }
        """))
        table = schema.get_table("Country")
        assert table.primary_key.is_identity is False
        assert table.attributes == {"NoIdentity": True}

    def test_field_attributes(self) -> None:
        schema = parse_schema("model User {\n    string(50) Name @ReduceSize @AllowDataLoss\n}\n")
        name = schema.get_table("User").get_field("Name")
        assert name.has_attribute("reducesize")
        assert name.has_attribute("AllowDataLoss")

    def test_unknown_type_passes_through(self) -> None:
        schema = parse_schema("model Place {\n    point Location\n}\n")
        assert schema.get_table("Place").get_field("Location").type == "point"

    def test_comments_ignored(self) -> None:
        schema = parse_schema(dsl("""\
            // leading comment
            # another comment
            /* block comment
               model Ghost {
               } */
            model User {  // trailing
                string Email  # why not
                /* inline */ int Age
            }
        """))
        assert not schema.has_table("Ghost")
        assert [f.name for f in schema.get_table("User").fields] == ["UserID", "Email", "Age"]

    def test_multiple_blocks_in_one_source(self) -> None:
        schema = parse_schema("model A {\n}\nmodel B {\n}\n")
        assert schema.has_table("a") and schema.has_table("b")


class TestRelationships:
    """Relationship lines produce a field and a foreign key."""

    def test_model_relationship(self) -> None:
        schema = parse_schema("model User {\n    model ClientStatus\n}\n")
        table = schema.get_table("User")

        field = table.get_field("ClientStatusID")
        assert field.type == "integer"
        assert field.is_nullable is False
        assert field.is_optional is False

        fk = table.foreign_keys[0]
        assert fk.column_name == "ClientStatusID"
        assert fk.target_table == "ClientStatus"
        assert fk.target_column == "ClientStatusID"
        assert fk.relationship is RelationshipType.ONE_TO_ONE

    def test_models_alias_nullable_optional(self) -> None:
        schema = parse_schema("model Account {\n    !models Role? as Primary\n}\n")
        table = schema.get_table("Account")

        field = table.get_field("PrimaryRoleID")
        assert field.is_nullable is True
        assert field.is_optional is True

        fk = table.foreign_keys[0]
        assert fk.target_table == "Role"
        assert fk.target_column == "RoleID"
        assert fk.relationship is RelationshipType.ONE_TO_MANY
        assert fk.is_nullable is True

    def test_optional_marker_does_not_change_nullability(self) -> None:
        schema = parse_schema("model Account {\n    !model Owner\n}\n")
        field = schema.get_table("Account").get_field("OwnerID")
        assert field.is_optional is True
        assert field.is_nullable is False


class TestIndexes:
    """Index declarations and field resolution."""

    def test_index_resolves_to_foreign_key_column(self) -> None:
        schema = parse_schema(dsl("""\
            model User {
                string Email
                model ClientStatus
                index (ClientStatus, Email) @unique
            }
        """))
        index = schema.get_table("User").indexes[0]
        assert index.fields == ["ClientStatusID", "Email"]
        assert index.is_unique is True

    def test_resolution_is_case_insensitive(self) -> None:
        schema = parse_schema("model User {\n    model ClientStatus\n    index (clientstatus)\n}\n")
        assert schema.get_table("User").indexes[0].fields == ["ClientStatusID"]

    def test_last_foreign_key_wins(self) -> None:
        schema = parse_schema(dsl("""\
            model Ticket {
                model User
                model User as Assignee
                index (User)
            }
        """))
        assert schema.get_table("Ticket").indexes[0].fields == ["AssigneeUserID"]

    def test_unmatched_tokens_pass_through(self) -> None:
        schema = parse_schema("model User {\n    string Email\n    index (Email)\n}\n")
        assert schema.get_table("User").indexes[0].fields == ["Email"]

    def test_alternate_key_and_clustered(self) -> None:
        schema = parse_schema("model User {\n    string Email\n    index (Email) @ak @clustered\n}\n")
        index = schema.get_table("User").indexes[0]
        assert index.is_alternate_key is True
        assert index.is_unique is True
        assert index.kind is IndexKind.CLUSTERED

    def test_unknown_index_attribute(self) -> None:
        with pytest.raises(SchemaParseError, match="Unknown index attribute"):
            parse_schema("model User {\n    index (Email) @sparse\n}\n")


MIXINS = dsl("""\
    mixin Auditable {
        datetime CreatedAt
        datetime? UpdatedAt
    }

    mixin Owned {
        model User
    }
""")


class TestMixins:
    """Mixin expansion by value copy."""

    def test_mixin_fields_and_keys_copied(self) -> None:
        schema = parse_schema(MIXINS + "model Doc with Auditable, Owned {\n    string Title\n}\n")
        table = schema.get_table("Doc")

        assert [f.name for f in table.fields] == ["DocID", "Title", "CreatedAt", "UpdatedAt", "UserID"]
        assert table.mixins == ["Auditable", "Owned"]
        assert table.foreign_keys[0].target_table == "User"

    def test_mixin_application_is_idempotent(self) -> None:
        once = parse_schema(MIXINS + "model Doc with Auditable {}\n")
        twice = parse_schema(MIXINS + "model Doc with Auditable, auditable {}\n")

        assert [f.name for f in twice.get_table("Doc").fields] == [
            f.name for f in once.get_table("Doc").fields
        ]
        assert twice.get_table("Doc").mixins == ["Auditable"]

    def test_mixin_fields_are_not_shared(self) -> None:
        """Mutating one table's copy never affects another table or the mixin."""
        schema = parse_schema(MIXINS + "model A with Auditable {}\nmodel B with Auditable {}\n")

        schema.get_table("A").get_field("CreatedAt").is_nullable = True

        assert schema.get_table("B").get_field("CreatedAt").is_nullable is False
        assert schema.get_mixin("Auditable").fields[0].is_nullable is False

    def test_mixin_declared_after_model(self) -> None:
        """Mixins compile first regardless of source order."""
        schema = parse_schema("model Doc with Auditable {}\n" + MIXINS)
        assert schema.get_table("Doc").has_field("CreatedAt")

    def test_unknown_mixin_is_fatal(self) -> None:
        with pytest.raises(SchemaParseError, match="Unknown mixin 'Missing'"):
            parse_schema("model Doc with Missing {}\n")

    def test_mixin_field_collision_is_fatal(self) -> None:
        with pytest.raises(SchemaParseError, match="Duplicate field 'CreatedAt'"):
            parse_schema(MIXINS + "model Doc with Auditable {\n    datetime CreatedAt\n}\n")

    def test_index_not_allowed_in_mixin(self) -> None:
        with pytest.raises(SchemaParseError):
            parse_schema("mixin M {\n    index (A)\n}\n")


class TestExtends:
    """Extension blocks add to an existing table."""

    BASE = "model User {\n    string Email\n}\n"

    def test_extends_adds_fields_and_indexes(self) -> None:
        schema = parse_schema(self.BASE + "extends User {\n    bool IsAdmin\n    index (Email) @unique\n}\n")
        table = schema.get_table("User")
        assert [f.name for f in table.fields] == ["UserID", "Email", "IsAdmin"]
        assert table.indexes[0].fields == ["Email"]

    def test_extends_before_base_in_source(self) -> None:
        schema = parse_schema("extends User {\n    bool IsAdmin\n}\n" + self.BASE)
        assert schema.get_table("User").has_field("IsAdmin")

    def test_extends_resolves_index_against_new_keys(self) -> None:
        schema = parse_schema(self.BASE + "extends User {\n    model Team\n    index (Team)\n}\n")
        assert schema.get_table("User").indexes[0].fields == ["TeamID"]

    def test_extends_unknown_base_is_fatal(self) -> None:
        with pytest.raises(SchemaParseError, match="unknown table 'Ghost'"):
            parse_schema("extends Ghost {\n    bool Flag\n}\n")

    def test_extension_collision_is_fatal(self) -> None:
        with pytest.raises(SchemaParseError, match="Duplicate field 'email'"):
            parse_schema(self.BASE + "extends User {\n    string email\n}\n")

    def test_failed_extension_leaves_base_untouched(self) -> None:
        parser = SchemaParser()
        parser.parse(self.BASE)

        with pytest.raises(SchemaParseError):
            parser.parse("extends User {\n    bool IsAdmin\n    string Email\n}\n")

        assert not parser.schema.get_table("User").has_field("IsAdmin")


class TestParseErrors:
    """Fatal errors carry source context and never leave partial tables."""

    def test_error_context(self) -> None:
        text = "model User {\n    string Email\n    string(abc) Name\n}\n"
        with pytest.raises(SchemaParseError) as exc_info:
            parse_schema(text, source="user.dmd")

        error = exc_info.value
        assert error.source == "user.dmd"
        assert error.line_number == 3
        assert error.line == "string(abc) Name"
        assert "user.dmd:3" in str(error)
        assert isinstance(error, ValueError)

    def test_malformed_line(self) -> None:
        with pytest.raises(SchemaParseError, match="Malformed line"):
            parse_schema("model User {\n    string\n}\n")

    def test_unterminated_block(self) -> None:
        with pytest.raises(SchemaParseError, match="Unterminated model block"):
            parse_schema("model User {\n    string Email\n")

    def test_stray_text(self) -> None:
        with pytest.raises(SchemaParseError, match="outside a block"):
            parse_schema("string Email\n")

    def test_stray_closing_brace(self) -> None:
        with pytest.raises(SchemaParseError):
            parse_schema("model A {\n}\n}\n")

    def test_malformed_header(self) -> None:
        with pytest.raises(SchemaParseError, match="Malformed model header"):
            parse_schema("model User extra words {\n}\n")

    def test_duplicate_table_case_insensitive(self) -> None:
        with pytest.raises(SchemaParseError, match="Duplicate table 'USER'"):
            parse_schema("model User {}\nmodel USER {}\n")

    def test_duplicate_mixin(self) -> None:
        with pytest.raises(SchemaParseError, match="Duplicate mixin"):
            parse_schema("mixin M {\n}\nmixin m {\n}\n")

    def test_duplicate_field(self) -> None:
        with pytest.raises(SchemaParseError, match="Duplicate field"):
            parse_schema("model User {\n    string Email\n    ustring(50) EMAIL\n}\n")

    def test_failed_block_leaves_no_partial_table(self) -> None:
        parser = SchemaParser()
        parser.parse("model A {}\n")

        with pytest.raises(SchemaParseError):
            parser.parse("model B {\n    string Name\n    string(x) Bad\n}\n")

        assert parser.schema.has_table("A")
        assert not parser.schema.has_table("B")
