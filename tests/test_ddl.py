"""Tests for PostgreSQL DDL generation and identifier shortening."""

import hashlib
import re

import pytest

from schemashift.schema.ddl import (
    add_column_sql,
    add_foreign_key_sql,
    add_index_sql,
    alter_column_type_sql,
    build_identifier,
    create_table_sql,
    foreign_key_index_name,
    foreign_key_name,
    index_name,
    primary_key_name,
    quote_identifier,
    step_sql,
    synthesize_default,
)
from schemashift.schema.models import (
    DatabaseSchema,
    FieldSchema,
    ForeignKeySchema,
    IndexSchema,
    MigrationAction,
    MigrationStep,
)
from schemashift.schema.parser import parse_schema
from schemashift.schema.planner import plan_migration


class TestIdentifiers:
    """Constraint and index naming."""

    def test_templates(self) -> None:
        assert primary_key_name("User") == "PK_User"
        assert foreign_key_name("User", "ClientStatusID") == "FK_User_ClientStatusID"
        assert index_name("User", ["Email"]) == "IX_User_Email"
        assert index_name("User", ["TenantID", "Email"], is_alternate_key=True) == "AK_User_TenantID_Email"

    def test_foreign_key_index_distinct_from_declared_index(self) -> None:
        """A declared index on a foreign key column must not reuse the support index name."""
        assert foreign_key_index_name("User", "ClientStatusID") == "IX_User_ClientStatusID_FK"
        assert foreign_key_index_name("User", "ClientStatusID") != index_name("User", ["ClientStatusID"])

    def test_short_name_unchanged(self) -> None:
        assert build_identifier("IX_User_Email", 63) == "IX_User_Email"

    def test_exact_limit_unchanged(self) -> None:
        name = "X" * 63
        assert build_identifier(name, 63) == name

    def test_long_name_shortened(self) -> None:
        base = "IX_" + "VeryLongTableName" * 5 + "_Email"

        result = build_identifier(base, 63)

        assert len(result) == 63
        assert re.search(r"_[0-9a-f]{8}$", result)
        assert result.startswith(base[:54])

    def test_hash_is_sha256_prefix(self) -> None:
        base = "FK_" + "A" * 80
        expected = hashlib.sha256(base.encode("utf-8")).hexdigest()[:8]
        assert build_identifier(base, 63).endswith("_" + expected)

    def test_shared_prefix_distinct(self) -> None:
        """Two long names differing only past the cut still differ."""
        prefix = "IX_" + "SharedPrefix" * 6
        first = build_identifier(prefix + "_Alpha", 63)
        second = build_identifier(prefix + "_Beta", 63)

        assert first != second
        assert first[:54] == second[:54]

    def test_deterministic(self) -> None:
        base = "AK_" + "Z" * 100
        assert build_identifier(base, 40) == build_identifier(base, 40)

    def test_custom_limit(self) -> None:
        assert len(index_name("User", ["A" * 40], max_length=30)) == 30

    @pytest.mark.parametrize("max_length", [0, 5, 9])
    def test_limit_too_small(self, max_length: int) -> None:
        with pytest.raises(ValueError, match="max_length"):
            build_identifier("IX_" + "A" * 20, max_length)

    def test_quote_identifier_escapes(self) -> None:
        assert quote_identifier("User") == '"User"'
        assert quote_identifier('We"ird') == '"We""ird"'


class TestDefaults:
    """Backfill defaults for NOT NULL columns."""

    @pytest.mark.parametrize(
        ("name", "type_name", "expected"),
        [
            ("Age", "integer", "0"),
            ("OwnerID", "bigint", "1"),
            ("ClientStatusId", "integer", "1"),
            ("ownerid", "bigint", "1"),
            ("Total", "numeric", "0"),
            ("Ratio", "double precision", "0"),
            ("IsActive", "boolean", "false"),
            ("CreatedAt", "timestamp", "CURRENT_TIMESTAMP"),
            ("BornOn", "date", "CURRENT_DATE"),
            ("Token", "uuid", "gen_random_uuid()"),
            ("Name", "varchar", "''"),
            ("Blob", "bytea", "decode('', 'hex')"),
            ("Shape", "point", None),
        ],
    )
    def test_synthesize_default(self, name: str, type_name: str, expected: str | None) -> None:
        assert synthesize_default(FieldSchema(name=name, type=type_name)) == expected


class TestStatements:
    """Statement rendering per action."""

    def test_create_table(self) -> None:
        fields = [
            FieldSchema(name="UserID", type="integer", is_primary_key=True, is_identity=True),
            FieldSchema(name="Email", type="varchar", precision=100),
            FieldSchema(name="Nickname", type="varchar", precision=50, is_nullable=True),
        ]

        sql = create_table_sql("User", fields)

        assert sql == (
            'CREATE TABLE "User" (\n'
            '  "UserID" integer GENERATED BY DEFAULT AS IDENTITY NOT NULL,\n'
            '  "Email" varchar(100) NOT NULL,\n'
            '  "Nickname" varchar(50),\n'
            '  CONSTRAINT "PK_User" PRIMARY KEY ("UserID")\n'
            ")"
        )

    def test_create_table_max_length(self) -> None:
        fields = [FieldSchema(name="Bio", type="varchar", precision=-1, is_nullable=True)]
        assert '"Bio" varchar' in create_table_sql("Profile", fields)
        assert "varchar(" not in create_table_sql("Profile", fields)

    def test_add_nullable_column(self) -> None:
        field = FieldSchema(name="Nickname", type="varchar", precision=50, is_nullable=True)
        assert add_column_sql("User", field) == ['ALTER TABLE "User" ADD COLUMN "Nickname" varchar(50)']

    def test_add_not_null_column_backfills(self) -> None:
        field = FieldSchema(name="Age", type="integer")
        assert add_column_sql("User", field) == [
            'ALTER TABLE "User" ADD COLUMN "Age" integer DEFAULT 0 NOT NULL',
            'ALTER TABLE "User" ALTER COLUMN "Age" DROP DEFAULT',
        ]

    def test_add_mixed_case_id_column(self) -> None:
        field = FieldSchema(name="ClientStatusId", type="integer")
        assert add_column_sql("User", field)[0] == (
            'ALTER TABLE "User" ADD COLUMN "ClientStatusId" integer DEFAULT 1 NOT NULL'
        )

    def test_add_not_null_column_without_convention(self) -> None:
        field = FieldSchema(name="Shape", type="point")
        assert add_column_sql("Map", field) == ['ALTER TABLE "Map" ADD COLUMN "Shape" point NOT NULL']

    def test_alter_column_type(self) -> None:
        field = FieldSchema(name="Name", type="varchar", precision=50)
        assert alter_column_type_sql("User", field) == 'ALTER TABLE "User" ALTER COLUMN "Name" TYPE varchar(50)'

    def test_foreign_key_with_support_index(self) -> None:
        fk = ForeignKeySchema(column_name="ClientStatusID", target_table="ClientStatus", target_column="ClientStatusID")

        statements = add_foreign_key_sql("User", fk)

        assert statements == [
            'ALTER TABLE "User" ADD CONSTRAINT "FK_User_ClientStatusID" FOREIGN KEY ("ClientStatusID") '
            'REFERENCES "ClientStatus" ("ClientStatusID")',
            'CREATE INDEX IF NOT EXISTS "IX_User_ClientStatusID_FK" ON "User" ("ClientStatusID")',
        ]

    def test_unique_index(self) -> None:
        index = IndexSchema(fields=["ClientStatusID", "Email"], is_unique=True)
        assert add_index_sql("User", index) == (
            'CREATE UNIQUE INDEX "IX_User_ClientStatusID_Email" ON "User" ("ClientStatusID", "Email")'
        )

    def test_alternate_key_index(self) -> None:
        index = IndexSchema(fields=["Code"], is_unique=True, is_alternate_key=True)
        assert add_index_sql("Country", index) == 'CREATE UNIQUE INDEX "AK_Country_Code" ON "Country" ("Code")'


class TestStepSql:
    """Dispatch from plan steps to statements."""

    def test_relationship_index_uses_key_column(self) -> None:
        """An index declared on a relationship name targets its key column."""
        target = parse_schema(
            "model ClientStatus {}\n"
            "model User {\n    model ClientStatus\n    string(100) Email\n    index (ClientStatus, Email) @unique\n}\n"
        )
        plan = plan_migration(target, DatabaseSchema())

        statements = [sql for step in plan.steps for sql in step_sql(step)]

        assert any('("ClientStatusID", "Email")' in sql for sql in statements)
        assert not any('"ClientStatus", "Email"' in sql for sql in statements)

    def test_no_bind_parameter_syntax(self) -> None:
        """Statements go through SQLAlchemy text(), so no ':' may appear."""
        target = parse_schema(
            "model Team {\n    guid Token\n    datetime CreatedAt\n    bool IsActive\n}\n"
            "model User {\n    model Team\n    binary Avatar\n    decimal(10,2) Balance\n}\n"
        )
        plan = plan_migration(target, DatabaseSchema())

        for step in plan.steps:
            for sql in step_sql(step):
                assert ":" not in sql

    def test_missing_payload_raises(self) -> None:
        with pytest.raises(ValueError, match="no index"):
            step_sql(MigrationStep(action=MigrationAction.ADD_INDEX, table_name="User"))
        with pytest.raises(ValueError, match="no foreign key"):
            step_sql(MigrationStep(action=MigrationAction.ADD_FOREIGN_KEY, table_name="User"))

    def test_add_column_step(self) -> None:
        step = MigrationStep(
            action=MigrationAction.ADD_COLUMN,
            table_name="User",
            fields=[FieldSchema(name="IsVip", type="boolean")],
        )
        assert step_sql(step) == [
            'ALTER TABLE "User" ADD COLUMN "IsVip" boolean DEFAULT false NOT NULL',
            'ALTER TABLE "User" ALTER COLUMN "IsVip" DROP DEFAULT',
        ]
