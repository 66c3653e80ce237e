"""Tests for rich console output."""

from rich.console import Console

from schemashift.report import print_apply_result, print_plan
from schemashift.schema.executor import ApplyResult, SkippedStep, StepFailure
from schemashift.schema.models import (
    DatabaseSchema,
    FieldSchema,
    MigrationAction,
    MigrationPlan,
    MigrationStep,
)
from schemashift.schema.parser import parse_schema
from schemashift.schema.planner import plan_migration


def recording_console() -> Console:
    return Console(record=True, width=120)


def alter_step(is_widening: bool) -> MigrationStep:
    return MigrationStep(
        action=MigrationAction.ALTER_COLUMN,
        table_name="User",
        fields=[FieldSchema(name="Name", type="varchar", precision=50)],
        is_widening=is_widening,
    )


class TestPrintPlan:
    """Plan table, summary and extras."""

    def test_no_changes(self) -> None:
        out = recording_console()
        print_plan(MigrationPlan(), out)
        assert "no changes needed" in out.export_text()

    def test_steps_and_summary(self) -> None:
        target = parse_schema("model Team {}\nmodel User {\n    model Team\n}\n")
        out = recording_console()

        print_plan(plan_migration(target, DatabaseSchema()), out)

        text = out.export_text()
        assert "Migration Plan" in text
        assert "NEW TABLE" in text
        assert "TeamID -> Team.TeamID" in text
        assert "2 CreateTable, 1 AddForeignKey" in text

    def test_alter_direction(self) -> None:
        out = recording_console()
        print_plan(MigrationPlan(steps=[alter_step(True), alter_step(False)]), out)

        text = out.export_text()
        assert "ustring(50) Name (widen)" in text
        assert "ustring(50) Name (narrow)" in text

    def test_extras_reported(self) -> None:
        target = parse_schema("model User {}\n")
        actual = parse_schema("model User {}\nmodel Legacy {}\n")
        out = recording_console()

        print_plan(plan_migration(target, actual), out)

        text = out.export_text()
        assert "no changes needed" in text
        assert "Extra tables (1)" in text
        assert "Legacy" in text


class TestPrintApplyResult:
    """Apply summaries."""

    def test_success(self) -> None:
        out = recording_console()
        print_apply_result(ApplyResult(applied=[alter_step(True)]), out)
        assert "1 step(s) applied" in out.export_text()

    def test_dry_run_prefix(self) -> None:
        out = recording_console()
        print_apply_result(ApplyResult(dry_run=True), out)
        assert "Dry run: 0 step(s) applied" in out.export_text()

    def test_failures_and_skips(self) -> None:
        step = alter_step(False)
        result = ApplyResult(
            failures=[StepFailure(step, "relation does not exist")],
            skipped=[SkippedStep(step, "Longest value is 90 characters")],
        )
        out = recording_console()

        print_apply_result(result, out)

        text = out.export_text()
        assert "1 failed" in text
        assert "Skipped AlterColumn User (Name)" in text
        assert "Failed AlterColumn User (Name): relation does not exist" in text
