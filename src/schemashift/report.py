"""Rich console rendering of plans, extras and apply results.

Usage:
    from schemashift.report import print_plan, print_apply_result

    print_plan(plan)
    result = apply_plan(adapter, plan)
    print_apply_result(result)
"""

from rich.console import Console
from rich.table import Table

from schemashift.schema.executor import ApplyResult
from schemashift.schema.models import MigrationAction, MigrationPlan, MigrationStep
from schemashift.schema.types import render_dsl_type

console = Console()

_ACTION_STYLES = {
    MigrationAction.CREATE_TABLE: "[bold green]NEW TABLE[/bold green]",
    MigrationAction.ADD_COLUMN: "[green]ADD COLUMN[/green]",
    MigrationAction.ALTER_COLUMN: "[yellow]ALTER COLUMN[/yellow]",
    MigrationAction.ADD_FOREIGN_KEY: "[cyan]FOREIGN KEY[/cyan]",
    MigrationAction.ADD_INDEX: "[cyan]INDEX[/cyan]",
}


def _step_detail(step: MigrationStep) -> str:
    if step.foreign_key is not None:
        fk = step.foreign_key
        return f"{fk.column_name} -> {fk.target_table}.{fk.target_column}"
    if step.index is not None:
        unique = "unique " if step.index.is_unique else ""
        return f"{unique}({', '.join(step.index.fields)})"
    if step.action == MigrationAction.CREATE_TABLE:
        return f"{len(step.fields)} field(s)"

    details = []
    for f in step.fields:
        nullable = "?" if f.is_nullable else ""
        text = f"{render_dsl_type(f.type, f.precision, f.scale)}{nullable} {f.name}"
        if step.action == MigrationAction.ALTER_COLUMN:
            text += " (widen)" if step.is_widening else " [bold yellow](narrow)[/bold yellow]"
        details.append(text)
    return ", ".join(details)


def print_plan(plan: MigrationPlan, out: Console | None = None) -> None:
    """Print the plan's steps and its extras report."""
    out = out or console

    if not plan.has_changes:
        out.print()
        out.print("[bold green]v[/bold green] Database matches the model - no changes needed")
    else:
        out.print()
        steps_table = Table(title="Migration Plan", show_header=True, header_style="bold")
        steps_table.add_column("#", justify="right", style="dim")
        steps_table.add_column("Action")
        steps_table.add_column("Table")
        steps_table.add_column("Detail")

        for number, step in enumerate(plan.steps, start=1):
            steps_table.add_row(
                str(number),
                _ACTION_STYLES[step.action],
                step.table_name,
                _step_detail(step),
            )
        out.print(steps_table)

        summary = ", ".join(f"{count} {action.value}" for action, count in plan.step_counts().items())
        out.print(f"  {summary}", style="dim")

    if not plan.extras.is_empty:
        out.print()
        out.print(f"[yellow]{plan.extras.format_report()}[/yellow]")


def print_apply_result(result: ApplyResult, out: Console | None = None) -> None:
    """Print a summary of applied, skipped and failed steps."""
    out = out or console
    out.print()

    prefix = "Dry run: " if result.dry_run else ""
    if result.success:
        out.print(f"[bold green]v[/bold green] {prefix}{len(result.applied)} step(s) applied")
    else:
        out.print(
            f"[bold red]x[/bold red] {prefix}{len(result.applied)} step(s) applied, "
            f"{len(result.failures)} failed"
        )

    for skipped in result.skipped:
        out.print(f"  [yellow]Skipped[/yellow] {skipped.step.describe()}: {skipped.reason}")

    for failure in result.failures:
        out.print(f"  [red]Failed[/red] {failure.step.describe()}: {failure.error}")
