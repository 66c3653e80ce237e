"""Plan execution: apply a ``MigrationPlan`` through a ``DatabaseClient``.

Steps run in plan order, each in isolation: an exception from one step is
logged and recorded as a ``StepFailure`` and the run moves on.  Narrowing
alterations are gated by a live-data safety check; an unsafe narrowing without
a data-loss opt-in is skipped with a warning and recorded as a
``SkippedStep`` (not a failure).

Usage:
    from schemashift.schema.executor import apply_plan
    from schemashift.schema.planner import plan_migration

    plan = plan_migration(target, actual)
    result = apply_plan(adapter, plan)
    if not result.success:
        for failure in result.failures:
            print(failure.step.describe(), failure.error)
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from schemashift.schema.ddl import (
    DEFAULT_MAX_IDENTIFIER_LENGTH,
    alter_column_type_sql,
    step_sql,
)
from schemashift.schema.models import (
    ALLOW_DATA_LOSS,
    MigrationAction,
    MigrationPlan,
    MigrationStep,
)
from schemashift.schema.safety import check_narrowing, fixup_sql

if TYPE_CHECKING:
    from schemashift.adapters.base import DatabaseClient

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Result data classes
# ------------------------------------------------------------------


@dataclass
class StepFailure:
    """A step whose statements raised."""

    step: MigrationStep
    error: str


@dataclass
class SkippedStep:
    """A narrowing step not applied because it would lose data."""

    step: MigrationStep
    reason: str


@dataclass
class ApplyResult:
    """Outcome of applying a plan.

    Attributes:
        applied: Steps whose statements all succeeded.
        failures: Steps that raised, with the error message.
        skipped: Unsafe narrowing steps that were not applied.
        statements: Mutating SQL in execution order (recorded, not run, in dry-run mode).
        dry_run: True if no mutating statement was executed.
    """

    applied: list[MigrationStep] = field(default_factory=list)
    failures: list[StepFailure] = field(default_factory=list)
    skipped: list[SkippedStep] = field(default_factory=list)
    statements: list[str] = field(default_factory=list)
    dry_run: bool = False

    @property
    def success(self) -> bool:
        """True if no step failed.  Skipped steps do not count as failures."""
        return not self.failures


# ------------------------------------------------------------------
# Execution
# ------------------------------------------------------------------


class _StepRunner:
    """Runs the statements of one plan against one adapter."""

    def __init__(
        self,
        adapter: "DatabaseClient",
        result: ApplyResult,
        max_identifier_length: int,
        allow_data_loss: bool,
    ) -> None:
        self.adapter = adapter
        self.result = result
        self.max_identifier_length = max_identifier_length
        self.allow_data_loss = allow_data_loss

    def execute(self, sql: str) -> None:
        logger.debug(f"SQL: {sql}")
        self.result.statements.append(sql)
        if not self.result.dry_run:
            self.adapter.execute(sql)

    def run(self, step: MigrationStep) -> bool:
        """Apply *step*; return False if it was skipped as unsafe."""
        if step.action == MigrationAction.ALTER_COLUMN and not step.is_widening:
            return self._narrow(step)

        for sql in step_sql(step, self.max_identifier_length):
            self.execute(sql)
        return True

    def _narrow(self, step: MigrationStep) -> bool:
        for target in step.fields:
            check = check_narrowing(self.adapter, step.table_name, target)
            allowed = self.allow_data_loss or target.has_attribute(ALLOW_DATA_LOSS)

            if not check.is_safe and not allowed:
                logger.warning(
                    f"Skipping {step.describe()}: {check.message}. "
                    f"Mark the field @{ALLOW_DATA_LOSS} or pass allow_data_loss=True to truncate."
                )
                self.result.skipped.append(SkippedStep(step, check.message))
                return False

            if not check.is_safe:
                logger.warning(f"Data loss allowed for {step.table_name}.{target.name}: {check.message}")
                for sql in fixup_sql(step.table_name, target):
                    self.execute(sql)

            self.execute(alter_column_type_sql(step.table_name, target))
        return True


def apply_plan(
    adapter: "DatabaseClient",
    plan: MigrationPlan,
    *,
    max_identifier_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH,
    allow_data_loss: bool = False,
    dry_run: bool = False,
) -> ApplyResult:
    """Apply every step of *plan*, isolating failures per step.

    Args:
        adapter: Database client implementing ``execute`` and ``scalar``.
        plan: Plan from ``plan_migration()``.
        max_identifier_length: Limit for generated constraint/index names.
        allow_data_loss: Let unsafe narrowings truncate/round existing data
            for every field, not only those marked ``@AllowDataLoss``.
        dry_run: Record mutating statements instead of running them.  The
            read-only safety checks still run.

    Returns:
        ``ApplyResult`` listing applied, failed and skipped steps.

    Example:
        result = apply_plan(adapter, plan, dry_run=True)
        print("\\n".join(result.statements))
    """
    result = ApplyResult(dry_run=dry_run)

    if not plan.has_changes:
        logger.info("Nothing to apply")
        return result

    runner = _StepRunner(adapter, result, max_identifier_length, allow_data_loss)

    for number, step in enumerate(plan.steps, start=1):
        logger.info(f"[{number}/{len(plan.steps)}] {step.describe()}")
        try:
            if runner.run(step):
                result.applied.append(step)
        except Exception as e:
            logger.exception(f"Step failed: {step.describe()}: {e}")
            result.failures.append(StepFailure(step, str(e)))

    logger.info(
        f"Applied {len(result.applied)} step(s), "
        f"{len(result.failures)} failed, {len(result.skipped)} skipped"
    )
    return result


def render_plan_sql(
    plan: MigrationPlan, max_identifier_length: int = DEFAULT_MAX_IDENTIFIER_LENGTH
) -> list[str]:
    """Every statement *plan* would run, for previews.

    Narrowing steps are rendered as plain alterations without data-loss
    fixups, since those depend on live data.
    """
    statements: list[str] = []
    for step in plan.steps:
        statements.extend(step_sql(step, max_identifier_length))
    return statements
