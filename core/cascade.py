# =============================================================================
# core/cascade.py - Declared Cascading Deletes
# =============================================================================
# Deleting a facility, client or driver touches many tables. Instead of each
# service issuing its own ad hoc sequence of deletes, every operation declares
# a CascadePlan: an ordered list of steps, each saying
#   - which table and column to match
#   - whether matching rows are deleted or have columns set to NULL
#   - whether a failure aborts the whole operation (critical) or is logged
#     and skipped (non-critical)
#
# run_cascade() executes a plan against the service-role client and returns
# a CascadeSummary describing what happened at every step. Auth user deletion
# always runs last and is best-effort: an orphaned auth user can be swept up
# later by the orphan cleanup job.
#
# There is no transaction across steps. A critical failure leaves earlier
# steps applied and raises CascadeStepError listing what was completed.
#
# Usage:
#   plan = CascadePlan("delete_driver", [
#       CascadeStep("trips", "driver_id", "driver_id", action=StepAction.NULLIFY),
#       CascadeStep("profiles", "id", "driver_id", critical=True),
#   ], auth_user_key="driver_id")
#   summary = run_cascade(plan, {"driver_id": driver_id})
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from app.exceptions import CascadeStepError
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_missing_relation

logger = logging.getLogger(__name__)

NIL_UUID = "00000000-0000-0000-0000-000000000000"


# =============================================================================
# Plan Definition
# =============================================================================

class StepAction(str, Enum):
    """What a step does to the matched rows."""
    DELETE = "delete"
    NULLIFY = "nullify"


class StepStatus(str, Enum):
    """Outcome of one executed step."""
    DONE = "done"
    SKIPPED = "skipped"      # nothing to match, or optional table missing
    FAILED = "failed"        # non-critical failure, operation continued


@dataclass(frozen=True)
class CascadeStep:
    """
    One step of a cascade.

    Attributes:
        table: Table to act on
        column: Column matched against the context value
        value_key: Key in the run context holding the value (or list of values);
            None matches every row of the table (management resets)
        action: DELETE rows, or NULLIFY (update) them
        critical: Abort the operation if this step fails, including when its
            table or column is missing
        label: Name used in summaries and logs (defaults to the table)
        set_values: Columns to write for NULLIFY (defaults to {column: None})
        filters: Extra equality filters, e.g. {"role": "client"}
    """
    table: str
    column: str
    value_key: str | None
    action: StepAction = StepAction.DELETE
    critical: bool = False
    label: str | None = None
    set_values: dict[str, Any] | None = None
    filters: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.label or self.table


@dataclass(frozen=True)
class CascadePlan:
    """
    Ordered steps of one delete operation.

    auth_user_key names the context key holding the auth user ID(s) to
    delete after every table step has run.
    """
    name: str
    steps: list[CascadeStep]
    auth_user_key: str | None = None


# =============================================================================
# Results
# =============================================================================

@dataclass
class StepOutcome:
    """What one step did."""
    step: str
    table: str
    action: str
    status: StepStatus
    affected: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        result = {
            "step": self.step,
            "table": self.table,
            "action": self.action,
            "status": self.status.value,
            "affected": self.affected,
        }
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class CascadeSummary:
    """Result of running a CascadePlan."""
    plan: str
    steps: list[StepOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    auth_users_deleted: list[str] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        """Rows affected per step label (steps sharing a label are summed)."""
        totals: dict[str, int] = {}
        for outcome in self.steps:
            totals[outcome.step] = totals.get(outcome.step, 0) + outcome.affected
        return totals

    def count(self, step: str) -> int:
        return self.counts.get(step, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.plan,
            "counts": self.counts,
            "steps": [outcome.to_dict() for outcome in self.steps],
            "warnings": self.warnings,
            "auth_users_deleted": self.auth_users_deleted,
        }


# =============================================================================
# Runner
# =============================================================================

def _as_values(value: Any) -> list[str]:
    """Normalize a context value into a list of non-empty string IDs."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [str(v) for v in value if v is not None and v != ""]
    return [str(value)] if value != "" else []


def _execute_step(client, step: CascadeStep, values: list[str] | None) -> int:
    """
    Run one step against the database and return the number of affected rows.

    values=None matches every row: deletes filter on id <> nil UUID (PostgREST
    refuses unfiltered deletes), nullify steps only touch non-null rows.
    """
    table = client.table(step.table)

    if step.action == StepAction.DELETE:
        query = table.delete(count="exact")
    else:
        query = table.update(step.set_values or {step.column: None})

    if values is None:
        if step.action == StepAction.DELETE:
            query = query.neq("id", NIL_UUID)
        else:
            query = query.not_.is_(step.column, "null")
    elif len(values) == 1:
        query = query.eq(step.column, values[0])
    else:
        query = query.in_(step.column, values)

    for column, expected in step.filters.items():
        query = query.eq(column, expected)

    response = query.execute()
    count = getattr(response, "count", None)
    if count is not None:
        return count
    return len(response.data or [])


def run_cascade(plan: CascadePlan, context: dict[str, Any] | None = None) -> CascadeSummary:
    """
    Execute a cascade plan.

    Args:
        plan: The declared steps
        context: Values referenced by the steps' value_key (IDs, ID lists, emails)

    Returns:
        CascadeSummary with per-step outcomes, warnings and auth deletions

    Raises:
        CascadeStepError: If a critical step fails. Earlier steps stay applied.
    """
    context = context or {}
    client = SupabaseClient.get_client()
    summary = CascadeSummary(plan=plan.name)
    completed: list[str] = []

    logger.info(f"Cascade {plan.name}: starting ({len(plan.steps)} steps)")

    for step in plan.steps:
        if step.value_key is None:
            values = None
        else:
            values = _as_values(context.get(step.value_key))

        if values is not None and not values:
            summary.steps.append(StepOutcome(
                step=step.name, table=step.table, action=step.action.value,
                status=StepStatus.SKIPPED,
            ))
            continue

        try:
            affected = _execute_step(client, step, values)

        except Exception as e:
            # A table or column this deployment doesn't have can't hold dependent rows,
            # but a critical step names one that must exist
            if is_missing_relation(e) and not step.critical:
                logger.info(f"Cascade {plan.name}: {step.table}.{step.column} not available, skipping")
                summary.steps.append(StepOutcome(
                    step=step.name, table=step.table, action=step.action.value,
                    status=StepStatus.SKIPPED, error=str(e),
                ))
                continue

            if step.critical:
                logger.error(f"Cascade {plan.name}: critical step {step.name} failed: {e}")
                raise CascadeStepError(
                    plan=plan.name,
                    step=step.name,
                    error=str(e),
                    completed=completed,
                )

            logger.warning(f"Cascade {plan.name}: step {step.name} failed, continuing: {e}")
            summary.warnings.append(f"{step.name}: {e}")
            summary.steps.append(StepOutcome(
                step=step.name, table=step.table, action=step.action.value,
                status=StepStatus.FAILED, error=str(e),
            ))
            continue

        logger.debug(f"Cascade {plan.name}: {step.name} affected {affected} rows")
        completed.append(step.name)
        summary.steps.append(StepOutcome(
            step=step.name, table=step.table, action=step.action.value,
            status=StepStatus.DONE, affected=affected,
        ))

    if plan.auth_user_key:
        for user_id in _as_values(context.get(plan.auth_user_key)):
            try:
                SupabaseClient.delete_auth_user(user_id)
                summary.auth_users_deleted.append(user_id)
            except SupabaseClientError as e:
                logger.warning(f"Cascade {plan.name}: auth user {user_id} not deleted: {e}")
                summary.warnings.append(f"auth user {user_id}: {e.message}")

    logger.info(
        f"Cascade {plan.name}: finished, counts={summary.counts}, "
        f"warnings={len(summary.warnings)}"
    )
    return summary
