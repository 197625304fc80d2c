# =============================================================================
# tests/test_cascade.py - Cascading Delete Runner Tests
# =============================================================================
# Tests for run_cascade(): step ordering, delete vs nullify, critical vs
# optional failures, missing tables and auth user cleanup.
#
# Run with: pytest tests/test_cascade.py -v
# =============================================================================

import pytest

from app.exceptions import CascadeStepError
from core.cascade import CascadePlan, CascadeStep, StepAction, StepStatus, run_cascade


def _plan(*steps, auth_user_key=None):
    return CascadePlan(name="test_plan", steps=list(steps), auth_user_key=auth_user_key)


class TestRunCascade:
    """Tests for run_cascade()."""

    def test_deletes_matching_rows(self, db):
        """DELETE steps remove only the rows matching the context value."""
        # Arrange
        db.seed("trips", {"id": "t1", "user_id": "u1"}, {"id": "t2", "user_id": "u2"})
        plan = _plan(CascadeStep("trips", "user_id", "user_id"))

        # Act
        summary = run_cascade(plan, {"user_id": "u1"})

        # Assert
        assert [t["id"] for t in db.rows("trips")] == ["t2"]
        assert summary.count("trips") == 1
        assert summary.steps[0].status == StepStatus.DONE

    def test_nullify_keeps_rows(self, db):
        """NULLIFY steps clear the column but keep the row."""
        db.seed("trips", {"id": "t1", "driver_id": "d1"})
        plan = _plan(CascadeStep("trips", "driver_id", "driver_id", action=StepAction.NULLIFY))

        summary = run_cascade(plan, {"driver_id": "d1"})

        assert db.rows("trips") == [{"id": "t1", "driver_id": None}]
        assert summary.count("trips") == 1

    def test_list_values_use_in_filter(self, db):
        db.seed("invoices", {"id": "i1", "user_id": "a"}, {"id": "i2", "user_id": "b"},
                {"id": "i3", "user_id": "c"})
        plan = _plan(CascadeStep("invoices", "user_id", "ids"))

        run_cascade(plan, {"ids": ["a", "b"]})

        assert [r["id"] for r in db.rows("invoices")] == ["i3"]

    def test_extra_filters(self, db):
        """filters narrow a step, e.g. only profiles with role=client."""
        db.seed("profiles",
                {"id": "p1", "facility_id": "f1", "role": "client"},
                {"id": "p2", "facility_id": "f1", "role": "facility"})
        plan = _plan(CascadeStep("profiles", "facility_id", "facility_id",
                                 filters={"role": "client"}))

        run_cascade(plan, {"facility_id": "f1"})

        assert [r["id"] for r in db.rows("profiles")] == ["p2"]

    def test_empty_context_value_skips_step(self, db):
        """No IDs means nothing to match: the step is skipped, not run unfiltered."""
        db.seed("trips", {"id": "t1", "user_id": "u1"})
        plan = _plan(CascadeStep("trips", "user_id", "client_ids"))

        summary = run_cascade(plan, {"client_ids": []})

        assert len(db.rows("trips")) == 1
        assert summary.steps[0].status == StepStatus.SKIPPED

    def test_unkeyed_step_matches_everything(self, db):
        """value_key=None is a management reset over the whole table."""
        db.seed("facility_users", {"id": "a"}, {"id": "b"})
        db.seed("profiles", {"id": "p1", "facility_id": "f1"}, {"id": "p2", "facility_id": None})
        plan = _plan(
            CascadeStep("facility_users", "id", None),
            CascadeStep("profiles", "facility_id", None, action=StepAction.NULLIFY),
        )

        summary = run_cascade(plan)

        assert db.rows("facility_users") == []
        assert all(p["facility_id"] is None for p in db.rows("profiles"))
        assert summary.count("profiles") == 1

    def test_labels_are_summed(self, db):
        """Steps sharing a label report one combined count."""
        db.seed("trips", {"id": "t1", "user_id": "u1"}, {"id": "t2", "facility_id": "f1"})
        plan = _plan(
            CascadeStep("trips", "user_id", "user_id", label="trips"),
            CascadeStep("trips", "facility_id", "facility_id", label="trips"),
        )

        summary = run_cascade(plan, {"user_id": "u1", "facility_id": "f1"})

        assert summary.counts == {"trips": 2}


class TestCascadeFailures:
    """Tests for failing and missing steps."""

    def test_missing_table_is_skipped(self, db):
        """A table this deployment doesn't have can't hold dependent rows."""
        # Arrange
        db.missing_tables.add("facility_contracts")
        db.seed("facilities", {"id": "f1"})
        plan = _plan(
            CascadeStep("facility_contracts", "facility_id", "facility_id"),
            CascadeStep("facilities", "id", "facility_id", critical=True),
        )

        # Act
        summary = run_cascade(plan, {"facility_id": "f1"})

        # Assert
        assert summary.steps[0].status == StepStatus.SKIPPED
        assert db.rows("facilities") == []
        assert summary.warnings == []

    def test_missing_table_on_critical_step_aborts(self, db):
        """A critical step's table must exist; later steps don't run."""
        # Arrange
        db.missing_tables.add("trips")
        db.seed("facilities", {"id": "f1"})
        plan = _plan(
            CascadeStep("trips", "facility_id", "facility_id", critical=True),
            CascadeStep("facilities", "id", "facility_id", critical=True),
        )

        # Act
        with pytest.raises(CascadeStepError) as exc_info:
            run_cascade(plan, {"facility_id": "f1"})

        # Assert
        assert exc_info.value.details["step"] == "trips"
        assert exc_info.value.details["completed_steps"] == []
        assert db.rows("facilities") == [{"id": "f1"}]

    def test_missing_column_on_critical_step_aborts(self, db):
        db.missing_columns.add(("profiles", "facility_id"))
        plan = _plan(CascadeStep("profiles", "facility_id", "facility_id", critical=True))

        with pytest.raises(CascadeStepError):
            run_cascade(plan, {"facility_id": "f1"})

    def test_missing_column_is_skipped(self, db):
        db.missing_columns.add(("invoices", "email"))
        plan = _plan(CascadeStep("invoices", "email", "email"))

        summary = run_cascade(plan, {"email": "x@example.com"})

        assert summary.steps[0].status == StepStatus.SKIPPED

    def test_optional_failure_becomes_warning(self, db):
        """A non-critical failure is recorded and the plan carries on."""
        db.seed("facilities", {"id": "f1"})
        db.fail("facility_users", "delete", "permission denied")
        plan = _plan(
            CascadeStep("facility_users", "facility_id", "facility_id"),
            CascadeStep("facilities", "id", "facility_id", critical=True),
        )

        summary = run_cascade(plan, {"facility_id": "f1"})

        assert summary.steps[0].status == StepStatus.FAILED
        assert summary.warnings and "permission denied" in summary.warnings[0]
        assert db.rows("facilities") == []

    def test_critical_failure_aborts(self, db):
        """A critical failure stops the plan and reports completed steps."""
        # Arrange
        db.seed("trips", {"id": "t1", "user_id": "u1"})
        db.seed("profiles", {"id": "u1"})
        db.fail("invoices", "delete", "connection reset")
        plan = _plan(
            CascadeStep("trips", "user_id", "user_id", critical=True),
            CascadeStep("invoices", "user_id", "user_id", critical=True),
            CascadeStep("profiles", "id", "user_id", critical=True),
            auth_user_key="user_id",
        )

        # Act
        with pytest.raises(CascadeStepError) as exc_info:
            run_cascade(plan, {"user_id": "u1"})

        # Assert
        details = exc_info.value.details
        assert details["step"] == "invoices"
        assert details["completed_steps"] == ["trips"]
        assert exc_info.value.status_code == 500
        assert db.rows("profiles") == [{"id": "u1"}]   # later steps not run
        assert db.rows("trips") == []                   # earlier steps stay applied


class TestAuthCleanup:
    """Tests for the auth user deletion that closes a plan."""

    def test_auth_users_deleted_last(self, db):
        user_id = db.add_account("gone@example.com")
        plan = _plan(CascadeStep("profiles", "id", "user_id", critical=True),
                     auth_user_key="user_id")

        summary = run_cascade(plan, {"user_id": user_id})

        assert summary.auth_users_deleted == [user_id]
        assert user_id not in db.auth.admin.users

    def test_auth_failure_is_a_warning(self, db):
        """Orphaned auth users are cleaned up later; the delete still succeeds."""
        user_id = db.add_account("stuck@example.com")
        db.auth.admin.fail_delete.add(user_id)
        plan = _plan(CascadeStep("profiles", "id", "user_id", critical=True),
                     auth_user_key="user_id")

        summary = run_cascade(plan, {"user_id": user_id})

        assert summary.auth_users_deleted == []
        assert any(user_id in w for w in summary.warnings)
        assert db.rows("profiles") == []

    def test_to_dict(self, db):
        plan = _plan(CascadeStep("trips", "user_id", "user_id"))
        result = run_cascade(plan, {"user_id": "nobody"}).to_dict()

        assert result["operation"] == "test_plan"
        assert result["counts"] == {"trips": 0}
        assert result["steps"][0]["status"] == "done"
