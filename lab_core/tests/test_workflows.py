# lab_core/tests/test_workflows.py

from __future__ import annotations

import pathlib

import pytest

from lab_core.workflows import (
    allowed_transitions,
    is_terminal,
    normalize_role,
    normalize_state,
    required_roles,
    validate_transition,
    validate_transition_with_role,
    workflow_definition,
)
from lab_core.workflows.sampling import (
    SamplingPlan,
    check_job_transition,
    plan_assignment_creation,
    plan_sampling_transition,
)


def test_no_workflows_py_shadowing():
    p = pathlib.Path(__file__).resolve().parents[1] / "workflows.py"
    assert not p.exists(), "lab_core/workflows.py would shadow the lab_core/workflows/ package."


def test_workflows_public_api_contract():
    import lab_core.workflows as w

    required = {
        "workflow_definition",
        "allowed_transitions",
        "allowed_next_states",
        "normalize_role",
        "required_roles",
        "validate_transition_with_role",
    }
    missing = sorted(required - set(dir(w)))
    assert not missing, f"Workflows API missing exports: {missing}"


# ---------------------------------------------------------
# Normalization
# ---------------------------------------------------------
@pytest.mark.parametrize(
    "raw, expected",
    [("In Progress", "in_progress"), ("in-progress", "in_progress"), ("  COMPLETED ", "completed"), (None, "")],
)
def test_normalize_state(raw, expected):
    assert normalize_state(raw) == expected


@pytest.mark.parametrize(
    "raw, expected",
    [("field officer", "FIELD_OFFICER"), ("Field-Officer", "FIELD_OFFICER"), ("superuser", "ADMIN"), ("customer", "CLIENT")],
)
def test_normalize_role(raw, expected):
    assert normalize_role(raw) == expected


# ---------------------------------------------------------
# Legality
# ---------------------------------------------------------
def test_same_state_is_legal():
    validate_transition("sampling", "completed", "completed")


@pytest.mark.parametrize(
    "kind, current, target",
    [
        ("sampling", "completed", "pending"),
        ("sampling", "cancelled", "in_progress"),
        ("job", "analysis", "sampling"),
        ("job", "completed", "reporting"),
        ("quotation", "rejected", "accepted"),
        ("quotation", "draft", "paid"),
    ],
)
def test_illegal_transitions_raise(kind, current, target):
    with pytest.raises(ValueError, match="Invalid"):
        validate_transition(kind, current, target)


def test_unknown_status_and_kind_raise():
    with pytest.raises(ValueError, match="Unknown sampling status"):
        validate_transition("sampling", "pending", "lost")
    with pytest.raises(ValueError, match="Unknown workflow kind"):
        validate_transition("invoice", "draft", "sent")


def test_terminal_states():
    assert is_terminal("sampling", "completed")
    assert is_terminal("sampling", "cancelled")
    assert is_terminal("job", "completed")
    assert not is_terminal("job", "analysis")
    assert is_terminal("quotation", "rejected")


# ---------------------------------------------------------
# Role gating
# ---------------------------------------------------------
def test_field_officer_cannot_cancel_but_operator_can():
    with pytest.raises(ValueError, match="FIELD_OFFICER"):
        validate_transition_with_role("sampling", "pending", "cancelled", "field_officer")
    validate_transition_with_role("sampling", "pending", "cancelled", "operator")


def test_client_answers_sent_quotations_only():
    validate_transition_with_role("quotation", "sent", "accepted", "client")
    with pytest.raises(ValueError):
        validate_transition_with_role("quotation", "draft", "sent", "client")


def test_required_roles_for_sampling_completion():
    assert required_roles("sampling", "in_progress", "completed") == ["ADMIN", "FIELD_OFFICER"]


def test_allowed_transitions_shapes():
    full = allowed_transitions("job")
    assert full["scheduled"] == ["analysis", "sampling"]
    assert full["completed"] == []

    assert allowed_transitions("sampling", "pending") == ["cancelled", "completed", "in_progress"]
    assert allowed_transitions("sampling", "pending", "FIELD_OFFICER") == ["completed", "in_progress"]
    assert allowed_transitions("sampling", "pending", "CLIENT") == []


def test_workflow_definition_is_json_friendly():
    d = workflow_definition("sampling")
    assert d["kind"] == "sampling"
    assert d["terminal_states"] == ["cancelled", "completed"]
    assert set(workflow_definition()) == {"quotation", "job", "sampling"}


# ---------------------------------------------------------
# Sampling -> job coupling
# ---------------------------------------------------------
@pytest.mark.parametrize(
    "assignment, job, target, expected",
    [
        ("pending", "sampling", "in_progress", ("in_progress", "sampling")),
        ("pending", "scheduled", "in_progress", ("in_progress", "sampling")),
        ("in_progress", "sampling", "completed", ("completed", "analysis")),
        ("pending", "sampling", "completed", ("completed", "analysis")),
        ("in_progress", "sampling", "pending", ("pending", "sampling")),
        ("pending", "sampling", "cancelled", ("cancelled", "sampling")),
    ],
)
def test_plan_sampling_transition(assignment, job, target, expected):
    assert plan_sampling_transition(assignment, job, target) == SamplingPlan(*expected)


def test_plan_same_state_is_noop():
    assert plan_sampling_transition("in_progress", "sampling", "in_progress") == ("in_progress", "sampling")


def test_plan_rejects_illegal_move():
    with pytest.raises(ValueError, match="completed -> pending"):
        plan_sampling_transition("completed", "analysis", "pending")


@pytest.mark.parametrize(
    "assignment, job, target",
    [
        ("pending", "analysis", "in_progress"),
        ("in_progress", "reporting", "completed"),
        ("in_progress", "completed", "completed"),
    ],
)
def test_plan_never_rewinds_a_job(assignment, job, target):
    with pytest.raises(ValueError, match="Invalid job status transition"):
        plan_sampling_transition(assignment, job, target)


@pytest.mark.parametrize(
    "job, target, sampling, allowed",
    [
        ("sampling", "analysis", "pending", False),
        ("sampling", "analysis", "in_progress", False),
        ("scheduled", "analysis", "pending", False),
        ("scheduled", "sampling", "pending", True),
        ("sampling", "analysis", "completed", True),
        ("sampling", "analysis", "cancelled", True),
        ("scheduled", "analysis", None, True),
    ],
)
def test_check_job_transition(job, target, sampling, allowed):
    if allowed:
        check_job_transition(job, target, sampling)
    else:
        with pytest.raises(ValueError, match="complete or cancel the sampling first"):
            check_job_transition(job, target, sampling)


def test_plan_assignment_creation():
    assert plan_assignment_creation("scheduled") == "sampling"
    assert plan_assignment_creation("sampling") == "sampling"
    with pytest.raises(ValueError, match="Cannot assign sampling"):
        plan_assignment_creation("analysis")
