# lab_core/workflows/sampling.py
"""
Coupling between sampling assignments and their job order.

A job order follows its sampling assignment: starting fieldwork puts the job
in "sampling", finishing it moves the job to "analysis". While an assignment
is open the job cannot be moved past "sampling" by hand, so the pair planned
here is always the mirrored one. The mapping lives here only; services apply
the planned pair atomically.
"""

from __future__ import annotations

from typing import NamedTuple, Optional

from lab_core.workflows import normalize_state, validate_transition


# Job status implied by a sampling status. Statuses not listed leave the job alone.
JOB_STATUS_FOR_SAMPLING = {
    "in_progress": "sampling",
    "completed": "analysis",
}

# Assignments still in the field
OPEN_SAMPLING_STATES = {"pending", "in_progress"}

# Job statuses reachable while fieldwork is open; also where new assignments may attach
ASSIGNABLE_JOB_STATES = {"scheduled", "sampling"}


class SamplingPlan(NamedTuple):
    assignment_status: str
    job_status: str


def plan_sampling_transition(assignment_status: str, job_status: str, target: str) -> SamplingPlan:
    """
    Return the (assignment_status, job_status) pair after moving the
    assignment to target. Raises ValueError for an illegal move, including
    one whose implied job status the job cannot reach.
    """
    validate_transition("sampling", assignment_status, target)

    cur = normalize_state(assignment_status)
    tgt = normalize_state(target)
    job = normalize_state(job_status)

    if cur == tgt:
        return SamplingPlan(cur, job)

    implied = JOB_STATUS_FOR_SAMPLING.get(tgt)
    if implied is None or implied == job:
        return SamplingPlan(tgt, job)

    validate_transition("job", job, implied)
    return SamplingPlan(tgt, implied)


def check_job_transition(job_status: str, target: str, assignment_status: Optional[str]) -> None:
    """
    Raises ValueError when a manual job move would run ahead of open fieldwork.

    Jobs without an assignment, or whose assignment is completed or
    cancelled, are not restricted here.
    """
    job = normalize_state(job_status)
    tgt = normalize_state(target)
    sampling = normalize_state(assignment_status)

    if job == tgt or sampling not in OPEN_SAMPLING_STATES:
        return
    if tgt not in ASSIGNABLE_JOB_STATES:
        raise ValueError(
            f"Job cannot move to '{tgt}' while its sampling assignment is {sampling}; "
            "complete or cancel the sampling first"
        )


def plan_assignment_creation(job_status: str) -> str:
    """
    Job status after a sampling assignment is created for it.
    """
    job = normalize_state(job_status)
    if job not in ASSIGNABLE_JOB_STATES:
        raise ValueError(
            f"Cannot assign sampling to a job in status '{job or '<empty>'}'; "
            f"allowed: {', '.join(sorted(ASSIGNABLE_JOB_STATES))}"
        )
    return "sampling"
