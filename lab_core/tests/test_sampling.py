# lab_core/tests/test_sampling.py

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from lab_core.models import JobOrder, SamplingAssignment, WorkflowTransition
from lab_core.services.jobs import update_job_status
from lab_core.services.sampling import (
    add_sampling_photos,
    create_sampling_assignment,
    update_sampling_status,
)


def _create(job, officer, user):
    return create_sampling_assignment(
        job_order=job,
        field_officer=officer,
        scheduled_date=timezone.now() + timedelta(days=2),
        location="Pabrik Tekstil, Bandung",
        user=user,
    )


@pytest.mark.django_db
def test_full_sampling_scenario(job_factory, operator, field_officer):
    job = job_factory(status="scheduled")

    assignment = _create(job, field_officer, operator)
    job.refresh_from_db()
    assert assignment.status == "pending"
    assert job.status == "sampling"

    assignment = update_sampling_status(assignment, "in_progress", field_officer)
    job.refresh_from_db()
    assert assignment.status == "in_progress"
    assert job.status == "sampling"

    assignment = update_sampling_status(assignment, "completed", field_officer, notes="3 titik diambil")
    job.refresh_from_db()
    assert assignment.status == "completed"
    assert assignment.actual_date is not None
    assert job.status == "analysis"
    assert "Sampling completed by budi@wahfalab.com - 3 titik diambil" in job.notes

    kinds = list(WorkflowTransition.objects.order_by("id").values_list("kind", "from_status", "to_status"))
    assert kinds == [
        ("job", "scheduled", "sampling"),
        ("sampling", "pending", "in_progress"),
        ("sampling", "in_progress", "completed"),
        ("job", "sampling", "analysis"),
    ]


@pytest.mark.django_db
def test_in_progress_puts_scheduled_job_into_sampling(assignment_factory, field_officer):
    assignment = assignment_factory(job_status="scheduled")

    update_sampling_status(assignment, "in_progress", field_officer)

    assert JobOrder.objects.get(pk=assignment.job_order_id).status == "sampling"


@pytest.mark.django_db
def test_illegal_transition_leaves_both_rows_unchanged(assignment_factory, admin_user):
    assignment = assignment_factory(status="completed", job_status="analysis")

    with pytest.raises(ValidationError) as exc:
        update_sampling_status(assignment, "pending", admin_user)

    assert "status" in exc.value.detail
    assert SamplingAssignment.objects.get(pk=assignment.pk).status == "completed"
    assert JobOrder.objects.get(pk=assignment.job_order_id).status == "analysis"
    assert not WorkflowTransition.objects.exists()


@pytest.mark.django_db
def test_non_owner_field_officer_is_forbidden(assignment_factory, other_officer):
    assignment = assignment_factory()

    with pytest.raises(PermissionDenied):
        update_sampling_status(assignment, "in_progress", other_officer)

    assert SamplingAssignment.objects.get(pk=assignment.pk).status == "pending"


@pytest.mark.django_db
def test_operator_may_only_cancel(assignment_factory, operator):
    assignment = assignment_factory()

    with pytest.raises(PermissionDenied):
        update_sampling_status(assignment, "in_progress", operator)

    assignment = update_sampling_status(assignment, "cancelled", operator)
    assert assignment.status == "cancelled"
    # cancelling leaves the job where it was
    assert JobOrder.objects.get(pk=assignment.job_order_id).status == "sampling"


@pytest.mark.django_db
def test_client_cannot_touch_sampling(assignment_factory, client_user):
    assignment = assignment_factory()
    with pytest.raises(PermissionDenied):
        update_sampling_status(assignment, "in_progress", client_user)


@pytest.mark.django_db
def test_same_status_is_noop(assignment_factory, field_officer):
    assignment = assignment_factory(status="in_progress")

    result = update_sampling_status(assignment, "in_progress", field_officer)

    assert result.status == "in_progress"
    assert not WorkflowTransition.objects.exists()


@pytest.mark.django_db
def test_open_sampling_holds_the_job_at_sampling(assignment_factory, operator, field_officer):
    assignment = assignment_factory()
    job = assignment.job_order

    with pytest.raises(ValidationError, match="sampling assignment is pending"):
        update_job_status(job, "analysis", operator)
    assert JobOrder.objects.get(pk=job.pk).status == "sampling"

    update_sampling_status(assignment, "in_progress", field_officer)
    with pytest.raises(ValidationError):
        update_job_status(job, "analysis", operator)

    assignment = update_sampling_status(assignment, "completed", field_officer)
    assert (assignment.status, JobOrder.objects.get(pk=job.pk).status) == ("completed", "analysis")


@pytest.mark.django_db
def test_cancelled_sampling_releases_the_job(assignment_factory, operator):
    assignment = assignment_factory()
    update_sampling_status(assignment, "cancelled", operator)

    job = update_job_status(assignment.job_order, "analysis", operator)

    assert job.status == "analysis"


@pytest.mark.django_db
def test_sampling_refuses_to_rewind_a_job(assignment_factory, admin_user):
    assignment = assignment_factory(status="in_progress", job_status="reporting")

    with pytest.raises(ValidationError, match="reporting -> analysis"):
        update_sampling_status(assignment, "completed", admin_user)

    assert SamplingAssignment.objects.get(pk=assignment.pk).status == "in_progress"
    assert JobOrder.objects.get(pk=assignment.job_order_id).status == "reporting"


# ---------------------------------------------------------
# Creation rules
# ---------------------------------------------------------
@pytest.mark.django_db
def test_assignee_must_be_field_officer(job_factory, operator, client_user):
    with pytest.raises(ValidationError) as exc:
        _create(job_factory(), client_user, operator)
    assert "field_officer" in exc.value.detail


@pytest.mark.django_db
def test_one_assignment_per_job(assignment_factory, operator, other_officer):
    assignment = assignment_factory()
    with pytest.raises(ValidationError) as exc:
        _create(assignment.job_order, other_officer, operator)
    assert "job_order" in exc.value.detail


@pytest.mark.django_db
def test_job_past_sampling_cannot_be_assigned(job_factory, operator, field_officer):
    with pytest.raises(ValidationError):
        _create(job_factory(status="analysis"), field_officer, operator)


@pytest.mark.django_db
def test_field_officer_cannot_create_assignments(job_factory, field_officer):
    with pytest.raises(PermissionDenied):
        _create(job_factory(), field_officer, field_officer)


# ---------------------------------------------------------
# Photos
# ---------------------------------------------------------
@pytest.mark.django_db
def test_owner_appends_photos(assignment_factory, field_officer):
    assignment = assignment_factory()

    add_sampling_photos(assignment, field_officer, photos=[{"url": "https://cdn.example.com/a.jpg"}])
    updated = add_sampling_photos(assignment, field_officer, photos=[{"url": "https://cdn.example.com/b.jpg", "name": "b"}])

    assert updated.photos == [
        {"url": "https://cdn.example.com/a.jpg", "name": "a.jpg"},
        {"url": "https://cdn.example.com/b.jpg", "name": "b"},
    ]


@pytest.mark.django_db
def test_photos_by_other_officer_are_forbidden(assignment_factory, other_officer):
    with pytest.raises(PermissionDenied):
        add_sampling_photos(assignment_factory(), other_officer, photos=[{"url": "x.jpg"}])
