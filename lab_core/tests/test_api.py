# lab_core/tests/test_api.py

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone

from lab_core.models import (
    ApprovalRequest,
    AuditLog,
    JobOrder,
    Quotation,
    SamplingAssignment,
    TravelOrder,
    WorkflowTransition,
)


def _ids(resp):
    data = resp.json()
    rows = data["results"] if isinstance(data, dict) and "results" in data else data
    return {row["id"] for row in rows}


# ---------------------------------------------------------
# System / identity
# ---------------------------------------------------------
@pytest.mark.django_db
def test_health_is_public(api_client):
    resp = api_client.get("/lab/health/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.django_db
def test_whoami_reports_role(client_for, field_officer):
    resp = client_for(field_officer).get("/lab/whoami/")
    assert resp.status_code == 200
    assert resp.json()["role"] == "field_officer"
    assert resp.json()["full_name"] == "Budi Santoso"


@pytest.mark.django_db
def test_anonymous_requests_are_rejected(api_client):
    assert api_client.get("/lab/quotations/").status_code in (401, 403)
    assert api_client.post("/lab/workflows/sampling/1/transition/", {"status": "completed"}, format="json").status_code in (401, 403)


# ---------------------------------------------------------
# Quotations
# ---------------------------------------------------------
@pytest.mark.django_db
def test_operator_creates_quotation_with_server_totals(client_for, operator, client_user, service):
    payload = {
        "client": client_user.pk,
        "items": [{"service": service.pk, "qty": 2}],
        "transport": {"name": "Mobil", "price": "300000", "qty": 1},
        "discount_amount": "0",
        "use_tax": True,
        # ignored: totals are never taken from input
        "total_amount": "1",
    }

    resp = client_for(operator).post("/lab/quotations/", payload, format="json")

    assert resp.status_code == 201, resp.content
    body = resp.json()
    assert body["status"] == "draft"
    assert body["subtotal"] == "1800000.00"
    assert body["tax_amount"] == "198000.00"
    assert body["total_amount"] == "1998000.00"
    assert body["quotation_number"].startswith("INV/")


@pytest.mark.django_db
def test_clients_see_only_their_quotations(client_for, quotation_factory, client_user, other_client):
    mine = quotation_factory(status="sent")
    theirs = quotation_factory(status="sent", client=other_client)

    api = client_for(client_user)
    assert _ids(api.get("/lab/quotations/")) == {mine.pk}
    assert api.get(f"/lab/quotations/{theirs.pk}/").status_code == 404


@pytest.mark.django_db
def test_client_cannot_create_quotation(client_for, client_user, service):
    resp = client_for(client_user).post(
        "/lab/quotations/",
        {"client": client_user.pk, "items": [{"service": service.pk, "qty": 1}]},
        format="json",
    )
    assert resp.status_code == 403


@pytest.mark.django_db
def test_client_accepts_quotation_through_action(client_for, quotation_factory, client_user):
    quotation = quotation_factory(status="sent")

    resp = client_for(client_user).post(f"/lab/quotations/{quotation.pk}/transition/", {"status": "accepted"}, format="json")

    assert resp.status_code == 200, resp.content
    assert resp.json()["status"] == "accepted"
    assert Quotation.objects.get(pk=quotation.pk).status == "accepted"


@pytest.mark.django_db
def test_job_order_from_quotation_action(client_for, quotation_factory, operator):
    quotation = quotation_factory(status="accepted")

    resp = client_for(operator).post(f"/lab/quotations/{quotation.pk}/job-order/", {}, format="json")

    assert resp.status_code == 201, resp.content
    assert resp.json()["status"] == "scheduled"
    assert JobOrder.objects.filter(quotation=quotation).exists()


@pytest.mark.django_db
def test_operator_edits_through_approval_admin_directly(client_for, quotation_factory, operator, admin_user):
    quotation = quotation_factory(status="draft")

    assert client_for(operator).patch(f"/lab/quotations/{quotation.pk}/", {"notes": "x"}, format="json").status_code == 403

    resp = client_for(admin_user).patch(f"/lab/quotations/{quotation.pk}/", {"notes": "Revisi"}, format="json")
    assert resp.status_code == 200, resp.content
    assert resp.json()["notes"] == "Revisi"

    resp = client_for(admin_user).patch(f"/lab/quotations/{quotation.pk}/", {"perdiem_price": "abc"}, format="json")
    assert resp.status_code == 400
    assert "perdiem_price" in resp.json()["changes"]


@pytest.mark.django_db
def test_quotation_pdf_download(client_for, quotation_factory, client_user):
    quotation = quotation_factory(status="sent")
    resp = client_for(client_user).get(f"/lab/quotations/{quotation.pk}/pdf/")
    assert resp.status_code == 200
    assert resp["Content-Type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")


# ---------------------------------------------------------
# Sampling assignments
# ---------------------------------------------------------
@pytest.mark.django_db
def test_assignment_create_and_complete_over_api(client_for, job_factory, operator, field_officer):
    job = job_factory(status="scheduled")

    resp = client_for(operator).post(
        "/lab/sampling-assignments/",
        {
            "job_order": job.pk,
            "field_officer": field_officer.pk,
            "scheduled_date": (timezone.now() + timedelta(days=1)).isoformat(),
            "location": "Cikarang",
        },
        format="json",
    )
    assert resp.status_code == 201, resp.content
    assert resp.json()["status"] == "pending"
    assert resp.json()["job_status"] == "sampling"

    assignment_id = resp.json()["id"]
    resp = client_for(field_officer).post(
        f"/lab/sampling-assignments/{assignment_id}/status/", {"status": "completed"}, format="json"
    )
    assert resp.status_code == 200, resp.content
    assert resp.json()["status"] == "completed"
    assert JobOrder.objects.get(pk=job.pk).status == "analysis"


@pytest.mark.django_db
def test_non_owner_gets_403_not_404(client_for, assignment_factory, other_officer):
    assignment = assignment_factory()

    resp = client_for(other_officer).post(
        f"/lab/sampling-assignments/{assignment.pk}/status/", {"status": "in_progress"}, format="json"
    )

    assert resp.status_code == 403
    assert SamplingAssignment.objects.get(pk=assignment.pk).status == "pending"


@pytest.mark.django_db
def test_illegal_status_is_400(client_for, assignment_factory, field_officer):
    assignment = assignment_factory(status="completed", job_status="analysis")

    resp = client_for(field_officer).post(
        f"/lab/sampling-assignments/{assignment.pk}/status/", {"status": "pending"}, format="json"
    )

    assert resp.status_code == 400
    assert "status" in resp.json()


@pytest.mark.django_db
def test_field_officer_lists_own_assignments(client_for, assignment_factory, field_officer, other_officer):
    mine = assignment_factory()
    assignment_factory(officer=other_officer)

    assert _ids(client_for(field_officer).get("/lab/sampling-assignments/")) == {mine.pk}


@pytest.mark.django_db
def test_photos_action(client_for, assignment_factory, field_officer):
    assignment = assignment_factory()

    resp = client_for(field_officer).post(
        f"/lab/sampling-assignments/{assignment.pk}/photos/",
        {"photos": [{"url": "https://cdn.example.com/titik-1.jpg"}]},
        format="json",
    )

    assert resp.status_code == 200, resp.content
    assert resp.json()["photos"][0]["name"] == "titik-1.jpg"


# ---------------------------------------------------------
# Travel orders
# ---------------------------------------------------------
def _travel_payload(assignment):
    return {
        "assignment": assignment.pk,
        "departure_date": "2025-03-07",
        "return_date": "2025-03-08",
        "destination": "Cikarang",
        "purpose": "Sampling air limbah",
        "total_budget": "1250000",
    }


@pytest.mark.django_db
def test_travel_order_lifecycle(client_for, assignment_factory, operator, field_officer, other_officer):
    assignment = assignment_factory()
    api = client_for(operator)

    resp = api.post("/lab/travel-orders/", _travel_payload(assignment), format="json")
    assert resp.status_code == 201, resp.content
    travel_id = resp.json()["id"]
    assert resp.json()["document_number"].startswith("TO/")

    dup = api.post("/lab/travel-orders/", _travel_payload(assignment), format="json")
    assert dup.status_code == 400
    assert "assignment" in dup.json()

    # owner reads, other officers do not see it
    assert client_for(field_officer).get(f"/lab/travel-orders/{travel_id}/").status_code == 200
    assert client_for(other_officer).get(f"/lab/travel-orders/{travel_id}/").status_code == 404
    # field officers cannot write
    assert client_for(field_officer).patch(f"/lab/travel-orders/{travel_id}/", {"destination": "x"}, format="json").status_code == 403

    pdf = client_for(field_officer).get(f"/lab/travel-orders/{travel_id}/pdf/")
    assert pdf.status_code == 200
    assert pdf.content.startswith(b"%PDF")


@pytest.mark.django_db
def test_travel_order_assignment_is_immutable(client_for, assignment_factory, operator):
    api = client_for(operator)
    travel_id = api.post("/lab/travel-orders/", _travel_payload(assignment_factory()), format="json").json()["id"]
    other = assignment_factory()

    resp = api.patch(f"/lab/travel-orders/{travel_id}/", {"assignment": other.pk}, format="json")

    assert resp.status_code == 400
    assert "assignment" in resp.json()


@pytest.mark.django_db
def test_travel_order_dates_validated(client_for, assignment_factory, operator):
    payload = _travel_payload(assignment_factory())
    payload["return_date"] = "2025-03-01"

    resp = client_for(operator).post("/lab/travel-orders/", payload, format="json")

    assert resp.status_code == 400
    assert "return_date" in resp.json()


@pytest.mark.django_db
def test_render_action_queues_task(client_for, assignment_factory, operator):
    api = client_for(operator)
    travel_id = api.post("/lab/travel-orders/", _travel_payload(assignment_factory()), format="json").json()["id"]

    resp = api.post(f"/lab/travel-orders/{travel_id}/render/")

    assert resp.status_code == 202
    assert resp.json()["task_id"]
    # tasks run eagerly under the test settings
    assert TravelOrder.objects.get(pk=travel_id).pdf_url


# ---------------------------------------------------------
# Job orders
# ---------------------------------------------------------
@pytest.mark.django_db
def test_job_status_and_certificate(client_for, job_factory, operator):
    job = job_factory(status="analysis")
    api = client_for(operator)

    resp = api.post(f"/lab/job-orders/{job.pk}/status/", {"status": "reporting"}, format="json")
    assert resp.status_code == 200, resp.content
    assert resp.json()["status"] == "reporting"

    resp = api.post(f"/lab/job-orders/{job.pk}/certificate/", {"certificate_url": "https://files.example.com/c.pdf"}, format="json")
    assert resp.status_code == 200, resp.content
    assert resp.json()["status"] == "completed"
    assert resp.json()["certificate_url"] == "https://files.example.com/c.pdf"


@pytest.mark.django_db
def test_clients_see_only_their_jobs(client_for, job_factory, quotation_factory, client_user, other_client):
    mine = job_factory()
    job_factory(quotation=quotation_factory(client=other_client))

    assert _ids(client_for(client_user).get("/lab/job-orders/")) == {mine.pk}


# ---------------------------------------------------------
# Approvals / audit
# ---------------------------------------------------------
@pytest.mark.django_db
def test_approval_flow_over_api(client_for, quotation_factory, operator, admin_user):
    quotation = quotation_factory(status="draft")

    resp = client_for(operator).post(
        "/lab/approval-requests/",
        {"quotation": quotation.pk, "request_type": "delete", "reason": "Duplikat"},
        format="json",
    )
    assert resp.status_code == 201, resp.content
    req_id = resp.json()["id"]

    assert client_for(operator).post(f"/lab/approval-requests/{req_id}/approve/").status_code == 403

    resp = client_for(admin_user).post(f"/lab/approval-requests/{req_id}/approve/")
    assert resp.status_code == 200, resp.content
    assert resp.json()["status"] == "approved"
    assert not Quotation.objects.filter(pk=quotation.pk).exists()
    assert ApprovalRequest.objects.get(pk=req_id).quotation_number == quotation.quotation_number


@pytest.mark.django_db
def test_reject_requires_reason(client_for, quotation_factory, operator, admin_user):
    req = ApprovalRequest.objects.create(
        request_type="delete",
        quotation=quotation_factory(),
        requested_by=operator,
        reason="x",
    )
    api = client_for(admin_user)
    assert api.post(f"/lab/approval-requests/{req.pk}/reject/", {}, format="json").status_code == 400
    resp = api.post(f"/lab/approval-requests/{req.pk}/reject/", {"reason": "Tidak"}, format="json")
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"


@pytest.mark.django_db
def test_audit_logs_are_admin_only_and_attributed(client_for, quotation_factory, operator, admin_user):
    quotation = quotation_factory(status="draft")
    client_for(operator).post(f"/lab/quotations/{quotation.pk}/transition/", {"status": "sent"}, format="json")

    assert client_for(operator).get("/lab/audit-logs/").status_code == 403
    assert client_for(admin_user).get("/lab/audit-logs/").status_code == 200

    workflow_log = AuditLog.objects.filter(action__startswith="WORKFLOW", entity_id=str(quotation.pk)).first()
    assert workflow_log is not None
    assert workflow_log.user == operator


# ---------------------------------------------------------
# Workflow endpoints
# ---------------------------------------------------------
@pytest.mark.django_db
def test_workflow_endpoints(client_for, assignment_factory, field_officer):
    assignment = assignment_factory()
    api = client_for(field_officer)

    assert api.get("/lab/workflows/sampling/").json()["terminal_states"] == ["cancelled", "completed"]
    assert api.get("/lab/workflows/unknown/").status_code == 400

    allowed = api.get(f"/lab/workflows/sampling/{assignment.pk}/allowed/").json()
    assert allowed["current"] == "pending"
    assert allowed["allowed"] == ["completed", "in_progress"]

    resp = api.post(f"/lab/workflows/sampling/{assignment.pk}/transition/", {"to_status": "in_progress"}, format="json")
    assert resp.status_code == 200, resp.content
    assert resp.json()["current"] == "in_progress"

    history = api.get(f"/lab/workflows/sampling/{assignment.pk}/history/").json()["history"]
    assert [(h["from_status"], h["to_status"]) for h in history] == [("pending", "in_progress")]
    assert WorkflowTransition.objects.filter(kind="sampling").count() == 1


@pytest.mark.django_db
def test_terminal_state_locked_over_workflow_api(client_for, job_factory, admin_user):
    job = job_factory(status="completed")

    resp = client_for(admin_user).post(f"/lab/workflows/job/{job.pk}/transition/", {"to_status": "reporting"}, format="json")

    assert resp.status_code == 400
    assert "terminal" in str(resp.json()["status"]).lower()


# ---------------------------------------------------------
# Company profile / dashboard
# ---------------------------------------------------------
@pytest.mark.django_db
def test_company_profile_defaults_and_admin_update(client_for, admin_user, operator):
    assert client_for(operator).get("/lab/company-profile/").json()["company_name"] == "WahfaLab"
    assert client_for(operator).patch("/lab/company-profile/", {"phone": "1"}, format="json").status_code == 403

    resp = client_for(admin_user).patch("/lab/company-profile/", {"phone": "0251-777"}, format="json")
    assert resp.status_code == 200, resp.content
    assert client_for(operator).get("/lab/company-profile/").json()["phone"] == "0251-777"


@pytest.mark.django_db
def test_dashboard_per_role(client_for, assignment_factory, admin_user, field_officer, client_user):
    assignment_factory()

    staff = client_for(admin_user).get("/lab/dashboard/").json()
    assert staff["role"] == "admin"
    assert staff["sampling_assignments"] == {"pending": 1}
    assert staff["job_orders"] == {"sampling": 1}

    officer = client_for(field_officer).get("/lab/dashboard/").json()
    assert officer["sampling_assignments"] == {"pending": 1}
    assert len(officer["upcoming"]) == 1

    client = client_for(client_user).get("/lab/dashboard/").json()
    assert client["job_orders"] == {"sampling": 1}
