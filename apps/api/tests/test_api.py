"""HTTP-level tests: auth, CSRF, tenant isolation, error mapping, internal cron."""

import uuid
from datetime import timedelta

import pytest

from portal.db.types import utcnow


INTERNAL_HEADERS = {"X-Internal-Secret": "test-internal-secret"}


def invoice_body(org_id, publish=False):
    return {
        "organization_id": str(org_id),
        "description": "Annual audit",
        "line_items": [
            {"description": "Audit fee", "quantity": 1, "unit_price": 250000, "amount": 250000}
        ],
        "due_date": (utcnow() + timedelta(days=30)).isoformat(),
        "publish": publish,
    }


# =============================================================================
# Auth & CSRF
# =============================================================================

@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_requires_session_cookie(client):
    response = await client.get("/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_invalid_session_rejected(client):
    client.cookies.set("portal_session", "not-a-jwt")
    response = await client.get("/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_me_returns_current_user(client_user_client, test_client):
    response = await client_user_client.get("/me")

    assert response.status_code == 200
    assert response.json()["email"] == test_client.email
    assert response.json()["role"] == "client"


@pytest.mark.asyncio
async def test_mutation_without_csrf_header_rejected(admin_client, test_org):
    response = await admin_client.post(
        "/invoices",
        json=invoice_body(test_org.id),
        headers={"X-Requested-With": ""},
    )
    assert response.status_code == 403
    assert "CSRF" in response.json()["detail"]


# =============================================================================
# Roles, tenancy & error mapping
# =============================================================================

@pytest.mark.asyncio
async def test_client_cannot_create_invoice(client_user_client, test_org):
    response = await client_user_client.post("/invoices", json=invoice_body(test_org.id))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_invoice_create_and_client_visibility(
    admin_client, client_user_client, test_org
):
    draft = await admin_client.post("/invoices", json=invoice_body(test_org.id))
    assert draft.status_code == 201
    draft_id = draft.json()["id"]
    assert draft.json()["status"] == "draft"
    assert draft.json()["balance"] == 250000

    hidden = await client_user_client.get(f"/invoices/{draft_id}")
    assert hidden.status_code == 404

    published = await admin_client.post(f"/invoices/{draft_id}/publish")
    assert published.status_code == 200

    listed = await client_user_client.get("/invoices")
    assert [inv["id"] for inv in listed.json()] == [draft_id]


@pytest.mark.asyncio
async def test_invalid_line_items_is_400(admin_client, test_org):
    body = invoice_body(test_org.id)
    body["line_items"][0]["amount"] = 1

    response = await admin_client.post("/invoices", json=body)

    assert response.status_code == 400
    assert "Amount mismatch" in response.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_task_is_404(admin_client):
    response = await admin_client.get(f"/tasks/{uuid.uuid4()}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_other_org_task_is_403(admin_client, client_user_client, other_org):
    created = await admin_client.post(
        "/tasks", json={"organization_id": str(other_org.id), "title": "Private"}
    )
    assert created.status_code == 201

    response = await client_user_client.get(f"/tasks/{created.json()['id']}")
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_client_completes_task_and_comments(admin_client, client_user_client, test_org):
    created = await admin_client.post(
        "/tasks", json={"organization_id": str(test_org.id), "title": "Sign engagement letter"}
    )
    task_id = created.json()["id"]

    done = await client_user_client.post(f"/tasks/{task_id}/status", json={"status": "completed"})
    assert done.status_code == 200
    assert done.json()["completed_at"] is not None

    comment = await client_user_client.post(
        f"/tasks/{task_id}/comments", json={"content": "Signed and uploaded"}
    )
    assert comment.status_code == 201

    thread = await admin_client.get(f"/tasks/{task_id}/comments")
    assert [c["content"] for c in thread.json()] == ["Signed and uploaded"]


# =============================================================================
# Email preferences
# =============================================================================

@pytest.mark.asyncio
async def test_email_preferences_camel_case_round_trip(client_user_client):
    initial = await client_user_client.get("/me/email-preferences")
    assert initial.json()["documentRequests"] is True

    updated = await client_user_client.patch(
        "/me/email-preferences", json={"taskComments": False}
    )
    assert updated.status_code == 200
    assert updated.json()["taskComments"] is False
    assert updated.json()["invoices"] is True


@pytest.mark.asyncio
async def test_email_preferences_unknown_key_rejected(client_user_client):
    response = await client_user_client.patch("/me/email-preferences", json={"newsletter": False})
    assert response.status_code == 422


# =============================================================================
# Internal scheduled endpoints
# =============================================================================

@pytest.mark.asyncio
async def test_internal_requires_secret(client):
    missing = await client.post("/internal/scheduled/invoice-reminders")
    wrong = await client.post(
        "/internal/scheduled/invoice-reminders", headers={"X-Internal-Secret": "nope"}
    )

    assert missing.status_code == 403
    assert wrong.status_code == 403


@pytest.mark.asyncio
async def test_internal_runs_job(client):
    response = await client.post("/internal/scheduled/invoice-reminders", headers=INTERNAL_HEADERS)

    assert response.status_code == 200
    assert response.json() == {
        "job": "invoice-reminders",
        "processed": 0,
        "reminders_sent": 0,
        "emails_sent": 0,
        "errors": [],
    }


@pytest.mark.asyncio
async def test_internal_unknown_job_404(client):
    response = await client.post("/internal/scheduled/payroll", headers=INTERNAL_HEADERS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_internal_lists_schedule(client):
    response = await client.get("/internal/scheduled", headers=INTERNAL_HEADERS)

    assert response.status_code == 200
    assert "recurring-tasks" in {job["name"] for job in response.json()}
