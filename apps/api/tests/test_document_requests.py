"""Tests for document requests: pending -> uploaded -> reviewed | rejected."""

import pytest

from portal.core.org_access import OrganizationAccessError
from portal.db.enums import DocumentCategory, DocumentRequestStatus, EmailEvent, Role
from portal.db.models import Document, Job, Notification
from portal.services import document_request_service
from portal.utils.file_upload import build_storage_key


def ask(db, staff, org, title="EA forms 2025"):
    return document_request_service.create_request(
        db, staff, org.id, title=title, category=DocumentCategory.TAX_RETURN
    )


def fulfil(db, request, actor, storage, name="ea-form.pdf", size=4096):
    key = build_storage_key(request.organization_id, name)
    storage.add(key)
    return document_request_service.fulfil_request(
        db, request.id, actor, name=name, storage_key=key, size=size, mime_type="application/pdf"
    )


def queued_events(db):
    return [job.payload["event"] for job in db.query(Job).all()]


# =============================================================================
# Create
# =============================================================================

def test_request_notifies_every_active_member(db, test_staff, test_client, test_org, user_factory):
    colleague = user_factory(Role.CLIENT, organization=test_org)
    inactive = user_factory(Role.CLIENT, organization=test_org)
    inactive.is_active = False
    db.commit()

    request = ask(db, test_staff, test_org)

    assert request.status == DocumentRequestStatus.PENDING.value
    assert request.category == DocumentCategory.TAX_RETURN.value
    recipients = {n.recipient_id for n in db.query(Notification).all()}
    assert recipients == {test_client.id, colleague.id}
    assert queued_events(db) == [EmailEvent.DOCUMENT_REQUESTED.value] * 2


def test_clients_cannot_request(db, test_client, test_org):
    with pytest.raises(OrganizationAccessError):
        ask(db, test_client, test_org)


@pytest.mark.parametrize("title, message", [("  ", "Title is required"), ("x" * 201, "too long")])
def test_title_validation(db, test_staff, test_org, title, message):
    with pytest.raises(ValueError, match=message):
        ask(db, test_staff, test_org, title=title)


# =============================================================================
# Fulfil & review
# =============================================================================

def test_fulfil_links_document_and_moves_to_uploaded(
    db, test_staff, test_client, test_org, fake_storage
):
    request = ask(db, test_staff, test_org)

    document = fulfil(db, request, test_client, fake_storage)

    db.refresh(request)
    assert request.status == DocumentRequestStatus.UPLOADED.value
    assert request.document_id == document.id
    assert document.document_request_id == request.id
    assert document.category == DocumentCategory.TAX_RETURN.value

    with pytest.raises(ValueError, match="no upload expected"):
        fulfil(db, request, test_client, fake_storage, name="again.pdf")


def test_other_org_cannot_fulfil(db, test_staff, test_org, other_org, fake_storage, user_factory):
    outsider = user_factory(Role.CLIENT, organization=other_org)
    request = ask(db, test_staff, test_org)

    with pytest.raises(OrganizationAccessError):
        fulfil(db, request, outsider, fake_storage)
    assert db.query(Document).count() == 0


def test_invalid_file_leaves_request_pending(db, test_staff, test_client, test_org, fake_storage):
    request = ask(db, test_staff, test_org)

    with pytest.raises(ValueError, match="exceeds 25 MB"):
        fulfil(db, request, test_client, fake_storage, size=26 * 1024 * 1024)

    db.refresh(request)
    assert request.status == DocumentRequestStatus.PENDING.value


def test_approve_notifies_uploader(
    db, test_staff, test_client, test_org, fake_storage, user_factory
):
    user_factory(Role.CLIENT, organization=test_org)
    request = ask(db, test_staff, test_org)
    fulfil(db, request, test_client, fake_storage)

    approved = document_request_service.approve_request(db, request.id, test_staff, note="Thanks")

    assert approved.status == DocumentRequestStatus.REVIEWED.value
    assert approved.review_note == "Thanks"
    assert approved.reviewed_by_id == test_staff.id
    approvals = db.query(Notification).filter(Notification.title == "Document approved").all()
    assert [n.recipient_id for n in approvals] == [test_client.id]
    assert EmailEvent.DOCUMENT_APPROVED.value in queued_events(db)

    with pytest.raises(ValueError, match="Only uploaded requests"):
        document_request_service.reject_request(db, request.id, test_staff, reason="late")


def test_reject_then_reupload(db, test_staff, test_client, test_org, fake_storage):
    request = ask(db, test_staff, test_org)
    fulfil(db, request, test_client, fake_storage)

    with pytest.raises(ValueError, match="reason is required"):
        document_request_service.reject_request(db, request.id, test_staff, reason="  ")

    rejected = document_request_service.reject_request(
        db, request.id, test_staff, reason="Page 2 missing"
    )
    assert rejected.status == DocumentRequestStatus.REJECTED.value
    assert rejected.review_note == "Page 2 missing"
    assert EmailEvent.DOCUMENT_REJECTED.value in queued_events(db)

    second = fulfil(db, request, test_client, fake_storage, name="ea-form-full.pdf")

    db.refresh(request)
    assert request.status == DocumentRequestStatus.UPLOADED.value
    assert request.document_id == second.id
    assert request.review_note is None
    assert request.reviewed_by_id is None


def test_clients_cannot_review(db, test_staff, test_client, test_org, fake_storage):
    request = ask(db, test_staff, test_org)
    fulfil(db, request, test_client, fake_storage)

    with pytest.raises(OrganizationAccessError):
        document_request_service.approve_request(db, request.id, test_client)


def test_list_filters_by_status(db, test_staff, test_client, test_org, fake_storage):
    first = ask(db, test_staff, test_org, title="Bank statements")
    ask(db, test_staff, test_org, title="Payroll summary")
    fulfil(db, first, test_client, fake_storage)

    pending = document_request_service.list_requests(
        db, test_client, test_org.id, status=DocumentRequestStatus.PENDING
    )
    assert [r.title for r in pending] == ["Payroll summary"]
    assert len(document_request_service.list_requests(db, test_client, test_org.id)) == 2


# =============================================================================
# HTTP
# =============================================================================

@pytest.mark.asyncio
async def test_reject_without_reason_is_422(db, staff_client, test_staff, test_org):
    request = ask(db, test_staff, test_org)

    response = await staff_client.post(f"/document-requests/{request.id}/reject", json={})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_approve_pending_request_is_400(db, staff_client, test_staff, test_org):
    request = ask(db, test_staff, test_org)

    response = await staff_client.post(f"/document-requests/{request.id}/approve", json={})

    assert response.status_code == 400
    assert response.json()["detail"] == "Only uploaded requests can be reviewed"
