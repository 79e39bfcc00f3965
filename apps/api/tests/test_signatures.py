"""Tests for e-signature requests: creation rules, signer-only actions and states."""

import pytest

from portal.core.org_access import OrganizationAccessError
from portal.db.enums import EmailEvent, NotificationType, Role, SignatureStatus
from portal.db.models import Job, Notification
from portal.services import document_service, signature_service
from portal.services.signature_service import NotSignerError, validate_signature_data
from portal.utils.file_upload import build_storage_key


PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="


@pytest.fixture
def engagement_letter(db, test_client, test_org, fake_storage):
    key = build_storage_key(test_org.id, "engagement-letter.pdf")
    fake_storage.add(key)
    return document_service.create_document(
        db,
        test_client,
        test_org.id,
        name="engagement-letter.pdf",
        storage_key=key,
        size=2048,
        mime_type="application/pdf",
    )


def request_signature(db, staff, org, document, signer, title="Engagement letter 2026"):
    return signature_service.create_request(
        db,
        staff,
        org.id,
        document_id=document.id,
        signer_id=signer.id,
        title=title,
    )


# =============================================================================
# Signature payload validation
# =============================================================================

@pytest.mark.parametrize(
    "signature_type, data, message",
    [
        ("stamp", "Aminah", "Invalid signature type"),
        ("type", "", "Signature data is required"),
        ("type", "A", "too short"),
        ("type", "A" * 201, "too long"),
        ("draw", "not-an-image", "Invalid signature image format"),
        ("draw", "data:image/png;base64,@@@", "Invalid signature image encoding"),
        ("upload", "data:image/png;base64," + "A" * 500 * 1024, "too large"),
    ],
)
def test_signature_data_validation(signature_type, data, message):
    ok, error = validate_signature_data(signature_type, data)

    assert not ok
    assert message in error


def test_valid_signature_payloads():
    assert validate_signature_data("draw", PNG) == (True, None)
    assert validate_signature_data("type", "Aminah binti Ali") == (True, None)


# =============================================================================
# Create
# =============================================================================

def test_create_notifies_and_emails_signer(db, test_staff, test_client, test_org, engagement_letter):
    request = request_signature(db, test_staff, test_org, engagement_letter, test_client)

    assert request.status == SignatureStatus.PENDING.value
    notification = db.query(Notification).filter(
        Notification.type == NotificationType.SIGNATURE_REQUEST.value
    ).one()
    assert notification.recipient_id == test_client.id

    jobs = [
        job for job in db.query(Job).all()
        if job.payload["event"] == EmailEvent.SIGNATURE_REQUESTED.value
    ]
    assert [job.payload["recipient_id"] for job in jobs] == [str(test_client.id)]


def test_only_staff_create_requests(db, test_client, test_org, engagement_letter):
    with pytest.raises(OrganizationAccessError):
        request_signature(db, test_client, test_org, engagement_letter, test_client)


def test_create_validation(
    db, test_staff, test_client, test_org, other_org, engagement_letter, user_factory
):
    outsider = user_factory(Role.CLIENT, organization=other_org)

    with pytest.raises(ValueError, match="Title is required"):
        request_signature(db, test_staff, test_org, engagement_letter, test_client, title="  ")
    with pytest.raises(ValueError, match="does not belong"):
        request_signature(db, test_staff, other_org, engagement_letter, outsider)
    with pytest.raises(ValueError, match="active member"):
        request_signature(db, test_staff, test_org, engagement_letter, outsider)

    request_signature(db, test_staff, test_org, engagement_letter, test_client)
    with pytest.raises(ValueError, match="already exists"):
        request_signature(db, test_staff, test_org, engagement_letter, test_client)


# =============================================================================
# Sign / decline / cancel
# =============================================================================

def test_signer_signs_once(db, test_staff, test_client, test_org, engagement_letter):
    request = request_signature(db, test_staff, test_org, engagement_letter, test_client)

    signed = signature_service.sign(
        db,
        request.id,
        test_client,
        signature_type="draw",
        signature_data=PNG,
        legal_name=" Aminah binti Ali ",
        agreed_to_terms=True,
    )

    assert signed.status == SignatureStatus.SIGNED.value
    assert signed.legal_name == "Aminah binti Ali"
    assert signed.signed_at is not None
    staff_notice = db.query(Notification).filter(
        Notification.recipient_id == test_staff.id,
        Notification.title == "Document signed",
    ).one()
    assert staff_notice.message.startswith("Aminah Client signed")

    with pytest.raises(ValueError, match="is signed, not pending"):
        signature_service.decline(db, request.id, test_client)


def test_sign_requires_terms_and_legal_name(db, test_staff, test_client, test_org, engagement_letter):
    request = request_signature(db, test_staff, test_org, engagement_letter, test_client)

    with pytest.raises(ValueError, match="agree to the terms"):
        signature_service.sign(db, request.id, test_client, "type", "Aminah", "Aminah", False)
    with pytest.raises(ValueError, match="Legal name is required"):
        signature_service.sign(db, request.id, test_client, "type", "Aminah", "   ", True)

    db.refresh(request)
    assert request.status == SignatureStatus.PENDING.value


def test_only_signer_may_respond(db, test_staff, test_client, test_org, engagement_letter, user_factory):
    colleague = user_factory(Role.CLIENT, organization=test_org)
    request = request_signature(db, test_staff, test_org, engagement_letter, test_client)

    with pytest.raises(NotSignerError):
        signature_service.sign(db, request.id, colleague, "type", "Colleague", "Colleague", True)
    with pytest.raises(NotSignerError):
        signature_service.decline(db, request.id, test_staff)


def test_decline_then_new_request_allowed(db, test_staff, test_client, test_org, engagement_letter):
    request = request_signature(db, test_staff, test_org, engagement_letter, test_client)

    declined = signature_service.decline(db, request.id, test_client, reason=" Wrong year ")

    assert declined.status == SignatureStatus.DECLINED.value
    assert declined.decline_reason == "Wrong year"
    again = request_signature(db, test_staff, test_org, engagement_letter, test_client)
    assert again.id != request.id


def test_cancel_only_pending(db, test_staff, test_client, test_org, engagement_letter):
    request = request_signature(db, test_staff, test_org, engagement_letter, test_client)

    with pytest.raises(OrganizationAccessError):
        signature_service.cancel(db, request.id, test_client)

    cancelled = signature_service.cancel(db, request.id, test_staff)
    assert cancelled.status == SignatureStatus.CANCELLED.value
    with pytest.raises(ValueError, match="Only pending"):
        signature_service.cancel(db, request.id, test_staff)


def test_client_lists_only_own_org(
    db, test_staff, test_client, test_org, other_org, engagement_letter, user_factory
):
    request_signature(db, test_staff, test_org, engagement_letter, test_client)

    assert len(signature_service.list_requests(db, test_client)) == 1
    assert len(signature_service.list_requests(db, test_staff)) == 1
    with pytest.raises(OrganizationAccessError):
        signature_service.list_requests(db, test_client, org_id=other_org.id)


# =============================================================================
# HTTP
# =============================================================================

@pytest.mark.asyncio
async def test_non_signer_gets_403(db, staff_client, test_staff, test_client, test_org, engagement_letter):
    request = request_signature(db, test_staff, test_org, engagement_letter, test_client)

    response = await staff_client.post(f"/signatures/{request.id}/decline", json={})

    assert response.status_code == 403
