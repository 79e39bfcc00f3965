"""Tests for users and organizations: identity sync, onboarding and admin access."""

import uuid

import pytest

from portal.db.enums import Role
from portal.db.models import ActivityLog, Organization
from portal.services import org_service, user_service
from portal.services.user_service import MissingOrganizationError, UserNotFoundError


# =============================================================================
# Identity sync
# =============================================================================

def test_first_sign_in_creates_unlinked_client(db):
    user = user_service.sync_user_from_identity(
        db, external_id="idp|new-1", email="Siti@Example.MY", name="Siti"
    )

    assert user.role == Role.CLIENT.value
    assert user.email == "siti@example.my"
    assert user.organization_id is None
    assert user.onboarding_complete is False


def test_later_sign_in_refreshes_email_and_name_only(db, test_client):
    original_role = test_client.role

    user = user_service.sync_user_from_identity(
        db, external_id=test_client.external_id, email="NEW@ujian.my", name="Aminah A."
    )

    assert user.id == test_client.id
    assert user.email == "new@ujian.my"
    assert user.name == "Aminah A."
    assert user.role == original_role


def test_staff_skip_onboarding(db):
    staff = user_service.create_user(db, "idp|staff-9", "kamal@firm.my", role=Role.STAFF)

    assert staff.onboarding_complete is True


# =============================================================================
# Profile & onboarding
# =============================================================================

def test_onboarding_requires_organization(db):
    user = user_service.create_user(db, "idp|lonely", "lonely@example.my")

    with pytest.raises(MissingOrganizationError):
        user_service.complete_onboarding(db, user)


def test_onboarding_completes_for_linked_client(db, test_org):
    user = user_service.create_user(
        db, "idp|linked", "linked@ujian.my", organization_id=test_org.id
    )

    assert user_service.complete_onboarding(db, user).onboarding_complete is True


def test_update_profile_strips_and_clears(db, test_client):
    user = user_service.update_profile(db, test_client, name="  Aminah  ", phone="   ")

    assert user.name == "Aminah"
    assert user.phone is None


# =============================================================================
# Admin access
# =============================================================================

def test_assign_organization_and_deactivate(db, test_admin, test_org):
    user = user_service.create_user(db, "idp|pending", "pending@ujian.my")

    updated = user_service.update_user_access(
        db, user.id, updated_by_id=test_admin.id, organization_id=test_org.id, is_active=False
    )

    assert updated.organization_id == test_org.id
    assert updated.is_active is False
    entry = db.query(ActivityLog).filter(ActivityLog.action == "access_updated").one()
    assert entry.details == {"organization_id": str(test_org.id), "is_active": False}


def test_access_update_errors(db, test_admin, test_client):
    with pytest.raises(UserNotFoundError):
        user_service.update_user_access(db, uuid.uuid4(), updated_by_id=test_admin.id)
    with pytest.raises(ValueError, match="Organization not found"):
        user_service.update_user_access(
            db, test_client.id, updated_by_id=test_admin.id, organization_id=uuid.uuid4()
        )


def test_list_users_filters(db, test_admin, test_staff, test_client, test_org):
    clients = user_service.list_users(db, role=Role.CLIENT)
    members = user_service.list_users(db, organization_id=test_org.id)

    assert [u.id for u in clients] == [test_client.id]
    assert [u.id for u in members] == [test_client.id]
    assert len(user_service.list_users(db)) == 3


# =============================================================================
# Organizations
# =============================================================================

@pytest.mark.parametrize("name, message", [("   ", "name is required"), ("x" * 201, "too long")])
def test_org_name_validation(db, name, message):
    with pytest.raises(ValueError, match=message):
        org_service.create_org(db, name=name)
    assert db.query(Organization).count() == 0


def test_org_create_and_update(db, test_admin):
    org = org_service.create_org(
        db, name="  Kedai Runcit Maju  ", email="Akaun@Maju.MY", created_by_id=test_admin.id
    )
    assert org.name == "Kedai Runcit Maju"
    assert org.email == "akaun@maju.my"

    updated = org_service.update_org(
        db, org, {"email": "Finance@Maju.MY", "is_active": False}, updated_by_id=test_admin.id
    )
    assert updated.email == "finance@maju.my"
    assert updated.is_active is False
    assert org_service.list_orgs(db) == []
    assert org_service.list_orgs(db, include_inactive=True) == [org]


# =============================================================================
# HTTP
# =============================================================================

@pytest.mark.asyncio
async def test_invalid_org_email_is_422(admin_client):
    response = await admin_client.post(
        "/organizations", json={"name": "Bad Email Sdn Bhd", "email": "not-an-email"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_organization(admin_client):
    response = await admin_client.post(
        "/organizations", json={"name": "Syarikat Baru", "email": "hello@baru.my"}
    )

    assert response.status_code == 201
    assert response.json()["name"] == "Syarikat Baru"


@pytest.mark.asyncio
async def test_staff_cannot_create_organization(staff_client):
    response = await staff_client.post("/organizations", json={"name": "Nope Sdn Bhd"})

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_client_cannot_list_users(client_user_client):
    response = await client_user_client.get("/users")

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_links_user_to_org(admin_client, db, test_org):
    user = user_service.create_user(db, "idp|await", "await@ujian.my")

    response = await admin_client.patch(
        f"/users/{user.id}", json={"organization_id": str(test_org.id)}
    )

    assert response.status_code == 200
    assert response.json()["organization_id"] == str(test_org.id)
