"""Organizations (client companies) and their users - admin only."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from portal.core.deps import get_db, require_admin, require_csrf_header, require_staff
from portal.db.enums import Role
from portal.db.models import User
from portal.schemas.auth import (
    OrganizationCreate,
    OrganizationRead,
    OrganizationUpdate,
    UserAccessUpdate,
    UserRead,
)
from portal.services import org_service, user_service

router = APIRouter()


@router.get("", response_model=list[OrganizationRead])
def list_organizations(
    include_inactive: bool = False,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return org_service.list_orgs(db, include_inactive=include_inactive)


@router.post(
    "",
    response_model=OrganizationRead,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
def create_organization(
    data: OrganizationCreate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return org_service.create_org(
            db,
            name=data.name,
            email=data.email,
            phone=data.phone,
            registration_number=data.registration_number,
            address=data.address,
            created_by_id=user.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{org_id}", response_model=OrganizationRead)
def get_organization(
    org_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    return org_service.require_org(db, org_id)


@router.patch(
    "/{org_id}",
    response_model=OrganizationRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_organization(
    org_id: UUID,
    data: OrganizationUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    org = org_service.require_org(db, org_id)
    try:
        return org_service.update_org(
            db, org, data.model_dump(exclude_unset=True), updated_by_id=user.id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# =============================================================================
# Users
# =============================================================================

@router.get("/{org_id}/users", response_model=list[UserRead])
def list_organization_users(
    org_id: UUID,
    user: User = Depends(require_staff),
    db: Session = Depends(get_db),
):
    org_service.require_org(db, org_id)
    return user_service.list_users(db, organization_id=org_id)


users_router = APIRouter()


@users_router.get("", response_model=list[UserRead])
def list_users(
    role: Role | None = None,
    organization_id: UUID | None = None,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return user_service.list_users(db, organization_id=organization_id, role=role)


@users_router.patch(
    "/{user_id}",
    response_model=UserRead,
    dependencies=[Depends(require_csrf_header)],
)
def update_user_access(
    user_id: UUID,
    data: UserAccessUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        return user_service.update_user_access(
            db,
            user_id,
            updated_by_id=user.id,
            organization_id=data.organization_id,
            is_active=data.is_active,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
