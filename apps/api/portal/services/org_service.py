"""Organization service - client organization (tenant) operations."""

from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.models import Organization
from portal.services import activity_service


MAX_ORG_NAME_LENGTH = 200


class OrgServiceError(Exception):
    """Base exception for organization service errors."""

    pass


class OrgNotFoundError(OrgServiceError):
    """Organization not found."""

    pass


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValueError("Organization name is required")
    if len(cleaned) > MAX_ORG_NAME_LENGTH:
        raise ValueError(f"Organization name too long (max {MAX_ORG_NAME_LENGTH} characters)")
    return cleaned


def get_org_by_id(db: Session, org_id: UUID) -> Organization | None:
    """Get organization by ID."""
    return db.query(Organization).filter(Organization.id == org_id).first()


def require_org(db: Session, org_id: UUID) -> Organization:
    org = get_org_by_id(db, org_id)
    if not org:
        raise OrgNotFoundError(f"Organization {org_id} not found")
    return org


def list_orgs(db: Session, include_inactive: bool = False) -> list[Organization]:
    """List organizations alphabetically."""
    query = db.query(Organization)
    if not include_inactive:
        query = query.filter(Organization.is_active.is_(True))
    return query.order_by(Organization.name).all()


def create_org(
    db: Session,
    name: str,
    email: str | None = None,
    phone: str | None = None,
    registration_number: str | None = None,
    address: str | None = None,
    created_by_id: UUID | None = None,
) -> Organization:
    """
    Create a new client organization.

    Raises:
        ValueError: If the name is empty or too long
    """
    org = Organization(
        name=_clean_name(name),
        email=email.lower() if email else None,
        phone=phone,
        registration_number=registration_number,
        address=address,
    )
    db.add(org)
    db.flush()
    activity_service.log_activity(
        db,
        action="created",
        resource_type="organization",
        user_id=created_by_id,
        organization_id=org.id,
        resource_id=org.id,
        resource_name=org.name,
    )
    db.commit()
    db.refresh(org)
    return org


def update_org(
    db: Session,
    org: Organization,
    updates: dict,
    updated_by_id: UUID | None = None,
) -> Organization:
    """Apply a partial update (only keys present in updates)."""
    if "name" in updates:
        org.name = _clean_name(updates["name"])
    if "email" in updates:
        org.email = updates["email"].lower() if updates["email"] else None
    for field in ("phone", "registration_number", "address", "is_active"):
        if field in updates:
            setattr(org, field, updates[field])

    activity_service.log_activity(
        db,
        action="updated",
        resource_type="organization",
        user_id=updated_by_id,
        organization_id=org.id,
        resource_id=org.id,
        resource_name=org.name,
        details={"fields": sorted(updates.keys())},
    )
    db.commit()
    db.refresh(org)
    return org
