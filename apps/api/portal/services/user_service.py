"""User service - identity sync, profile and admin access management."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from portal.db.enums import Role
from portal.db.models import Organization, User
from portal.services import activity_service

logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    """Base exception for user service errors."""

    pass


class UserNotFoundError(UserServiceError):
    """User not found."""

    pass


class MissingOrganizationError(UserServiceError):
    """Client user has no organization assigned yet."""

    pass


def get_user_by_id(db: Session, user_id: UUID) -> User | None:
    """Get user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_external_id(db: Session, external_id: str) -> User | None:
    """Get user by identity provider subject."""
    return db.query(User).filter(User.external_id == external_id).first()


def list_users(
    db: Session,
    organization_id: UUID | None = None,
    role: Role | None = None,
) -> list[User]:
    query = db.query(User)
    if organization_id:
        query = query.filter(User.organization_id == organization_id)
    if role:
        query = query.filter(User.role == role.value)
    return query.order_by(User.created_at).all()


def create_user(
    db: Session,
    external_id: str,
    email: str,
    name: str | None = None,
    role: Role = Role.CLIENT,
    organization_id: UUID | None = None,
) -> User:
    """Create a user. Role is fixed from here on."""
    user = User(
        external_id=external_id,
        email=email.lower(),
        name=name,
        role=role.value,
        organization_id=organization_id,
        # Staff don't go through client onboarding
        onboarding_complete=role != Role.CLIENT,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def sync_user_from_identity(
    db: Session,
    external_id: str,
    email: str,
    name: str | None = None,
) -> User:
    """
    Upsert the local user for validated identity claims (sub, email, name).

    First sign-in creates a client user with no organization; later sign-ins
    refresh email/name only.
    """
    user = get_user_by_external_id(db, external_id)
    if not user:
        logger.info("Creating user for identity subject %s", external_id)
        return create_user(db, external_id=external_id, email=email, name=name)

    changed = False
    if email and user.email != email.lower():
        user.email = email.lower()
        changed = True
    if name and user.name != name:
        user.name = name
        changed = True
    if changed:
        db.commit()
        db.refresh(user)
    return user


def update_profile(
    db: Session,
    user: User,
    name: str | None = None,
    phone: str | None = None,
) -> User:
    """
    Update user profile fields.

    Only updates fields that are provided (not None).
    """
    if name is not None:
        user.name = name.strip() or None
    if phone is not None:
        user.phone = phone.strip() or None
    db.commit()
    db.refresh(user)
    return user


def complete_onboarding(db: Session, user: User) -> User:
    """
    Mark onboarding done.

    Raises:
        MissingOrganizationError: Client user without an organization
    """
    if user.role == Role.CLIENT.value and not user.organization_id:
        raise MissingOrganizationError("Your account has not been linked to an organization yet")
    user.onboarding_complete = True
    db.commit()
    db.refresh(user)
    return user


def update_user_access(
    db: Session,
    user_id: UUID,
    updated_by_id: UUID,
    organization_id: UUID | None = None,
    is_active: bool | None = None,
) -> User:
    """
    Admin: assign a user to an organization and/or (de)activate them.

    Raises:
        UserNotFoundError: Unknown user
        ValueError: Unknown organization
    """
    user = get_user_by_id(db, user_id)
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")

    details: dict = {}
    if organization_id is not None:
        org = db.query(Organization).filter(Organization.id == organization_id).first()
        if not org:
            raise ValueError("Organization not found")
        user.organization_id = org.id
        details["organization_id"] = str(org.id)
    if is_active is not None:
        user.is_active = is_active
        details["is_active"] = is_active

    activity_service.log_activity(
        db,
        action="access_updated",
        resource_type="user",
        user_id=updated_by_id,
        organization_id=user.organization_id,
        resource_id=user.id,
        resource_name=user.display_name,
        details=details,
    )
    db.commit()
    db.refresh(user)
    return user
