"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema rebuilt for every test
- Organization and users for each role
- Session cookie minting for authenticated tests
- HTTPX AsyncClient with cookie and CSRF header
- An outbox that captures email instead of calling Resend
"""
import os
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "test"
os.environ["INTERNAL_SECRET"] = "test-internal-secret"
os.environ["RESEND_API_KEY"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from portal.core.deps import COOKIE_NAME, get_db
from portal.core.security import create_session_token
from portal.db.base import Base
from portal.db.enums import Role
from portal.db.models import Organization, User
from portal.db.session import SessionLocal, engine
from portal.main import app
from portal.services import resend_email_service, storage_client


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    App code commits freely; dropping the tables afterwards resets state.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_user(
    db: Session,
    role: Role = Role.CLIENT,
    organization: Organization | None = None,
    name: str | None = None,
) -> User:
    user = User(
        id=uuid.uuid4(),
        external_id=f"idp|{uuid.uuid4().hex[:12]}",
        email=f"{role.value}-{uuid.uuid4().hex[:8]}@test.com",
        name=name or f"Test {role.value.title()}",
        role=role.value,
        organization_id=organization.id if organization else None,
        onboarding_complete=True,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def user_factory(db: Session):
    """Create extra users: user_factory(Role.CLIENT, organization=org)."""
    def factory(
        role: Role = Role.CLIENT,
        organization: Organization | None = None,
        name: str | None = None,
    ) -> User:
        return make_user(db, role, organization=organization, name=name)
    return factory


@pytest.fixture(scope="function")
def test_org(db: Session) -> Organization:
    """Create a test client organization."""
    org = Organization(
        id=uuid.uuid4(),
        name="Syarikat Ujian Sdn Bhd",
        email="accounts@ujian.my",
    )
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture(scope="function")
def other_org(db: Session) -> Organization:
    org = Organization(id=uuid.uuid4(), name="Other Holdings Sdn Bhd")
    db.add(org)
    db.commit()
    db.refresh(org)
    return org


@pytest.fixture(scope="function")
def test_admin(db: Session) -> User:
    return make_user(db, Role.ADMIN, name="Firm Admin")


@pytest.fixture(scope="function")
def test_staff(db: Session) -> User:
    return make_user(db, Role.STAFF, name="Firm Staff")


@pytest.fixture(scope="function")
def test_client(db: Session, test_org: Organization) -> User:
    """A client user belonging to test_org."""
    return make_user(db, Role.CLIENT, organization=test_org, name="Aminah Client")


# =============================================================================
# Email / storage stubs
# =============================================================================

@pytest.fixture(scope="function")
def outbox(monkeypatch) -> list[dict]:
    """Capture sends instead of calling the Resend API."""
    sent: list[dict] = []

    async def fake_send_email(*, to_email, subject, html, text=None):
        sent.append({"to": to_email, "subject": subject, "html": html})
        return {"success": True, "id": f"msg_{len(sent)}"}

    monkeypatch.setattr(resend_email_service, "send_email", fake_send_email)
    return sent


@pytest.fixture(scope="function")
def fake_storage(monkeypatch) -> set[str]:
    """Presigned URLs without S3. Keys added to the returned set 'exist'."""
    present: set[str] = set()

    monkeypatch.setattr(
        storage_client,
        "generate_upload_url",
        lambda key, content_type: f"https://storage.test/upload/{key}",
    )
    monkeypatch.setattr(
        storage_client,
        "generate_download_url",
        lambda key, filename=None: f"https://storage.test/download/{key}",
    )
    monkeypatch.setattr(storage_client, "object_exists", lambda key: key in present)
    return present


# =============================================================================
# Auth / Client Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    token: str
    cookie_name: str = COOKIE_NAME


def auth_for(user: User) -> TestAuth:
    token = create_session_token(external_id=user.external_id, email=user.email, name=user.name)
    return TestAuth(user=user, token=token)


async def _client_for(db: Session, auth: TestAuth | None) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    cookies = {auth.cookie_name: auth.token} if auth else {}
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies=cookies,
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client."""
    async for c in _client_for(db, None):
        yield c


@pytest.fixture(scope="function")
async def admin_client(db: Session, test_admin: User) -> AsyncGenerator[AsyncClient, None]:
    async for c in _client_for(db, auth_for(test_admin)):
        yield c


@pytest.fixture(scope="function")
async def staff_client(db: Session, test_staff: User) -> AsyncGenerator[AsyncClient, None]:
    async for c in _client_for(db, auth_for(test_staff)):
        yield c


@pytest.fixture(scope="function")
async def client_user_client(db: Session, test_client: User) -> AsyncGenerator[AsyncClient, None]:
    async for c in _client_for(db, auth_for(test_client)):
        yield c
