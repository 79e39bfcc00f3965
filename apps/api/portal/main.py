"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from portal.core.config import settings
from portal.core.org_access import OrganizationAccessError
from portal.db.session import engine
from portal.services.announcement_service import AnnouncementNotFoundError
from portal.services.document_request_service import DocumentRequestNotFoundError
from portal.services.document_service import DocumentNotFoundError, VersionNotFoundError
from portal.services.folder_service import FolderNotFoundError
from portal.services.invoice_service import InvoiceNotFoundError
from portal.services.org_service import OrgNotFoundError
from portal.services.signature_service import NotSignerError, SignatureRequestNotFoundError
from portal.services.task_service import (
    CommentNotFoundError,
    NotCommentAuthorError,
    TaskNotFoundError,
)
from portal.services.task_template_service import SubscriptionNotFoundError, TemplateNotFoundError
from portal.services.user_service import MissingOrganizationError, UserNotFoundError

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from portal.core.rate_limit import limiter


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Client Portal API",
    description="Multi-tenant client portal for an accounting practice",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
)

# ============================================================================
# Service errors -> HTTP
# ============================================================================

NOT_FOUND_ERRORS = (
    AnnouncementNotFoundError,
    CommentNotFoundError,
    DocumentNotFoundError,
    DocumentRequestNotFoundError,
    FolderNotFoundError,
    InvoiceNotFoundError,
    OrgNotFoundError,
    SignatureRequestNotFoundError,
    SubscriptionNotFoundError,
    TaskNotFoundError,
    TemplateNotFoundError,
    UserNotFoundError,
    VersionNotFoundError,
)
FORBIDDEN_ERRORS = (OrganizationAccessError, NotSignerError, NotCommentAuthorError)


def _error_response(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})
    return handler


for _exc in NOT_FOUND_ERRORS:
    app.add_exception_handler(_exc, _error_response(404))
for _exc in FORBIDDEN_ERRORS:
    app.add_exception_handler(_exc, _error_response(403))
app.add_exception_handler(MissingOrganizationError, _error_response(400))

# ============================================================================
# Routers
# ============================================================================

from portal.routers import (
    activity,
    announcements,
    dashboard,
    documents,
    exports,
    folders,
    internal,
    invoices,
    me,
    organizations,
    signatures,
    task_templates,
    tasks,
)

# Current user: profile, onboarding, email preferences, notifications
app.include_router(me.router, prefix="/me", tags=["me"])

# Organizations and user administration
app.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
app.include_router(organizations.users_router, prefix="/users", tags=["users"])

# Documents, versions, folders and document requests
app.include_router(documents.router, prefix="/documents", tags=["documents"])
app.include_router(documents.requests_router, prefix="/document-requests", tags=["documents"])
app.include_router(folders.router, prefix="/folders", tags=["documents"])

# Tasks and recurring templates
app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
app.include_router(task_templates.router, prefix="/task-templates", tags=["tasks"])

# Billing
app.include_router(invoices.router, prefix="/invoices", tags=["invoices"])

app.include_router(announcements.router, prefix="/announcements", tags=["announcements"])
app.include_router(signatures.router, prefix="/signatures", tags=["signatures"])
app.include_router(activity.router, prefix="/activity", tags=["activity"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])

# Staff CSV exports
app.include_router(exports.router, prefix="/exports", tags=["exports"])

# Internal endpoints (scheduled/cron jobs - protected by INTERNAL_SECRET)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
