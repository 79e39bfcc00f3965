"""Baseline migration - client portal schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18

Organizations and users, documents with versions, document and signature
requests, tasks with templates, invoices with payments, announcements,
notifications, activity log and the job queue.
"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the portal tables."""

    # ==========================================================================
    # Organizations and users
    # ==========================================================================
    op.execute('''
        CREATE TABLE organizations (
            id UUID PRIMARY KEY,
            name VARCHAR(200) NOT NULL,
            email VARCHAR(255),
            phone VARCHAR(50),
            registration_number VARCHAR(100),
            address VARCHAR(500),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE users (
            id UUID PRIMARY KEY,
            external_id VARCHAR(255) UNIQUE NOT NULL,
            email VARCHAR(255) NOT NULL,
            name VARCHAR(255),
            phone VARCHAR(50),
            role VARCHAR(20) NOT NULL DEFAULT 'client',
            organization_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
            onboarding_complete BOOLEAN NOT NULL DEFAULT false,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_users_org ON users(organization_id)')

    # Missing row = every category on
    op.execute('''
        CREATE TABLE email_preferences (
            id UUID PRIMARY KEY,
            user_id UUID UNIQUE NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            document_requests BOOLEAN NOT NULL DEFAULT true,
            task_assignments BOOLEAN NOT NULL DEFAULT true,
            task_comments BOOLEAN NOT NULL DEFAULT true,
            invoices BOOLEAN NOT NULL DEFAULT true,
            signatures BOOLEAN NOT NULL DEFAULT true,
            announcements BOOLEAN NOT NULL DEFAULT true,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    # ==========================================================================
    # Documents
    # ==========================================================================
    op.execute('''
        CREATE TABLE document_requests (
            id UUID PRIMARY KEY,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            description TEXT,
            category VARCHAR(40) NOT NULL DEFAULT 'other',
            due_date TIMESTAMPTZ,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            requested_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            document_id UUID,
            review_note TEXT,
            reviewed_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            reviewed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_document_requests_org ON document_requests(organization_id, status)')

    op.execute('''
        CREATE TABLE documents (
            id UUID PRIMARY KEY,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            name VARCHAR(255) NOT NULL,
            category VARCHAR(40) NOT NULL DEFAULT 'other',
            mime_type VARCHAR(100),
            size BIGINT NOT NULL DEFAULT 0,
            storage_key VARCHAR(1024) NOT NULL,
            current_version_id UUID,
            document_request_id UUID REFERENCES document_requests(id) ON DELETE SET NULL,
            uploaded_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            is_deleted BOOLEAN NOT NULL DEFAULT false,
            deleted_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_documents_org ON documents(organization_id, is_deleted)')
    op.execute('CREATE INDEX idx_documents_request ON documents(document_request_id)')

    op.execute('''
        CREATE TABLE document_versions (
            id UUID PRIMARY KEY,
            document_id UUID NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
            version INTEGER NOT NULL,
            name VARCHAR(255) NOT NULL,
            size BIGINT NOT NULL,
            storage_key VARCHAR(1024) NOT NULL,
            storage_finalized BOOLEAN NOT NULL DEFAULT false,
            uploaded_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            change_note TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_document_versions_number UNIQUE (document_id, version)
        )
    ''')

    # Circular references between documents, versions and requests
    op.execute('''
        ALTER TABLE documents ADD CONSTRAINT fk_documents_current_version
        FOREIGN KEY (current_version_id) REFERENCES document_versions(id)
    ''')
    op.execute('''
        ALTER TABLE document_requests ADD CONSTRAINT fk_document_requests_document
        FOREIGN KEY (document_id) REFERENCES documents(id)
    ''')

    op.execute('''
        CREATE TABLE signature_requests (
            id UUID PRIMARY KEY,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            document_id UUID NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            description TEXT,
            requested_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            signer_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            due_date TIMESTAMPTZ,
            signature_type VARCHAR(10),
            signature_data TEXT,
            legal_name VARCHAR(200),
            signed_at TIMESTAMPTZ,
            decline_reason TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_signature_requests_org ON signature_requests(organization_id, status)')
    op.execute('CREATE INDEX idx_signature_requests_signer ON signature_requests(signer_id, status)')

    # ==========================================================================
    # Tasks
    # ==========================================================================
    op.execute('''
        CREATE TABLE task_templates (
            id UUID PRIMARY KEY,
            name VARCHAR(200) NOT NULL,
            description TEXT,
            category VARCHAR(50),
            task_title VARCHAR(200),
            task_description TEXT,
            frequency VARCHAR(20) NOT NULL,
            day_of_week INTEGER,
            day_of_month INTEGER,
            quarter_month INTEGER,
            month_of_year INTEGER,
            due_days_after_generation INTEGER NOT NULL DEFAULT 14,
            priority VARCHAR(10) NOT NULL DEFAULT 'medium',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')

    op.execute('''
        CREATE TABLE template_subscriptions (
            id UUID PRIMARY KEY,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            template_id UUID NOT NULL REFERENCES task_templates(id) ON DELETE CASCADE,
            is_active BOOLEAN NOT NULL DEFAULT true,
            custom_title VARCHAR(200),
            custom_description TEXT,
            assign_to_id UUID REFERENCES users(id) ON DELETE SET NULL,
            next_generation_at TIMESTAMPTZ,
            last_generated_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_template_subscriptions_org_template UNIQUE (organization_id, template_id)
        )
    ''')
    op.execute('''
        CREATE INDEX idx_template_subscriptions_due
        ON template_subscriptions(is_active, next_generation_at)
    ''')

    op.execute('''
        CREATE TABLE tasks (
            id UUID PRIMARY KEY,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            title VARCHAR(200) NOT NULL,
            description TEXT,
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            priority VARCHAR(10) NOT NULL DEFAULT 'medium',
            due_date TIMESTAMPTZ,
            assigned_to_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            template_id UUID REFERENCES task_templates(id) ON DELETE SET NULL,
            completed_at TIMESTAMPTZ,
            completed_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            last_reminded_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_tasks_org_status ON tasks(organization_id, status)')
    op.execute('CREATE INDEX idx_tasks_due ON tasks(status, due_date)')
    op.execute('CREATE INDEX idx_tasks_assignee ON tasks(assigned_to_id, status)')

    op.execute('''
        CREATE TABLE task_comments (
            id UUID PRIMARY KEY,
            task_id UUID NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            author_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            edited_at TIMESTAMPTZ
        )
    ''')
    op.execute('CREATE INDEX idx_task_comments_task ON task_comments(task_id, created_at)')

    # ==========================================================================
    # Billing
    # ==========================================================================
    op.execute('''
        CREATE TABLE invoice_sequences (
            year INTEGER PRIMARY KEY,
            last_number INTEGER NOT NULL DEFAULT 0
        )
    ''')

    op.execute('''
        CREATE TABLE invoices (
            id UUID PRIMARY KEY,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            invoice_number VARCHAR(30) UNIQUE NOT NULL,
            description TEXT,
            line_items JSON NOT NULL DEFAULT '[]',
            amount INTEGER NOT NULL,
            paid_amount INTEGER NOT NULL DEFAULT 0,
            currency VARCHAR(3) NOT NULL DEFAULT 'MYR',
            status VARCHAR(20) NOT NULL DEFAULT 'draft',
            due_date TIMESTAMPTZ NOT NULL,
            issued_at TIMESTAMPTZ,
            paid_at TIMESTAMPTZ,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            due_soon_reminder_sent_at TIMESTAMPTZ,
            overdue_reminder_sent_at TIMESTAMPTZ,
            last_weekly_reminder_at TIMESTAMPTZ,
            weekly_reminder_count INTEGER NOT NULL DEFAULT 0,
            last_reminder_tier VARCHAR(20),
            last_reminder_sent_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_invoices_org_status ON invoices(organization_id, status)')
    op.execute('CREATE INDEX idx_invoices_status_due ON invoices(status, due_date)')

    op.execute('''
        CREATE TABLE payments (
            id UUID PRIMARY KEY,
            invoice_id UUID NOT NULL REFERENCES invoices(id) ON DELETE CASCADE,
            organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            method VARCHAR(20) NOT NULL,
            reference VARCHAR(100),
            notes TEXT,
            paid_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            recorded_by_id UUID REFERENCES users(id) ON DELETE SET NULL
        )
    ''')
    op.execute('CREATE INDEX idx_payments_invoice ON payments(invoice_id)')

    # ==========================================================================
    # Announcements
    # ==========================================================================
    op.execute('''
        CREATE TABLE announcements (
            id UUID PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            content TEXT NOT NULL,
            type VARCHAR(30) NOT NULL DEFAULT 'general',
            target_organization_ids JSON NOT NULL DEFAULT '[]',
            is_pinned BOOLEAN NOT NULL DEFAULT false,
            is_published BOOLEAN NOT NULL DEFAULT false,
            scheduled_for TIMESTAMPTZ,
            published_at TIMESTAMPTZ,
            expires_at TIMESTAMPTZ,
            created_by_id UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_announcements_scheduled ON announcements(is_published, scheduled_for)')

    op.execute('''
        CREATE TABLE announcement_reads (
            id UUID PRIMARY KEY,
            announcement_id UUID NOT NULL REFERENCES announcements(id) ON DELETE CASCADE,
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            read_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_announcement_reads_user UNIQUE (announcement_id, user_id)
        )
    ''')

    # ==========================================================================
    # Notifications, activity and jobs
    # ==========================================================================
    op.execute('''
        CREATE TABLE notifications (
            id UUID PRIMARY KEY,
            recipient_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
            type VARCHAR(40) NOT NULL,
            title VARCHAR(255) NOT NULL,
            message TEXT NOT NULL,
            link VARCHAR(500),
            dedupe_key VARCHAR(255),
            is_read BOOLEAN NOT NULL DEFAULT false,
            read_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('''
        CREATE INDEX idx_notifications_user_unread
        ON notifications(recipient_id, is_read, created_at)
    ''')
    op.execute('CREATE INDEX idx_notifications_dedupe ON notifications(recipient_id, dedupe_key)')

    op.execute('''
        CREATE TABLE activity_logs (
            id UUID PRIMARY KEY,
            organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
            user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            action VARCHAR(50) NOT NULL,
            resource_type VARCHAR(50) NOT NULL,
            resource_id VARCHAR(64),
            resource_name VARCHAR(255),
            details JSON,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        )
    ''')
    op.execute('CREATE INDEX idx_activity_logs_org ON activity_logs(organization_id, created_at)')
    op.execute('CREATE INDEX idx_activity_logs_user ON activity_logs(user_id, created_at)')

    op.execute('''
        CREATE TABLE jobs (
            id UUID PRIMARY KEY,
            organization_id UUID REFERENCES organizations(id) ON DELETE CASCADE,
            job_type VARCHAR(50) NOT NULL,
            payload JSON NOT NULL DEFAULT '{}',
            run_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            status VARCHAR(20) NOT NULL DEFAULT 'pending',
            attempts INTEGER NOT NULL DEFAULT 0,
            last_error TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            completed_at TIMESTAMPTZ
        )
    ''')
    op.execute('CREATE INDEX idx_jobs_pending ON jobs(status, run_at)')


def downgrade() -> None:
    """Drop the portal tables."""
    op.execute('ALTER TABLE documents DROP CONSTRAINT IF EXISTS fk_documents_current_version')
    op.execute('ALTER TABLE document_requests DROP CONSTRAINT IF EXISTS fk_document_requests_document')
    for table in (
        'jobs',
        'activity_logs',
        'notifications',
        'announcement_reads',
        'announcements',
        'payments',
        'invoices',
        'invoice_sequences',
        'task_comments',
        'tasks',
        'template_subscriptions',
        'task_templates',
        'signature_requests',
        'document_versions',
        'documents',
        'document_requests',
        'email_preferences',
        'users',
        'organizations',
    ):
        op.execute(f'DROP TABLE IF EXISTS {table}')
