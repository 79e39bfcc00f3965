"""CLI tools for portal administration."""

import asyncio
import json
import logging
from datetime import datetime

import click

from portal.db.enums import Role
from portal.db.session import SessionLocal


@click.group()
def cli():
    """Client portal CLI tools."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--email", default=None, help="Organization contact email")
@click.option("--registration-number", default=None, help="SSM registration number")
def create_org(name: str, email: str | None, registration_number: str | None):
    """
    Create a client organization.

    Example:
        python -m portal.cli create-org --name "Syarikat Maju Sdn Bhd" --email "accounts@maju.my"
    """
    from portal.services import org_service

    db = SessionLocal()
    try:
        org = org_service.create_org(
            db, name=name, email=email, registration_number=registration_number
        )
        click.echo(f"✓ Created organization: {org.name}")
        click.echo(f"  ID: {org.id}")
    except ValueError as e:
        db.rollback()
        click.echo(f"❌ {e}")
    finally:
        db.close()


@cli.command()
@click.option("--external-id", required=True, help="Identity provider subject (sub claim)")
@click.option("--email", required=True, help="User email address")
@click.option("--name", default=None, help="Display name")
@click.option(
    "--role",
    type=click.Choice([r.value for r in Role]),
    default=Role.CLIENT.value,
    show_default=True,
    help="Role (fixed once created)",
)
@click.option("--org-id", default=None, help="Organization ID (required for clients)")
def create_user(external_id: str, email: str, name: str | None, role: str, org_id: str | None):
    """
    Create a user ahead of their first sign-in.

    Example:
        python -m portal.cli create-user --external-id "user_123" --email "admin@firm.my" --role admin
    """
    from uuid import UUID

    from portal.services import org_service, user_service

    db = SessionLocal()
    try:
        if user_service.get_user_by_external_id(db, external_id):
            click.echo(f"❌ User already exists for external id {external_id}")
            return

        organization_id = None
        if org_id:
            org = org_service.get_org_by_id(db, UUID(org_id))
            if not org:
                click.echo(f"❌ Organization not found: {org_id}")
                return
            organization_id = org.id
        elif role == Role.CLIENT.value:
            click.echo("❌ Client users need --org-id")
            return

        user = user_service.create_user(
            db,
            external_id=external_id,
            email=email,
            name=name,
            role=Role(role),
            organization_id=organization_id,
        )
        click.echo(f"✓ Created {user.role} user: {user.email}")
        click.echo(f"  ID: {user.id}")
    except ValueError as e:
        db.rollback()
        click.echo(f"❌ {e}")
    finally:
        db.close()


@cli.command()
def seed_task_templates():
    """
    Insert the built-in recurring task templates (skips existing names).

    Example:
        python -m portal.cli seed-task-templates
    """
    from portal.services import task_template_service

    db = SessionLocal()
    try:
        created = task_template_service.seed_builtin_templates(db)
        if created:
            click.echo(f"✓ Created {created} template(s)")
        else:
            click.echo("✓ All built-in templates already present")
    finally:
        db.close()


@cli.command()
@click.argument("name")
@click.option("--now", default=None, help="Override the current time (ISO 8601, UTC)")
def run_job(name: str, now: str | None):
    """
    Run a scheduled job once, outside cron.

    Example:
        python -m portal.cli run-job invoice-reminders
    """
    from portal.jobs.schedule import run_scheduled_job

    when = datetime.fromisoformat(now) if now else None
    db = SessionLocal()
    try:
        result = asyncio.run(run_scheduled_job(db, name, now=when))
        click.echo(json.dumps(result, indent=2, default=str))
    except ValueError as e:
        click.echo(f"❌ {e}")
    finally:
        db.close()


@cli.command()
@click.option("--base-url", required=True, help="Public API base URL")
def crontab(base_url: str):
    """
    Print crontab entries for the scheduled endpoints.

    Example:
        python -m portal.cli crontab --base-url "https://api.portal.example"
    """
    from portal.jobs.schedule import render_crontab

    click.echo(render_crontab(base_url), nl=False)


if __name__ == "__main__":
    cli()
