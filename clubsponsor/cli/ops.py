import json

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from clubsponsor.extensions import db


@click.command("create-superadmin")
@click.option("--email", prompt=True, help="Login email of the super-admin.")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--name", default=None, help="Display name.")
@with_appcontext
def create_superadmin(email, password, name):
    """Create a platform super-admin (or promote an existing user)."""
    # lazy import to prevent circular imports
    from clubsponsor.models import AppUser

    email = email.strip().lower()
    if len(password) < 6:
        raise click.BadParameter("Password must be at least 6 characters.", param_hint="--password")

    user = AppUser.query.filter(func.lower(AppUser.email) == email).first()
    if user:
        click.echo(f"🔁 Promoting existing user: {email}")
        user.role = "super_admin"
        user.tenant_id = None
    else:
        user = AppUser(email=email, name=name, role="super_admin")
        db.session.add(user)
        click.echo(f"✨ Created super-admin: {email}")
    user.set_password(password)
    db.session.commit()


@click.command("run-jobs")
@click.option("--limit", type=int, default=None, help="Max jobs to process (default JOB_BATCH_SIZE).")
@with_appcontext
def run_jobs(limit):
    """Run scheduled invitation sends that are due."""
    from clubsponsor.services.jobs import run_pending_jobs

    result = run_pending_jobs(limit=limit)
    click.echo(json.dumps(result, indent=2, default=str))


@click.command("send-reminders")
@click.option("--skip-auto", is_flag=True, help="Only process explicit reminder rows.")
@with_appcontext
def send_reminders(skip_auto):
    """Send due reminders and the automatic 5-day / 10-day reminders."""
    from clubsponsor.services.reminders import process_due_reminders, send_automatic_reminders

    due = process_due_reminders()
    click.echo(f"📬 Reminders: {due['sent']} sent, {due['skipped']} skipped, {due['failed']} failed")
    if not skip_auto:
        auto = send_automatic_reminders()
        click.echo(
            f"⏰ Automatic: {auto['reminder_5d']} × 5-day, {auto['reminder_10d']} × 10-day, {auto['failed']} failed"
        )
