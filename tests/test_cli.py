from datetime import datetime, timedelta

from clubsponsor.extensions import db
from clubsponsor.models import AppUser, Campaign, ScheduledJob, Sponsor, Tenant


def test_create_superadmin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-superadmin", "--email", "Ops@ClubSponsor.fr", "--password", "s3cret!"])
    assert result.exit_code == 0, result.output
    user = AppUser.query.filter_by(email="ops@clubsponsor.fr").one()
    assert user.is_super_admin
    assert user.check_password("s3cret!")

    result = runner.invoke(args=["create-superadmin", "--email", "x@clubsponsor.fr", "--password", "123"])
    assert result.exit_code != 0


def test_seed_demo(app):
    result = app.test_cli_runner().invoke(args=["seed-demo", "--tenants", "1", "--sponsors", "3", "--campaigns", "1"])
    assert result.exit_code == 0, result.output
    assert Tenant.query.count() == 1
    assert Sponsor.query.count() == 3
    assert Campaign.query.one().public_slug

    result = app.test_cli_runner().invoke(args=["seed-demo", "--tenants", "0", "--clear"])
    assert result.exit_code == 0
    assert Tenant.query.count() == 0


def test_run_jobs_and_reminders(app, campaign, sponsors, outbox):
    db.session.add(ScheduledJob(
        tenant_id=campaign.tenant_id,
        campaign_id=campaign.id,
        scheduled_at=datetime.utcnow() - timedelta(minutes=1),
        payload={"sponsor_ids": [sponsors[0].id]},
    ))
    db.session.commit()

    runner = app.test_cli_runner()
    result = runner.invoke(args=["run-jobs"])
    assert result.exit_code == 0, result.output
    assert '"processed": 1' in result.output
    assert len(outbox) == 1

    result = runner.invoke(args=["send-reminders", "--skip-auto"])
    assert result.exit_code == 0
    assert "0 sent" in result.output
    assert "Automatic" not in result.output
