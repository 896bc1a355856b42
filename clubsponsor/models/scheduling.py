from __future__ import annotations

# -----------------------------------------------------------------------------
# Deferred work: per-invitation reminders and scheduled invitation batches.
# Both are polled by the `run-jobs` / `send-reminders` CLI commands (or the
# bearer-protected cron webhook).
# -----------------------------------------------------------------------------
from typing import Any, Dict, Final

from clubsponsor.extensions import db

from .mixins import TimestampMixin, iso

REMINDER_STATUSES: Final[tuple[str, ...]] = ("pending", "sent", "skipped", "cancelled")
JOB_STATUSES: Final[tuple[str, ...]] = ("pending", "processing", "completed", "failed", "cancelled")
JOB_TYPES: Final[tuple[str, ...]] = ("email_invitation",)


class Reminder(db.Model, TimestampMixin):
    __tablename__ = "reminders"

    id = db.Column(db.Integer, primary_key=True)
    invitation_id = db.Column(
        db.Integer, db.ForeignKey("invitations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    scheduled_for = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    sent_at = db.Column(db.DateTime, nullable=True)

    invitation = db.relationship("Invitation", back_populates="reminders")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "invitation_id": self.invitation_id,
            "scheduled_for": iso(self.scheduled_for),
            "status": self.status,
            "sent_at": iso(self.sent_at),
        }


class ScheduledJob(db.Model, TimestampMixin):
    __tablename__ = "scheduled_jobs"

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    campaign_id = db.Column(
        db.Integer, db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_type = db.Column(db.String(32), nullable=False, default="email_invitation")
    scheduled_at = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payload = db.Column(db.JSON, nullable=False, default=dict, doc="{sponsor_ids, reminder_days}")
    executed_at = db.Column(db.DateTime, nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    created_by = db.Column(
        db.Integer, db.ForeignKey("app_users.id", ondelete="SET NULL"), nullable=True
    )

    campaign = db.relationship("Campaign", back_populates="jobs")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "campaign_id": self.campaign_id,
            "job_type": self.job_type,
            "scheduled_at": iso(self.scheduled_at),
            "status": self.status,
            "payload": self.payload or {},
            "executed_at": iso(self.executed_at),
            "error_message": self.error_message,
            "created_by": self.created_by,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<ScheduledJob {self.id} {self.job_type} status={self.status}>"
