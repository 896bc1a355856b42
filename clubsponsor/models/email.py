from __future__ import annotations

# -----------------------------------------------------------------------------
# Email-side records:
# - EmailTemplate / EmailTemplateVersion: editable templates and their history
# - EmailEvent: delivery/engagement events attached to invitations
# - EmailLog: outgoing mail audit trail (test sends, welcome mail, etc.)
# -----------------------------------------------------------------------------
from datetime import datetime
from typing import Any, Dict, Final

from sqlalchemy import func, true

from clubsponsor.extensions import db

from .mixins import TimestampMixin, iso

EMAIL_EVENT_TYPES: Final[tuple[str, ...]] = ("sent", "delivered", "opened", "clicked", "bounced", "complained")
EMAIL_LOG_STATUSES: Final[tuple[str, ...]] = ("sent", "failed")


class EmailTemplate(db.Model):
    """
    Canonical ("key"/"html") email template row. tenant_id NULL means a
    platform-wide default; a tenant row with the same key overrides it.

    Rows are also read and written through services.templates_flex with plain
    SQL, so every NOT NULL column carries a server default.
    """

    __tablename__ = "email_templates"
    __table_args__ = (db.UniqueConstraint("tenant_id", "key", name="uq_email_templates_tenant_key"),)

    id = db.Column(db.Integer, primary_key=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    key = db.Column(db.String(64), nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=False, default="", server_default="")
    html = db.Column(db.Text, nullable=False, default="", server_default="")
    text_body = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, server_default=true())
    placeholders = db.Column(db.JSON, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        server_default=func.now(),
    )

    @property
    def scope(self) -> str:
        return "tenant" if self.tenant_id else "global"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "key": self.key,
            "subject": self.subject,
            "html": self.html,
            "text_body": self.text_body,
            "is_active": bool(self.is_active),
            "scope": self.scope,
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<EmailTemplate {self.key} scope={self.scope} tenant={self.tenant_id}>"


class EmailTemplateVersion(db.Model):
    """Snapshot of a template's subject/html taken before each edit."""

    __tablename__ = "email_template_versions"
    __table_args__ = (
        db.UniqueConstraint("template_id", "version_number", name="uq_template_versions_number"),
    )

    id = db.Column(db.Integer, primary_key=True)
    # No FK: the template table layout is probed at runtime.
    template_id = db.Column(db.Integer, nullable=False, index=True)
    version_number = db.Column(db.Integer, nullable=False)
    subject = db.Column(db.String(255), nullable=False, default="")
    html = db.Column(db.Text, nullable=False, default="")
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "template_id": self.template_id,
            "version_number": self.version_number,
            "subject": self.subject,
            "html": self.html,
            "created_by": self.created_by,
            "created_at": iso(self.created_at),
        }


class EmailEvent(db.Model):
    __tablename__ = "email_events"

    id = db.Column(db.Integer, primary_key=True)
    invitation_id = db.Column(
        db.Integer, db.ForeignKey("invitations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    campaign_id = db.Column(
        db.Integer, db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=True, index=True
    )
    sponsor_id = db.Column(
        db.Integer, db.ForeignKey("sponsors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    email = db.Column(db.String(255), nullable=True, index=True)
    event_type = db.Column(db.String(16), nullable=False, index=True)
    event_data = db.Column(db.JSON, nullable=True, doc="{timestamp, metadata, original_event}")
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "invitation_id": self.invitation_id,
            "campaign_id": self.campaign_id,
            "sponsor_id": self.sponsor_id,
            "tenant_id": self.tenant_id,
            "email": self.email,
            "event_type": self.event_type,
            "event_data": self.event_data or {},
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<EmailEvent {self.event_type} inv={self.invitation_id} {self.email}>"


class EmailLog(db.Model, TimestampMixin):
    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    to_email = db.Column(db.String(255), nullable=False, index=True)
    subject = db.Column(db.String(255), nullable=True)
    template_key = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="sent", index=True)
    error = db.Column(db.Text, nullable=True)
    tenant_id = db.Column(
        db.Integer, db.ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("app_users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    tenant = db.relationship("Tenant")
    user = db.relationship("AppUser")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "to_email": self.to_email,
            "subject": self.subject,
            "template_key": self.template_key,
            "status": self.status,
            "error": self.error,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<EmailLog {self.to_email} status={self.status}>"
