from __future__ import annotations

from typing import Any, Dict, Final, Optional

from clubsponsor.extensions import db
from clubsponsor.models.mixins import TimestampMixin, iso

TENANT_STATUSES: Final[tuple[str, ...]] = ("active", "inactive")


class Tenant(db.Model, TimestampMixin):
    """A sports club account; every club-owned row hangs off a tenant."""

    __tablename__ = "tenants"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False, index=True)
    logo_url = db.Column(db.String(500), nullable=True)
    email_contact = db.Column(db.String(255), nullable=True, index=True)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(40), nullable=True)
    primary_color = db.Column(db.String(20), nullable=True)
    secondary_color = db.Column(db.String(20), nullable=True)

    # ── Email sending identity ──────────────────────────────────
    email_domain = db.Column(db.String(255), nullable=True)
    email_domain_verified = db.Column(db.Boolean, nullable=False, default=False)
    opt_out_default = db.Column(db.Boolean, nullable=False, default=False)

    # ── Legal texts (appended to outgoing mail / public pages) ──
    email_signature_html = db.Column(db.Text, nullable=True)
    rgpd_content_md = db.Column(db.Text, nullable=True)
    cgu_content_md = db.Column(db.Text, nullable=True)
    privacy_content_md = db.Column(db.Text, nullable=True)

    users = db.relationship(
        "AppUser", back_populates="tenant", lazy="dynamic", cascade="all, delete-orphan"
    )
    campaigns = db.relationship(
        "Campaign", back_populates="tenant", lazy="dynamic", cascade="all, delete-orphan"
    )
    sponsors = db.relationship(
        "Sponsor", back_populates="tenant", lazy="dynamic", cascade="all, delete-orphan"
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    def legal_dict(self) -> Dict[str, Optional[str]]:
        return {
            "email_signature_html": self.email_signature_html,
            "rgpd_content_md": self.rgpd_content_md,
            "cgu_content_md": self.cgu_content_md,
            "privacy_content_md": self.privacy_content_md,
        }

    def to_dict(self, include_legal: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "logo_url": self.logo_url,
            "email_contact": self.email_contact,
            "status": self.status,
            "address": self.address,
            "phone": self.phone,
            "primary_color": self.primary_color,
            "secondary_color": self.secondary_color,
            "email_domain": self.email_domain,
            "email_domain_verified": bool(self.email_domain_verified),
            "opt_out_default": bool(self.opt_out_default),
            "created_at": iso(self.created_at),
        }
        if include_legal:
            data.update(self.legal_dict())
        return data

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r} status={self.status}>"
