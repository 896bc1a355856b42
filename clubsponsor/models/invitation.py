from __future__ import annotations

import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Final, Optional

from clubsponsor.extensions import db

from .mixins import TimestampMixin, iso

INVITATION_STATUSES: Final[tuple[str, ...]] = ("sent", "opened", "clicked", "bounced", "responded")


def new_invitation_token() -> str:
    return f"inv_{uuid.uuid4()}"


class Invitation(db.Model, TimestampMixin):
    """One emailed invitation of one sponsor to one campaign."""

    __tablename__ = "invitations"

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(
        db.Integer, db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sponsor_id = db.Column(
        db.Integer, db.ForeignKey("sponsors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email = db.Column(db.String(255), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, default=new_invitation_token, index=True)
    status = db.Column(db.String(16), nullable=False, default="sent", index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    responded_at = db.Column(db.DateTime, nullable=True)

    campaign = db.relationship("Campaign", back_populates="invitations")
    sponsor = db.relationship("Sponsor", back_populates="invitations")
    pledge = db.relationship("Pledge", back_populates="invitation", uselist=False)
    reminders = db.relationship(
        "Reminder", back_populates="invitation", lazy="dynamic", cascade="all, delete-orphan"
    )

    @classmethod
    def issue(cls, campaign, sponsor, *, expiry_days: int, now: Optional[datetime] = None) -> "Invitation":
        now = now or datetime.utcnow()
        return cls(
            campaign_id=campaign.id,
            sponsor_id=sponsor.id,
            email=sponsor.email,
            token=new_invitation_token(),
            status="sent",
            expires_at=now + timedelta(days=expiry_days),
            created_at=now,
            updated_at=now,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.utcnow()) > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "sponsor_id": self.sponsor_id,
            "email": self.email,
            "token": self.token,
            "status": self.status,
            "expires_at": iso(self.expires_at),
            "responded_at": iso(self.responded_at),
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Invitation {self.token} {self.email} status={self.status}>"
