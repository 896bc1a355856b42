# ──────────────────────────────────────────────────────────────────────────────
# Pledge model: a sponsor's yes/maybe/no answer to a campaign.
# Only "yes" pledges carry an amount; sponsor details are snapshotted so the
# pledge still reads correctly after the sponsor row is edited.
# ──────────────────────────────────────────────────────────────────────────────
from typing import Any, Dict, Final, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubsponsor.extensions import db

from .mixins import TimestampMixin, cents_to_euros, iso

PLEDGE_STATUSES: Final[tuple[str, ...]] = ("yes", "maybe", "no")
PLEDGE_SOURCES: Final[tuple[str, ...]] = ("invite", "public", "qr")

STATUS_LABELS: Final[Dict[str, str]] = {
    "yes": "Yes",
    "maybe": "Maybe",
    "no": "No",
}


class Pledge(db.Model, TimestampMixin):
    __tablename__ = "pledges"

    __table_args__ = (CheckConstraint("amount_cents >= 0", name="ck_pledges_amount_nonneg"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    campaign_id: Mapped[int] = mapped_column(
        ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    sponsor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("sponsors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    invitation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("invitations.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    status: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    consent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="invite")

    # ── Sponsor snapshot ─────────────────────────────────────────
    sponsor_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    sponsor_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    sponsor_company: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    sponsor_phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    campaign = relationship("Campaign", back_populates="pledges")
    sponsor = relationship("Sponsor")
    invitation = relationship("Invitation", back_populates="pledge")

    @property
    def amount_euros(self) -> float:
        return cents_to_euros(self.amount_cents)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, "Pending")

    def normalize(self) -> None:
        if self.status != "yes":
            self.amount_cents = 0
        if self.amount_cents is None or self.amount_cents < 0:
            self.amount_cents = 0
        if self.sponsor_email:
            self.sponsor_email = self.sponsor_email.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "sponsor_id": self.sponsor_id,
            "invitation_id": self.invitation_id,
            "status": self.status,
            "status_label": self.status_label,
            "amount_cents": self.amount_cents,
            "amount": self.amount_euros,
            "comment": self.comment,
            "consent": bool(self.consent),
            "source": self.source,
            "sponsor_name": self.sponsor_name,
            "sponsor_email": self.sponsor_email,
            "sponsor_company": self.sponsor_company,
            "sponsor_phone": self.sponsor_phone,
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Pledge id={self.id} status={self.status} amount={self.amount_euros:.2f}€>"


@event.listens_for(Pledge, "before_insert")
@event.listens_for(Pledge, "before_update")
def _pledge_before_save(mapper, connection, target: Pledge) -> None:
    target.normalize()
