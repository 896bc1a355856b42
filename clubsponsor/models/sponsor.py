# ──────────────────────────────────────────────────────────────────────────────
# Sponsor model: a company a club can invite to its campaigns.
# One row per (tenant, email); email is always stored lowercased.
# ──────────────────────────────────────────────────────────────────────────────
from typing import Any, Dict, Final, Optional

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubsponsor.extensions import db

from .mixins import TimestampMixin, iso

SPONSOR_SEGMENTS: Final[tuple[str, ...]] = ("gold", "silver", "bronze", "other")


class Sponsor(db.Model, TimestampMixin):
    __tablename__ = "sponsors"

    __table_args__ = (UniqueConstraint("tenant_id", "email", name="uq_sponsors_tenant_email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant = relationship("Tenant", back_populates="sponsors")

    company: Mapped[Optional[str]] = mapped_column(String(160), nullable=True, index=True)
    contact_name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    segment: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="other",
        doc=f"Sponsor segment: {', '.join(SPONSOR_SEGMENTS)}",
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    invitations = relationship("Invitation", back_populates="sponsor", lazy="dynamic", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return self.contact_name or self.company or self.email

    def normalize(self) -> None:
        self.email = (self.email or "").strip().lower()
        if self.company:
            self.company = self.company.strip()
        if self.contact_name:
            self.contact_name = self.contact_name.strip()
        if self.segment not in SPONSOR_SEGMENTS:
            self.segment = "other"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "company": self.company,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "segment": self.segment,
            "notes": self.notes,
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Sponsor id={self.id} email={self.email!r} segment={self.segment}>"


@event.listens_for(Sponsor, "before_insert")
@event.listens_for(Sponsor, "before_update")
def _sponsor_before_save(mapper, connection, target: Sponsor) -> None:
    target.normalize()
