# ──────────────────────────────────────────────────────────────────────────────
# Campaign model: a sponsorship drive for one screen/display placement.
# Amounts are stored in integer cents; euro views are exposed as properties.
# ──────────────────────────────────────────────────────────────────────────────
from datetime import date
from typing import Any, Dict, Final, List, Optional

from sqlalchemy import JSON, Boolean, CheckConstraint, Date, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubsponsor.extensions import db

from .mixins import TimestampMixin, cents_to_euros, iso

SCREEN_TYPES: Final[Dict[str, str]] = {
    "led_ext": "Outdoor LED",
    "led_int": "Indoor LED",
    "borne_ext": "Outdoor kiosk",
    "borne_int_mobile": "Indoor mobile kiosk",
    "ecran_int_fixe": "Indoor fixed screen",
}


class Campaign(db.Model, TimestampMixin):
    __tablename__ = "campaigns"

    __table_args__ = (
        CheckConstraint("objective_cents >= 0", name="ck_campaigns_objective_nonneg"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant = relationship("Tenant", back_populates="campaigns")

    title: Mapped[str] = mapped_column(String(100), nullable=False)
    screen_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    location: Mapped[str] = mapped_column(String(160), nullable=False, default="")
    description_md: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cover_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # ── Money (cents) ────────────────────────────────────────────
    objective_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    annual_price_hint_cents: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    daily_footfall_estimate: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    lighting_hours: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    deadline: Mapped[Optional[date]] = mapped_column(Date, nullable=True, index=True)

    # ── Public sharing ───────────────────────────────────────────
    is_public_share_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    public_slug: Mapped[Optional[str]] = mapped_column(String(120), unique=True, nullable=True, index=True)

    invitations = relationship(
        "Invitation", back_populates="campaign", lazy="dynamic", cascade="all, delete-orphan"
    )
    pledges = relationship(
        "Pledge", back_populates="campaign", lazy="dynamic", cascade="all, delete-orphan"
    )
    scenarios = relationship(
        "Scenario", back_populates="campaign", lazy="dynamic", cascade="all, delete-orphan"
    )
    jobs = relationship(
        "ScheduledJob", back_populates="campaign", lazy="dynamic", cascade="all, delete-orphan"
    )

    @property
    def objective_euros(self) -> float:
        return cents_to_euros(self.objective_cents)

    @property
    def annual_price_hint_euros(self) -> Optional[float]:
        if self.annual_price_hint_cents is None:
            return None
        return cents_to_euros(self.annual_price_hint_cents)

    @property
    def screen_type_label(self) -> str:
        return SCREEN_TYPES.get(self.screen_type or "", self.screen_type or "")

    def normalize(self) -> None:
        if self.title:
            self.title = self.title.strip()
        if self.location:
            self.location = self.location.strip()
        if self.objective_cents is None or self.objective_cents < 0:
            self.objective_cents = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "title": self.title,
            "screen_type": self.screen_type,
            "screen_type_label": self.screen_type_label,
            "location": self.location,
            "description_md": self.description_md,
            "cover_image_url": self.cover_image_url,
            "objective_cents": self.objective_cents,
            "objective_amount": self.objective_euros,
            "annual_price_hint": self.annual_price_hint_euros,
            "daily_footfall_estimate": self.daily_footfall_estimate,
            "lighting_hours": self.lighting_hours,
            "deadline": iso(self.deadline),
            "is_public_share_enabled": bool(self.is_public_share_enabled),
            "public_slug": self.public_slug,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def public_dict(self, tenant_name: Optional[str] = None) -> Dict[str, Any]:
        """Subset safe to show on the public campaign and invitation pages."""
        keys: List[str] = [
            "id",
            "title",
            "screen_type",
            "screen_type_label",
            "location",
            "description_md",
            "cover_image_url",
            "objective_amount",
            "annual_price_hint",
            "daily_footfall_estimate",
            "deadline",
            "public_slug",
        ]
        full = self.to_dict()
        data = {k: full[k] for k in keys}
        data["club_name"] = tenant_name
        return data

    def __repr__(self) -> str:
        return f"<Campaign id={self.id} title={self.title!r} tenant={self.tenant_id}>"


@event.listens_for(Campaign, "before_insert")
@event.listens_for(Campaign, "before_update")
def _campaign_before_save(mapper, connection, target: Campaign) -> None:
    target.normalize()
