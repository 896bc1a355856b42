from __future__ import annotations

from typing import Any, Dict

from clubsponsor.extensions import db
from clubsponsor.models.mixins import TimestampMixin, iso


class Scenario(db.Model, TimestampMixin):
    """A saved revenue forecast for a campaign."""

    __tablename__ = "scenarios"

    id = db.Column(db.Integer, primary_key=True)
    campaign_id = db.Column(
        db.Integer, db.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    params_json = db.Column(db.JSON, nullable=False, default=dict)
    results_json = db.Column(db.JSON, nullable=False, default=dict)

    campaign = db.relationship("Campaign", back_populates="scenarios")

    @property
    def name(self) -> str:
        return str((self.results_json or {}).get("name") or f"Scenario {self.id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "name": self.name,
            "params": self.params_json or {},
            "results": self.results_json or {},
            "created_at": iso(self.created_at),
        }
