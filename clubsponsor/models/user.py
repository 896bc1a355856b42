"""
AppUser model: platform login identities and roles.
"""

from __future__ import annotations

from typing import Any, Dict, Final

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from clubsponsor.extensions import db

from .mixins import TimestampMixin, iso

USER_ROLES: Final[tuple[str, ...]] = ("super_admin", "club_admin")


class AppUser(db.Model, UserMixin, TimestampMixin):
    """
    Platform user:
      • super_admin: manages tenants, may masquerade as any club
      • club_admin: bound to exactly one tenant
    """

    __tablename__ = "app_users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(160), nullable=True)
    role = db.Column(db.String(32), nullable=False, default="club_admin", index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    is_active = db.Column(
        db.Boolean,
        default=True,
        nullable=False,
        doc="Account enabled/disabled (soft ban)",
    )

    tenant_id = db.Column(
        db.Integer,
        db.ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    tenant = db.relationship("Tenant", back_populates="users")

    # ── Auth helpers ────────────────────────────────────────────
    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def get_id(self) -> str:  # type: ignore[override]
        return str(self.id)

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"

    @property
    def display_name(self) -> str:
        return self.name or (self.email.split("@")[0] if self.email else f"User-{self.id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "tenant_id": self.tenant_id,
            "is_active": bool(self.is_active),
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<AppUser {self.email} ({self.role})>"
