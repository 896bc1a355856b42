# clubsponsor/models/mixins.py
"""Shared SQLAlchemy mixins and serialization helpers."""

from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import event, func

from clubsponsor.extensions import db


def iso(value: Optional[Any]) -> Optional[str]:
    """ISO-8601 string for datetimes/dates, None otherwise."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return None


def cents_to_euros(cents: Optional[int]) -> float:
    return round((cents or 0) / 100.0, 2)


def euros_to_cents(euros: Any) -> int:
    if euros is None or euros == "":
        return 0
    return max(0, int(round(float(euros) * 100)))


class TimestampMixin:
    """Adds created_at and updated_at columns with auto-refresh behavior."""

    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        server_default=func.now(),
        onupdate=datetime.utcnow,
        nullable=False,
    )

    @staticmethod
    def _set_updated_at(mapper, connection, target):
        target.updated_at = datetime.utcnow()

    @classmethod
    def __declare_last__(cls):
        event.listen(cls, "before_update", cls._set_updated_at)
