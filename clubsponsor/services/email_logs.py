"""Paginated, filterable view over EmailLog for the super-admin console."""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping, Optional

from flask import current_app

from clubsponsor.models import EmailLog

log = logging.getLogger(__name__)

NO_LABEL = "—"


def _parse_date(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    for fmt in ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M"):
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def _label(obj_label: Optional[str], raw_id: Optional[int]) -> str:
    if obj_label:
        return obj_label
    if raw_id is not None:
        return str(raw_id)[:8]
    return NO_LABEL


def load_email_logs(filters: Mapping[str, Any]) -> Dict[str, Any]:
    default_size = int(current_app.config.get("EMAIL_LOGS_PAGE_SIZE", 25))
    try:
        page_size = max(1, int(filters.get("page_size") or default_size))
    except (TypeError, ValueError):
        page_size = default_size
    try:
        page = max(1, int(filters.get("page") or 1))
    except (TypeError, ValueError):
        page = 1

    query = EmailLog.query
    q = str(filters.get("q") or "").strip()
    if q:
        query = query.filter(EmailLog.to_email.ilike(f"%{q}%"))

    status = filters.get("status")
    if status and status != "all":
        query = query.filter(EmailLog.status == status)

    tenant_id = filters.get("tenant_id")
    if tenant_id and tenant_id != "all":
        try:
            query = query.filter(EmailLog.tenant_id == int(tenant_id))
        except (TypeError, ValueError):
            log.info("Ignoring invalid tenant filter %r", tenant_id)

    date_from = _parse_date(filters.get("date_from"))
    if date_from:
        query = query.filter(EmailLog.created_at >= date_from)
    date_to = _parse_date(filters.get("date_to"))
    if date_to:
        # A bare date includes the whole day.
        if len(filters.get("date_to") or "") == 10:
            date_to = date_to + timedelta(days=1)
        query = query.filter(EmailLog.created_at < date_to)

    total = query.count()
    logs = (
        query.order_by(EmailLog.created_at.desc(), EmailLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    rows = []
    for entry in logs:
        data = entry.as_dict()
        data["user_label"] = _label(entry.user.email if entry.user else None, entry.user_id)
        data["tenant_label"] = _label(entry.tenant.name if entry.tenant else None, entry.tenant_id)
        rows.append(data)
    return {"rows": rows, "total": total, "page": page, "page_size": page_size}
