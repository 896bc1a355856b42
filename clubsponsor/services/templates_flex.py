"""
Schema-tolerant access to the `email_templates` table.

Two table layouts exist in deployed databases:

    Mode A  id, tenant_id, key,  subject, html,      created_at   (canonical)
    Mode B  id, tenant_id, type, subject, html_body, updated_at   (legacy)

Nothing records which one a database has, so every read and write tries
Mode A first and falls back to Mode B when the database reports a missing
column. All statements run on the request session; on engines that abort a
transaction after an error (PostgreSQL) each probe runs inside a SAVEPOINT.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import DateTime, Integer, String, Text, column, func, insert, or_, select, table, update
from sqlalchemy.exc import DBAPIError, IntegrityError

from clubsponsor.extensions import db
from clubsponsor.models import EmailTemplateVersion, Tenant
from clubsponsor.services.email_legal import html_to_text
from clubsponsor.services.errors import NotFound, ServiceError

log = logging.getLogger(__name__)

TABLE_NAME = "email_templates"
EMPTY_TENANT_WARNING = "Tenant id is empty or invalid; loading global templates only."
MISSING_COLUMN_HINT = (
    "email_templates must expose either (key, html) or (type, html_body) columns; "
    "run the pending migrations."
)
VERSIONS_SHOWN = 5


# ─────────────────────────────────────────────────────────────
# Modes
# ─────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class FlexMode:
    name: str
    key_col: str
    html_col: str
    date_col: str

    @property
    def select_columns(self) -> Tuple[str, ...]:
        return ("id", "tenant_id", self.key_col, "subject", self.html_col, self.date_col)

    def table(self, *extra: str):
        types = {
            "id": Integer,
            "tenant_id": Integer,
            "subject": String,
            self.key_col: String,
            self.html_col: Text,
            "text_body": Text,
            "updated_by": Integer,
            "created_at": DateTime,
            "updated_at": DateTime,
        }
        names = list(dict.fromkeys(self.select_columns + extra))
        return table(TABLE_NAME, *(column(n, types.get(n, String)) for n in names))


MODE_A = FlexMode(name="A", key_col="key", html_col="html", date_col="created_at")
MODE_B = FlexMode(name="B", key_col="type", html_col="html_body", date_col="updated_at")
MODES: Tuple[FlexMode, ...] = (MODE_A, MODE_B)


# ─────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────
@dataclass
class FlexError:
    status: int
    message: str
    details: Optional[str] = None
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "message": self.message, "details": self.details, "hint": self.hint}


def _db_message(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


def is_missing_column_error(exc: BaseException) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "42703":  # undefined_column
        return True
    msg = _db_message(exc).lower()
    if "column" in msg and "does not exist" in msg:
        return True
    return "no such column" in msg or "has no column named" in msg or "unknown column" in msg


def explain_db_error(exc: BaseException) -> FlexError:
    message = _db_message(exc).strip().splitlines()[0] if _db_message(exc).strip() else "Database error"
    missing = is_missing_column_error(exc)
    status = 400 if missing else 500
    if isinstance(exc, IntegrityError):
        status = 409
    return FlexError(
        status=status,
        message=message,
        details=getattr(exc, "statement", None),
        hint=MISSING_COLUMN_HINT if missing else None,
    )


# ─────────────────────────────────────────────────────────────
# Execution helpers
# ─────────────────────────────────────────────────────────────
def _run(fn: Callable[[], Any]) -> Any:
    """Run one probe statement, isolated in a SAVEPOINT where the engine needs it."""
    if db.engine.dialect.name == "sqlite":
        return fn()
    with db.session.begin_nested():
        return fn()


def _compiled(stmt) -> str:
    return str(stmt.compile(dialect=db.engine.dialect))


def _iso(value: Any) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value) if value else None


def normalize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    tenant_id = row.get("tenant_id")
    return {
        "id": row.get("id"),
        "tenant_id": tenant_id,
        "key": row.get("key") or row.get("type") or "unknown",
        "subject": row.get("subject") or "",
        "html": row.get("html") or row.get("html_body") or "",
        "scope": "tenant" if tenant_id else "global",
        "updated_at": _iso(row.get("updated_at") or row.get("created_at")),
    }


def _coerce_tenant(tenant_id: Any) -> Tuple[Optional[int], Optional[str]]:
    """(tenant id or None, warning). None means "globals only"."""
    if tenant_id is None:
        return None, None
    if isinstance(tenant_id, bool):
        return None, EMPTY_TENANT_WARNING
    if isinstance(tenant_id, int):
        return (tenant_id, None) if tenant_id > 0 else (None, EMPTY_TENANT_WARNING)
    s = str(tenant_id).strip()
    if s.isdigit() and int(s) > 0:
        return int(s), None
    return None, EMPTY_TENANT_WARNING


# ─────────────────────────────────────────────────────────────
# Load
# ─────────────────────────────────────────────────────────────
@dataclass
class FlexLoadResult:
    mode: Optional[str] = None
    rows: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    last_sql: str = ""
    error: Optional[FlexError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ok": self.ok,
            "mode": self.mode,
            "rows": self.rows,
            "warnings": self.warnings,
            "last_sql": self.last_sql,
        }
        if self.error:
            data["error"] = self.error.to_dict()
        return data


def _select_stmt(mode: FlexMode, tenant_id: Optional[int]):
    t = mode.table()
    stmt = select(*(t.c[c] for c in mode.select_columns))
    if tenant_id is None:
        stmt = stmt.where(t.c.tenant_id.is_(None))
    else:
        stmt = stmt.where(or_(t.c.tenant_id.is_(None), t.c.tenant_id == tenant_id))
    # NULL tenant (global) rows first, then newest first.
    return stmt.order_by(t.c.tenant_id.is_(None).desc(), t.c.tenant_id.asc(), t.c[mode.date_col].desc())


def load_templates_flex(tenant_id: Any = None) -> FlexLoadResult:
    tid, warning = _coerce_tenant(tenant_id)
    result = FlexLoadResult(warnings=[warning] if warning else [])

    for mode in MODES:
        stmt = _select_stmt(mode, tid)
        result.last_sql = _compiled(stmt)
        result.mode = mode.name
        try:
            rows = _run(lambda: db.session.execute(stmt).mappings().all())
        except DBAPIError as exc:
            if mode is MODE_A and is_missing_column_error(exc):
                log.info("email_templates is not Mode A (%s); retrying with Mode B", _db_message(exc))
                continue
            log.warning("Template load failed in mode %s: %s", mode.name, _db_message(exc))
            result.error = explain_db_error(exc)
            return result

        result.rows = [normalize_row(r) for r in rows]
        return result

    return result


def detect_mode() -> Optional[str]:
    """Which layout the live table has ("A"/"B"), or None if neither works."""
    res = load_templates_flex(None)
    return res.mode if res.ok else None


def get_template_flex(template_id: int) -> Tuple[Dict[str, Any], str]:
    """Fetch one template row by id. Raises NotFound."""
    for mode in MODES:
        t = mode.table()
        stmt = select(*(t.c[c] for c in mode.select_columns)).where(t.c.id == template_id)
        try:
            row = _run(lambda: db.session.execute(stmt).mappings().first())
        except DBAPIError as exc:
            if mode is MODE_A and is_missing_column_error(exc):
                continue
            raise ServiceError(_db_message(exc), status=500) from exc
        if row is None:
            raise NotFound("Template not found.")
        return normalize_row(row), mode.name
    raise ServiceError("email_templates layout not recognised.", status=500)


def resolve_template(tenant_id: Optional[int], key: str) -> Optional[Dict[str, Any]]:
    """The tenant override for `key` if one exists, else the global template."""
    res = load_templates_flex(tenant_id)
    if not res.ok:
        raise ServiceError(res.error.message, status=500, errors=res.error.to_dict())

    matches = [r for r in res.rows if r["key"] == key]
    for scope in ("tenant", "global"):
        for row in matches:
            if row["scope"] == scope:
                return row
    return None


# ─────────────────────────────────────────────────────────────
# Save
# ─────────────────────────────────────────────────────────────
@dataclass
class TemplateInput:
    key: str
    subject: str
    html: str
    id: Optional[int] = None
    tenant_id: Optional[int] = None
    text_body: Optional[str] = None
    updated_by: Optional[int] = None


@dataclass
class SaveResult:
    ok: bool
    mode: Optional[str]
    id: Optional[int] = None
    action: Optional[str] = None
    error: Optional[FlexError] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "id": self.id, "mode": self.mode, "action": self.action}
        data: Dict[str, Any] = {"ok": False, "mode": self.mode}
        if self.error:
            data.update(self.error.to_dict())
        return data


def _payload(mode: FlexMode, data: TemplateInput, *, inserting: bool) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "subject": data.subject or "",
        mode.key_col: data.key or "",
        mode.html_col: data.html or "",
    }
    if mode is MODE_A:
        payload["text_body"] = data.text_body if data.text_body is not None else html_to_text(data.html)
        if data.updated_by is not None:
            payload["updated_by"] = data.updated_by
        if not inserting:
            payload["updated_at"] = datetime.utcnow()
    else:
        payload["updated_at"] = datetime.utcnow()
    if inserting:
        payload["tenant_id"] = data.tenant_id
    return payload


def _write(mode: FlexMode, data: TemplateInput) -> SaveResult:
    inserting = data.id is None
    payload = _payload(mode, data, inserting=inserting)
    t = mode.table(*payload.keys())

    if inserting:
        stmt = insert(t).values(**payload).returning(t.c.id)
        new_id = _run(lambda: db.session.execute(stmt).scalar_one())
        return SaveResult(ok=True, mode=mode.name, id=int(new_id), action="insert")

    stmt = update(t).where(t.c.id == data.id).values(**payload)
    rowcount = _run(lambda: db.session.execute(stmt).rowcount)
    if not rowcount:
        return SaveResult(
            ok=False,
            mode=mode.name,
            error=FlexError(status=404, message="no row updated", details=f"id={data.id}"),
        )
    return SaveResult(ok=True, mode=mode.name, id=int(data.id), action="update")


def save_template_flex(data: TemplateInput, *, snapshot: bool = True) -> SaveResult:
    """
    Insert (no id) or update (id) a template, Mode A first then Mode B.
    Updates snapshot the previous subject/html as a new version first.
    Commits on success, rolls back on failure.
    """
    if data.id is not None and snapshot:
        try:
            current, _ = get_template_flex(int(data.id))
        except NotFound:
            return SaveResult(
                ok=False,
                mode=None,
                error=FlexError(status=404, message="no row updated", details=f"id={data.id}"),
            )
        _snapshot_version(current, data.updated_by)

    result = SaveResult(ok=False, mode=None)
    for mode in MODES:
        try:
            result = _write(mode, data)
        except DBAPIError as exc:
            if mode is MODE_A and is_missing_column_error(exc):
                log.info("Mode A write rejected (%s); retrying with Mode B", _db_message(exc))
                continue
            db.session.rollback()
            log.warning("Template save failed in mode %s: %s", mode.name, _db_message(exc))
            return SaveResult(ok=False, mode=mode.name, error=explain_db_error(exc))
        break

    if result.ok:
        db.session.commit()
        log.info("Template %s %s (mode %s)", result.id, result.action, result.mode)
    else:
        db.session.rollback()
    return result


# ─────────────────────────────────────────────────────────────
# Versions
# ─────────────────────────────────────────────────────────────
def _snapshot_version(current: Dict[str, Any], user_id: Optional[int]) -> EmailTemplateVersion:
    last = (
        db.session.query(func.max(EmailTemplateVersion.version_number))
        .filter(EmailTemplateVersion.template_id == current["id"])
        .scalar()
    )
    version = EmailTemplateVersion(
        template_id=current["id"],
        version_number=int(last or 0) + 1,
        subject=current["subject"],
        html=current["html"],
        created_by=user_id,
    )
    db.session.add(version)
    db.session.flush()
    return version


def list_versions(template_id: int, limit: int = VERSIONS_SHOWN) -> List[EmailTemplateVersion]:
    return (
        EmailTemplateVersion.query.filter_by(template_id=template_id)
        .order_by(EmailTemplateVersion.version_number.desc())
        .limit(limit)
        .all()
    )


def delete_tenant_templates(tenant_id: int) -> int:
    """Drop a tenant's overrides and their version history. Both layouts share id/tenant_id."""
    t = table(TABLE_NAME, column("id", Integer), column("tenant_id", Integer))
    ids = list(db.session.execute(select(t.c.id).where(t.c.tenant_id == tenant_id)).scalars())
    if not ids:
        return 0
    db.session.query(EmailTemplateVersion).filter(
        EmailTemplateVersion.template_id.in_(ids)
    ).delete(synchronize_session=False)
    db.session.execute(t.delete().where(t.c.tenant_id == tenant_id))
    return len(ids)


def rollback_to_version(template_id: int, version_id: int, user_id: Optional[int] = None) -> SaveResult:
    version = EmailTemplateVersion.query.filter_by(id=version_id, template_id=template_id).first()
    if version is None:
        raise NotFound("Version not found.")
    current, _ = get_template_flex(template_id)
    return save_template_flex(
        TemplateInput(
            id=template_id,
            key=current["key"],
            subject=version.subject,
            html=version.html,
            updated_by=user_id,
        )
    )


# ─────────────────────────────────────────────────────────────
# Push global templates into tenants
# ─────────────────────────────────────────────────────────────
PUSH_MODES = ("safe", "force")


def push_global_templates(mode: str = "safe", tenant_ids: Optional[List[int]] = None,
                          user_id: Optional[int] = None) -> Dict[str, int]:
    """
    safe  → clone each global template into tenants that lack that key
    force → also overwrite existing tenant copies with the global content
    """
    if mode not in PUSH_MODES:
        raise ServiceError(f"Unknown push mode: {mode}", status=400)

    globals_res = load_templates_flex(None)
    if not globals_res.ok:
        raise ServiceError(globals_res.error.message, status=500, errors=globals_res.error.to_dict())

    global_by_key: Dict[str, Dict[str, Any]] = {}
    for row in globals_res.rows:
        global_by_key.setdefault(row["key"], row)

    q = Tenant.query.order_by(Tenant.id)
    if tenant_ids:
        q = q.filter(Tenant.id.in_(tenant_ids))

    counts = {"tenants": 0, "created": 0, "updated": 0, "skipped": 0, "failed": 0}
    for tenant in q.all():
        counts["tenants"] += 1
        own: Dict[str, Dict[str, Any]] = {}
        for row in load_templates_flex(tenant.id).rows:
            if row["scope"] == "tenant":
                own.setdefault(row["key"], row)

        for key, tpl in global_by_key.items():
            existing = own.get(key)
            if existing and mode == "safe":
                counts["skipped"] += 1
                continue
            res = save_template_flex(
                TemplateInput(
                    id=existing["id"] if existing else None,
                    tenant_id=tenant.id,
                    key=key,
                    subject=tpl["subject"],
                    html=tpl["html"],
                    updated_by=user_id,
                )
            )
            if not res.ok:
                counts["failed"] += 1
            elif res.action == "insert":
                counts["created"] += 1
            else:
                counts["updated"] += 1

    log.info("Pushed global templates (%s): %s", mode, counts)
    return counts
