"""
Sponsor CSV import.

Header names are matched loosely (French or English, any case) and the
delimiter is sniffed between "," and ";". Rows whose email is already known
for the tenant, or appears earlier in the same file, are counted as
duplicates and skipped.
"""

from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Union

from clubsponsor.extensions import db
from clubsponsor.models import Sponsor

log = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

COLUMN_ALIASES: Dict[str, tuple[str, ...]] = {
    "email": ("email", "mail", "e-mail"),
    "company": ("société", "societe", "company", "entreprise"),
    "contact_name": ("nom", "name", "contact", "nom du contact", "contact_name"),
    "phone": ("téléphone", "telephone", "phone", "tel"),
    "segment": ("segment", "tier"),
    "notes": ("notes", "commentaire"),
}

SEGMENT_ALIASES: Dict[str, str] = {
    "or": "gold",
    "gold": "gold",
    "argent": "silver",
    "silver": "silver",
    "bronze": "bronze",
}


@dataclass
class ImportResult:
    total: int = 0
    imported: int = 0
    duplicates: int = 0
    errors: int = 0
    error_rows: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "imported": self.imported,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "error_rows": self.error_rows,
        }


def normalize_segment(raw: Optional[str]) -> str:
    return SEGMENT_ALIASES.get((raw or "").strip().lower(), "other")


def _decode(content: Union[bytes, str]) -> str:
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            content = content.decode("latin-1")
    return content.lstrip("\ufeff")


def _sniff_delimiter(text: str) -> str:
    first = next((line for line in text.splitlines() if line.strip()), "")
    try:
        return csv.Sniffer().sniff(first, delimiters=",;").delimiter
    except csv.Error:
        return ";" if first.count(";") > first.count(",") else ","


def _pick(row: Dict[str, str], field_name: str) -> str:
    for alias in COLUMN_ALIASES[field_name]:
        value = row.get(alias)
        if value and value.strip():
            return value.strip()
    return ""


def parse_rows(content: Union[bytes, str]) -> List[Dict[str, str]]:
    """Rows keyed by lowercased, trimmed header names; blank lines dropped."""
    text = _decode(content)
    lines = [line for line in text.splitlines() if line.strip()]
    if not lines:
        return []
    reader = csv.reader(lines, delimiter=_sniff_delimiter(text))
    header = [h.strip().lower() for h in next(reader)]
    rows: List[Dict[str, str]] = []
    for values in reader:
        rows.append({header[i]: (v or "") for i, v in enumerate(values) if i < len(header)})
    return rows


def _existing_emails(tenant_id: int) -> Set[str]:
    return {e for (e,) in db.session.query(Sponsor.email).filter(Sponsor.tenant_id == tenant_id).all()}


def import_sponsors(tenant_id: int, content: Union[bytes, str, io.IOBase]) -> ImportResult:
    if hasattr(content, "read"):
        content = content.read()  # type: ignore[union-attr]
    rows = parse_rows(content)  # type: ignore[arg-type]
    result = ImportResult(total=len(rows))
    seen = _existing_emails(tenant_id)

    # Line numbers are 1-based and count the header row.
    for line_no, row in enumerate(rows, start=2):
        email = _pick(row, "email").lower()
        if not email or not EMAIL_RE.match(email):
            result.errors += 1
            result.error_rows.append(
                {"line": line_no, "email": email, "error": "Missing email" if not email else "Invalid email"}
            )
            continue
        if email in seen:
            result.duplicates += 1
            continue
        seen.add(email)
        db.session.add(
            Sponsor(
                tenant_id=tenant_id,
                email=email,
                company=_pick(row, "company") or None,
                contact_name=_pick(row, "contact_name") or None,
                phone=_pick(row, "phone") or None,
                segment=normalize_segment(_pick(row, "segment")),
                notes=_pick(row, "notes") or None,
            )
        )
        result.imported += 1

    db.session.commit()
    log.info(
        "CSV import for tenant %s: %s imported, %s duplicates, %s errors",
        tenant_id,
        result.imported,
        result.duplicates,
        result.errors,
    )
    return result

