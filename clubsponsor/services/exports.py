"""
Campaign exports: pledge CSV (Excel-friendly, BOM + fully quoted) and a
one-file PDF report rendered with reportlab.
"""

from __future__ import annotations

import csv
import io
import logging
import os
import re
import unicodedata
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flask import current_app
from markupsafe import escape
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from clubsponsor.models import Campaign, Pledge
from clubsponsor.models.pledge import STATUS_LABELS
from clubsponsor.services.stats import campaign_totals

log = logging.getLogger(__name__)

CSV_HEADERS = ["Company", "Contact", "Email", "Phone", "Response", "Amount (EUR)", "Comment", "Source", "Date"]
FILENAME_MAX = 50


def sanitize_filename(name: str) -> str:
    ascii_name = unicodedata.normalize("NFD", name or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-zA-Z0-9]", "_", ascii_name).lower()[:FILENAME_MAX]


def _stamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.utcnow()).strftime("%Y%m%d-%H%M%S")


def _amount(value: float) -> str:
    return str(int(value)) if value == int(value) else f"{value:.2f}"


def pledge_row(pledge: Pledge) -> List[str]:
    sponsor = pledge.sponsor
    return [
        pledge.sponsor_company or (sponsor.company if sponsor else "") or "",
        pledge.sponsor_name or (sponsor.contact_name if sponsor else "") or "",
        pledge.sponsor_email or (sponsor.email if sponsor else "") or "",
        pledge.sponsor_phone or (sponsor.phone if sponsor else "") or "",
        STATUS_LABELS.get(pledge.status, "Pending"),
        _amount(pledge.amount_euros),
        pledge.comment or "",
        pledge.source or "invite",
        pledge.created_at.strftime("%d/%m/%Y") if pledge.created_at else "",
    ]


def _write_csv(headers: List[str], rows: Iterable[List[str]]) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return ("\ufeff" + buf.getvalue()).encode("utf-8")


def _ordered_pledges(campaign: Campaign) -> List[Pledge]:
    return campaign.pledges.order_by(Pledge.created_at.desc(), Pledge.id.desc()).all()


def campaign_csv(campaign: Campaign, *, now: Optional[datetime] = None) -> Tuple[str, bytes]:
    """(filename, content) for one campaign's pledges."""
    content = _write_csv(CSV_HEADERS, (pledge_row(p) for p in _ordered_pledges(campaign)))
    return f"{sanitize_filename(campaign.title)}_pledges_{_stamp(now)}.csv", content


def tenant_csv(tenant, campaigns: Iterable[Campaign], *, now: Optional[datetime] = None) -> Tuple[str, bytes]:
    rows = []
    for campaign in campaigns:
        rows.extend([campaign.title] + pledge_row(p) for p in _ordered_pledges(campaign))
    content = _write_csv(["Campaign"] + CSV_HEADERS, rows)
    return f"{sanitize_filename(tenant.name)}_pledges_{_stamp(now)}.csv", content


# ─────────────────────────────────────────────────────────────
# PDF report
# ─────────────────────────────────────────────────────────────
def _p(text: Any, style) -> Paragraph:
    return Paragraph(str(escape(text if text is not None else "")), style)


def build_report_pdf(campaign: Campaign, *, now: Optional[datetime] = None) -> bytes:
    now = now or datetime.utcnow()
    stats = campaign_totals(campaign)
    pledges = _ordered_pledges(campaign)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=15 * mm,
        rightMargin=15 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title=f"Report {campaign.title}",
    )
    styles = getSampleStyleSheet()
    small = styles["BodyText"]
    story: List[Any] = []

    story.append(_p(campaign.title, styles["Title"]))
    story.append(_p(f"Generated on {now.strftime('%d/%m/%Y %H:%M')}", styles["Normal"]))
    if campaign.location:
        story.append(_p(f"Location: {campaign.location}", styles["Normal"]))
    if campaign.deadline:
        story.append(_p(f"Deadline: {campaign.deadline.strftime('%d/%m/%Y')}", styles["Normal"]))
    story.append(Spacer(1, 8))

    summary = Table(
        [
            ["Total pledged", "Objective", "Progress", "Responses"],
            [
                f"{stats['total_pledged']:,.2f} EUR",
                f"{stats['objective']:,.2f} EUR",
                f"{stats['progress_percentage']}%",
                str(stats["pledges_count"]),
            ],
            ["Yes", "Maybe", "No", ""],
            [str(stats["yes_count"]), str(stats["maybe_count"]), str(stats["no_count"]), ""],
        ],
        colWidths=[45 * mm] * 4,
    )
    summary.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTNAME", (0, 2), (-1, 2), "Helvetica-Bold"),
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e2e8f0")),
                ("BACKGROUND", (0, 2), (-1, 2), colors.HexColor("#e2e8f0")),
                ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                ("ALIGN", (0, 0), (-1, -1), "CENTER"),
            ]
        )
    )
    story.append(summary)
    story.append(Spacer(1, 10))

    story.append(_p("Pledges", styles["Heading2"]))
    if not pledges:
        story.append(_p("No pledges yet.", styles["Normal"]))
    else:
        data = [["Company", "Contact", "Response", "Amount", "Date"]]
        for p in pledges:
            row = pledge_row(p)
            data.append([_p(row[0], small), _p(row[1], small), row[4], f"{row[5]} EUR", row[8]])
        table = Table(data, colWidths=[50 * mm, 45 * mm, 25 * mm, 30 * mm, 25 * mm], repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
                    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
                    ("FONTSIZE", (0, 1), (-1, -1), 8),
                ]
            )
        )
        story.append(table)

    commented = [p for p in pledges if p.comment]
    if commented:
        story.append(Spacer(1, 10))
        story.append(_p("Comments", styles["Heading2"]))
        for p in commented:
            who = p.sponsor_company or p.sponsor_name or p.sponsor_email or "Sponsor"
            story.append(_p(f"{who}: {p.comment}", small))

    story.append(Spacer(1, 14))
    footer = f"{campaign.tenant.name} - ClubSponsor report" if campaign.tenant else "ClubSponsor report"
    story.append(_p(footer, styles["Italic"]))

    doc.build(story)
    return buffer.getvalue()


def report_filename(campaign: Campaign, now: Optional[datetime] = None) -> str:
    return f"{sanitize_filename(campaign.title)}_report_{_stamp(now)}.pdf"


def store_report(campaign: Campaign, *, now: Optional[datetime] = None) -> Dict[str, str]:
    """Write the report under EXPORTS_DIR/<tenant>/<campaign>/ and return its relative path."""
    content = build_report_pdf(campaign, now=now)
    rel = os.path.join(str(campaign.tenant_id), str(campaign.id), f"report_{_stamp(now)}.pdf")
    root = current_app.config["EXPORTS_DIR"]
    path = os.path.join(root, rel)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(content)
    log.info("Stored report for campaign %s at %s", campaign.id, path)
    return {"path": rel.replace(os.sep, "/"), "size": str(len(content))}


def resolve_export(rel_path: str) -> Optional[str]:
    """Absolute path of a stored export, or None if it escapes EXPORTS_DIR or is missing."""
    root = os.path.realpath(current_app.config["EXPORTS_DIR"])
    path = os.path.realpath(os.path.join(root, rel_path))
    if not path.startswith(root + os.sep) or not os.path.isfile(path):
        return None
    return path
