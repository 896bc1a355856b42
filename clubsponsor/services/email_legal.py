"""
Legal footers for club emails.

Two renderings exist:
  • append_legal()              → compact footer used by editor previews
  • inject_signature_and_rgpd() → full signature + data-protection block
                                  appended to mail that actually goes out
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from markupsafe import escape

_STYLE_RE = re.compile(r"<style[\s\S]*?</style>", re.IGNORECASE)
_SCRIPT_RE = re.compile(r"<script[\s\S]*?</script>", re.IGNORECASE)
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_P_CLOSE_RE = re.compile(r"</p>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_MANY_NL_RE = re.compile(r"\n{3,}")
_WS_RE = re.compile(r"\s+")

RGPD_EXCERPT_MAX = 200
DATA_PROTECTION_TITLE = "Data protection"


def html_to_text(html: Optional[str]) -> str:
    """Plain-text rendering of an HTML body (used for the text/plain part)."""
    s = _STYLE_RE.sub("", html or "")
    s = _SCRIPT_RE.sub("", s)
    s = _BR_RE.sub("\n", s)
    s = _P_CLOSE_RE.sub("\n\n", s)
    s = _TAG_RE.sub("", s)
    s = _MANY_NL_RE.sub("\n\n", s)
    return s.strip()


def markdown_to_html(markdown: Optional[str]) -> str:
    """Line-oriented markdown subset: headings 1-3, bullets, paragraphs."""
    if not markdown:
        return ""

    out = []
    for line in markdown.split("\n"):
        if line.startswith("# "):
            out.append(
                '<h1 style="font-size: 24px; font-weight: bold; margin-top: 16px; '
                f'margin-bottom: 8px; color: #1e293b;">{escape(line[2:])}</h1>'
            )
        elif line.startswith("## "):
            out.append(
                '<h2 style="font-size: 20px; font-weight: bold; margin-top: 12px; '
                f'margin-bottom: 8px; color: #334155;">{escape(line[3:])}</h2>'
            )
        elif line.startswith("### "):
            out.append(
                '<h3 style="font-size: 18px; font-weight: bold; margin-top: 8px; '
                f'margin-bottom: 4px; color: #475569;">{escape(line[4:])}</h3>'
            )
        elif line.startswith("- "):
            out.append(
                f'<li style="margin-left: 20px; margin-bottom: 4px; color: #64748b;">{escape(line[2:])}</li>'
            )
        elif line.strip() == "":
            out.append("<br />")
        else:
            out.append(f'<p style="margin-bottom: 8px; color: #475569; line-height: 1.6;">{escape(line)}</p>')
    return "\n".join(out)


def append_legal(html: str, tenant) -> str:
    if tenant is None:
        return html

    sig = tenant.email_signature_html or ""
    rgpd = ""
    if tenant.rgpd_content_md:
        rgpd = "<hr/><small>" + str(escape(tenant.rgpd_content_md)).replace("\n", "<br/>") + "</small>"
    return html + "<br/>" + sig + rgpd


def inject_signature_and_rgpd(html: str, text: str, tenant) -> Tuple[str, str]:
    if tenant is None:
        return html, text

    signature = (tenant.email_signature_html or "").strip()
    if signature:
        html += (
            '\n<div style="margin-top: 32px; padding-top: 24px; border-top: 1px solid #e2e8f0;">\n'
            f"{signature}\n</div>\n"
        )
        signature_text = _WS_RE.sub(" ", _TAG_RE.sub("", signature)).strip()
        if signature_text:
            text += f"\n\n---\n{signature_text}"

    rgpd = (tenant.rgpd_content_md or "").strip()
    if rgpd:
        html += (
            '\n<div style="margin-top: 32px; padding: 20px; background-color: #f8fafc; '
            'border-left: 4px solid #3b82f6; border-radius: 4px;">\n'
            '<h4 style="margin: 0 0 12px 0; color: #1e40af; font-size: 14px; font-weight: 600;">'
            f"{DATA_PROTECTION_TITLE}</h4>\n"
            f'<div style="font-size: 13px; color: #64748b;">\n{markdown_to_html(rgpd)}\n</div>\n</div>\n'
        )
        text += f"\n\n--- {DATA_PROTECTION_TITLE} ---\n{rgpd}"

    return html, text


def extract_rgpd_excerpt(rgpd_md: Optional[str]) -> str:
    """First non-heading line of the RGPD text, capped for email footers."""
    for raw in (rgpd_md or "").split("\n"):
        line = raw.strip()
        if line and not line.startswith("#"):
            if len(line) > RGPD_EXCERPT_MAX:
                return line[: RGPD_EXCERPT_MAX - 3] + "..."
            return line
    return ""
