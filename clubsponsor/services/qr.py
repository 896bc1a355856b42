"""QR codes and printable A6 flyers for a campaign's public page."""

import base64
import io
import logging
from typing import Tuple

import qrcode
import qrcode.image.svg
from reportlab.lib.pagesizes import A6
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from clubsponsor.models import Campaign
from clubsponsor.services.errors import ServiceError
from clubsponsor.services.invitations import public_link

log = logging.getLogger(__name__)

QR_DARK = "#1e293b"
QR_LIGHT = "#ffffff"
QR_BORDER = 2
QR_FORMATS = ("png", "svg")


def _require_public(campaign: Campaign) -> str:
    if not campaign.is_public_share_enabled or not campaign.public_slug:
        raise ServiceError("Enable public sharing for this campaign first.", status=400)
    return public_link(campaign.public_slug)


def _qr(url: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=QR_BORDER,
    )
    qr.add_data(url)
    qr.make(fit=True)
    return qr


def qr_png(url: str) -> bytes:
    img = _qr(url).make_image(fill_color=QR_DARK, back_color=QR_LIGHT)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def qr_svg(url: str) -> bytes:
    img = _qr(url).make_image(image_factory=qrcode.image.svg.SvgPathImage)
    buf = io.BytesIO()
    img.save(buf)
    return buf.getvalue()


def qr_data_url(url: str) -> str:
    return "data:image/png;base64," + base64.b64encode(qr_png(url)).decode("ascii")


def campaign_qr(campaign: Campaign, fmt: str = "png") -> Tuple[str, str, bytes]:
    """(filename, mimetype, content)."""
    fmt = (fmt or "png").lower()
    if fmt not in QR_FORMATS:
        raise ServiceError(f"Unsupported QR format: {fmt}", status=400)
    url = _require_public(campaign)
    if fmt == "svg":
        return f"qr-{campaign.public_slug}.svg", "image/svg+xml", qr_svg(url)
    return f"qr-{campaign.public_slug}.png", "image/png", qr_png(url)


def campaign_qr_info(campaign: Campaign) -> dict:
    url = _require_public(campaign)
    return {"url": url, "data_url": qr_data_url(url)}


def build_flyer_pdf(campaign: Campaign) -> Tuple[str, bytes]:
    url = _require_public(campaign)
    width, height = A6
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=A6)
    c.setTitle(f"Flyer {campaign.title}")

    c.setFont("Helvetica-Bold", 12)
    c.drawCentredString(width / 2, height - 14 * mm, campaign.tenant.name if campaign.tenant else "")
    c.setFont("Helvetica", 10)
    c.drawCentredString(width / 2, height - 21 * mm, campaign.title[:60])

    size = 60 * mm
    c.drawImage(
        ImageReader(io.BytesIO(qr_png(url))),
        (width - size) / 2,
        (height - size) / 2 - 6 * mm,
        width=size,
        height=size,
    )

    c.setFont("Helvetica-Oblique", 8)
    c.drawCentredString(width / 2, 16 * mm, "Scan to support the club")
    c.setFont("Helvetica", 7)
    c.drawCentredString(width / 2, 10 * mm, url)
    c.showPage()
    c.save()
    return f"flyer-{campaign.public_slug}.pdf", buf.getvalue()
