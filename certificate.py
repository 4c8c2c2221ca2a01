"""
Compose one finished certificate PDF for one participant.

Layout (A4 landscape, millimetres from the top-left corner):
    backdrop stretched over the full page
    title centred at 30
    participant name fitted inside the template's name box
    event title / "date • location" below the name box
    organisation, issue date and certificate id along the bottom at 180
    thin grey border 10 in from every edge
"""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import io
import logging
import re
import uuid

from PIL import Image
from pypdf import PdfReader, PdfWriter
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from archive import sanitize_filename
from config import (
    DEFAULT_FONT,
    MAX_FONT_SIZE,
    MIN_FONT_SIZE,
    PREVIEW_FONT_SHRINK,
    SINGLE_FILENAME_MAX_LENGTH,
)
from coords import px_to_mm
from errors import RenderError
from fonts import parse_css_color, resolve_name_font
from models import A4_LANDSCAPE, EventInfo, MmBox, OrgInfo, Participant, TemplateSpec
from text_fit import fit_text_to_box

logger = logging.getLogger(__name__)

TITLE_TEXT = "CERTIFICATE OF APPRECIATION"
TITLE_Y_MM = 30.0
EVENT_TITLE_OFFSET_MM = 15.0
EVENT_DETAILS_OFFSET_MM = 23.0
EVENT_BLOCK_MAX_Y_MM = 168.0
FOOTER_Y_MM = 180.0
FOOTER_MARGIN_MM = 20.0
BORDER_INSET_MM = 10.0
BORDER_GRAY = 200 / 255.0
BORDER_WIDTH_MM = 0.5

_DATA_URL = re.compile(r"^data:([\w.+/-]+);base64,(.*)$", re.IGNORECASE | re.DOTALL)


def new_certificate_id() -> str:
    return f"CERT-{uuid.uuid4().hex[:12].upper()}"


def format_event_date(value: dt.date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def single_certificate_filename(participant_name: str) -> str:
    safe = sanitize_filename(
        participant_name, max_length=SINGLE_FILENAME_MAX_LENGTH, fallback="participant"
    )
    return f"certificate-{safe}.pdf"


def _decode_backdrop(backdrop: bytes | str | None) -> tuple[str, bytes] | None:
    """Return (kind, data) where kind is 'pdf' or 'image'; None for no backdrop."""
    if backdrop is None or backdrop == b"" or backdrop == "":
        return None
    if isinstance(backdrop, str):
        match = _DATA_URL.match(backdrop.strip())
        if not match:
            raise ValueError("Backdrop string is not a base64 data URL.")
        mime, payload = match.groups()
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Backdrop data URL is not valid base64: {exc}") from exc
        return ("pdf" if mime.lower() == "application/pdf" else "image", data)
    if backdrop.lstrip()[:5] == b"%PDF-":
        return "pdf", backdrop
    return "image", backdrop


def _load_backdrop(backdrop: bytes | str | None):
    """Decode the backdrop up front. Never raises; a bad backdrop means blank."""
    try:
        decoded = _decode_backdrop(backdrop)
        if decoded is None:
            return None
        kind, data = decoded
        if kind == "pdf":
            reader = PdfReader(io.BytesIO(data))
            return "pdf", reader.pages[0]
        img = Image.open(io.BytesIO(data))
        img.load()
        if img.mode not in ("RGB", "RGBA", "L"):
            img = img.convert("RGB")
        return "image", ImageReader(img)
    except Exception as exc:
        logger.warning("Failed to load backdrop image, using a blank page: %s", exc)
        return None


def _draw_centred(c: canvas.Canvas, text: str, y_mm: float, page_w: float, page_h: float) -> None:
    c.drawCentredString(page_w / 2, page_h - y_mm * mm, text)


def _draw_auxiliary_text(
    c: canvas.Canvas,
    event: EventInfo,
    org: OrgInfo,
    name_box: MmBox,
    issued_on: dt.date,
    certificate_id: str,
    page_w: float,
    page_h: float,
) -> None:
    # Always the built-in family, whatever font the name uses.
    c.setFillColorRGB(0.1, 0.1, 0.1)
    c.setFont(f"{DEFAULT_FONT}-Bold", 28)
    _draw_centred(c, TITLE_TEXT, TITLE_Y_MM, page_w, page_h)

    name_bottom = name_box.y_mm + name_box.height_mm
    event_y = min(name_bottom + EVENT_TITLE_OFFSET_MM, EVENT_BLOCK_MAX_Y_MM - 8.0)
    details_y = min(name_bottom + EVENT_DETAILS_OFFSET_MM, EVENT_BLOCK_MAX_Y_MM)
    c.setFont(f"{DEFAULT_FONT}-Bold", 16)
    _draw_centred(c, event.title, event_y, page_w, page_h)
    details = format_event_date(event.date)
    if event.location:
        details = f"{details} • {event.location}"
    c.setFont(DEFAULT_FONT, 12)
    _draw_centred(c, details, details_y, page_w, page_h)

    footer_y = page_h - FOOTER_Y_MM * mm
    c.setFont(DEFAULT_FONT, 11)
    c.drawString(FOOTER_MARGIN_MM * mm, footer_y, org.name)
    c.setFont(DEFAULT_FONT, 10)
    c.drawCentredString(page_w / 2, footer_y, f"Issued: {format_event_date(issued_on)}")
    c.setFillColorRGB(0.4, 0.4, 0.4)
    c.setFont(DEFAULT_FONT, 8)
    c.drawRightString(page_w - FOOTER_MARGIN_MM * mm, footer_y, f"ID: {certificate_id}")

    inset = BORDER_INSET_MM * mm
    c.setStrokeColorRGB(BORDER_GRAY, BORDER_GRAY, BORDER_GRAY)
    c.setLineWidth(BORDER_WIDTH_MM * mm)
    c.rect(inset, inset, page_w - 2 * inset, page_h - 2 * inset, stroke=1, fill=0)


def _merge_onto_pdf_backdrop(backdrop_page, overlay_bytes: bytes, page_w: float, page_h: float) -> bytes:
    try:
        backdrop_page.scale_to(page_w, page_h)
        backdrop_page.merge_page(PdfReader(io.BytesIO(overlay_bytes)).pages[0])
        writer = PdfWriter()
        writer.add_page(backdrop_page)
        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()
    except Exception as exc:
        logger.warning("Failed to merge PDF backdrop, using a blank page: %s", exc)
        return overlay_bytes


def name_font_ceiling(template: TemplateSpec) -> float:
    if template.font_size is None:
        return MAX_FONT_SIZE
    return min(MAX_FONT_SIZE, max(MIN_FONT_SIZE, template.font_size - PREVIEW_FONT_SHRINK))


def compose_certificate(
    participant: Participant,
    event: EventInfo,
    org: OrgInfo,
    template: TemplateSpec,
    *,
    issued_on: dt.date | None = None,
    certificate_id: str | None = None,
) -> bytes:
    """Build the certificate for *participant* and return the PDF bytes.

    Backdrop, font and colour problems degrade gracefully; only a failure to
    produce the PDF itself raises RenderError.
    """
    page_w, page_h = landscape(A4)
    issued_on = issued_on or dt.date.today()
    certificate_id = certificate_id or new_certificate_id()

    backdrop = _load_backdrop(template.backdrop_image)
    name_box = template.name_box_mm or px_to_mm(template.name_box_px, template.canvas_size, A4_LANDSCAPE)

    try:
        packet = io.BytesIO()
        c = canvas.Canvas(packet, pagesize=(page_w, page_h))
        c.setTitle(f"Certificate - {participant.name}")

        if backdrop is not None and backdrop[0] == "image":
            try:
                c.drawImage(backdrop[1], 0, 0, width=page_w, height=page_h, mask="auto")
            except Exception as exc:
                logger.warning("Failed to draw backdrop image, using a blank page: %s", exc)

        font_name = resolve_name_font(template.font_family, template.font_data)
        c.setFillColorRGB(*(channel / 255.0 for channel in parse_css_color(template.text_color)))
        fit_text_to_box(
            c,
            participant.name,
            name_box,
            font_name,
            page_h,
            align=template.text_align,
            max_font_size=name_font_ceiling(template),
        )

        _draw_auxiliary_text(c, event, org, name_box, issued_on, certificate_id, page_w, page_h)

        c.showPage()
        c.save()
        overlay_bytes = packet.getvalue()
    except Exception as exc:
        raise RenderError(participant.id, f"Failed to build certificate PDF: {exc}") from exc

    if backdrop is not None and backdrop[0] == "pdf":
        return _merge_onto_pdf_backdrop(backdrop[1], overlay_bytes, page_w, page_h)
    return overlay_bytes
