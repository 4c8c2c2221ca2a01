"""Font and colour resolution for the certificate name block."""

from __future__ import annotations

import base64
import binascii
import hashlib
import io
import logging
import re
import threading

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from config import CUSTOM_FONT_PREFIX, DEFAULT_FONT

logger = logging.getLogger(__name__)

BLACK = (0, 0, 0)

_BASE14_FONTS = {
    "Courier",
    "Courier-Bold",
    "Courier-Oblique",
    "Courier-BoldOblique",
    "Helvetica",
    "Helvetica-Bold",
    "Helvetica-Oblique",
    "Helvetica-BoldOblique",
    "Times-Roman",
    "Times-Bold",
    "Times-Italic",
    "Times-BoldItalic",
    "Symbol",
    "ZapfDingbats",
}

_CSS_FONT_MAP = {
    "arial": "Helvetica",
    "helvetica": "Helvetica",
    "sans-serif": "Helvetica",
    "times": "Times-Roman",
    "times new roman": "Times-Roman",
    "serif": "Times-Roman",
    "courier": "Courier",
    "courier new": "Courier",
    "monospace": "Courier",
}

_BOLD_VARIANTS = {
    "Helvetica": "Helvetica-Bold",
    "Helvetica-Oblique": "Helvetica-BoldOblique",
    "Times-Roman": "Times-Bold",
    "Times-Italic": "Times-BoldItalic",
    "Courier": "Courier-Bold",
    "Courier-Oblique": "Courier-BoldOblique",
}

_FONT_DATA_URL = re.compile(r"^data:font/[\w.+-]+;base64,", re.IGNORECASE)

_NAMED_COLORS = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "yellow": (255, 255, 0),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
}

_register_lock = threading.Lock()


def _normalize_font_name(name: str) -> str:
    return "".join(ch for ch in name.lower() if ch.isalnum())


def _font_is_available(font_name: str) -> bool:
    if font_name in _BASE14_FONTS:
        return True
    try:
        pdfmetrics.getFont(font_name)
        return True
    except Exception:
        return False


def find_pdf_font(font_name: str | None) -> str | None:
    """Registered or built-in PDF font matching *font_name*, or None."""
    if not font_name:
        return None
    if _font_is_available(font_name):
        return font_name

    # Try case/spacing-insensitive match against registered fonts.
    normalized = _normalize_font_name(font_name)
    for candidate in list(pdfmetrics.getRegisteredFontNames()) + sorted(_BASE14_FONTS):
        if _normalize_font_name(candidate) == normalized and _font_is_available(candidate):
            return candidate
    return None


def map_css_font(css_font: str | None) -> str:
    """First family of a CSS font stack mapped onto a built-in PDF font."""
    if not css_font:
        return DEFAULT_FONT
    first = css_font.split(",")[0].strip().strip("'\"").lower()
    return _CSS_FONT_MAP.get(first, DEFAULT_FONT)


def bold_variant(font_name: str) -> str:
    # Custom fonts keep their own face; no synthetic bold.
    return _BOLD_VARIANTS.get(font_name, font_name)


def is_font_data_url(value: str | None) -> bool:
    return bool(value) and bool(_FONT_DATA_URL.match(value))


def decode_font_data_url(value: str) -> bytes:
    if not is_font_data_url(value):
        raise ValueError("Not a base64 font data URL.")
    payload = value.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Font data URL is not valid base64: {exc}") from exc


def register_embedded_font(font_data: bytes) -> str:
    """Register TTF bytes with reportlab and return the registered name.

    The name is derived from the font content, so registering the same bytes
    twice is a no-op and two templates with different fonts never collide.
    """
    digest = hashlib.sha1(font_data).hexdigest()[:10]
    font_name = f"{CUSTOM_FONT_PREFIX}-{digest}"
    with _register_lock:
        if font_name not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(TTFont(font_name, io.BytesIO(font_data)))
    return font_name


def resolve_name_font(font_family: str | None, font_data: bytes | None = None) -> str:
    """Font used for the participant name, always in its bold weight.

    Embedded fonts that fail to register fall back to the default family.
    """
    embedded = font_data
    if embedded is None and is_font_data_url(font_family):
        try:
            embedded = decode_font_data_url(font_family)
        except ValueError as exc:
            logger.warning("Failed to decode embedded font, falling back to default: %s", exc)
            return bold_variant(DEFAULT_FONT)

    if embedded is not None:
        try:
            return register_embedded_font(embedded)
        except Exception as exc:
            logger.warning("Failed to embed custom font, falling back to default: %s", exc)
            return bold_variant(DEFAULT_FONT)

    # A PDF font name ("Times-Roman", a registered TTF) wins over CSS mapping.
    pdf_font = find_pdf_font(font_family)
    if pdf_font is not None:
        return bold_variant(pdf_font)
    return bold_variant(map_css_font(font_family))


def parse_css_color(value: str | None, fallback: tuple[int, int, int] = BLACK) -> tuple[int, int, int]:
    """Parse #rgb, #rrggbb, rgb(r, g, b) or a basic colour name to 0-255 ints."""
    if not isinstance(value, str):
        return fallback
    s = value.strip().lower()
    if s in _NAMED_COLORS:
        return _NAMED_COLORS[s]
    hexv = s[1:] if s.startswith("#") else s
    if len(hexv) == 3 and all(ch in "0123456789abcdef" for ch in hexv):
        hexv = "".join(ch * 2 for ch in hexv)
    if len(hexv) == 6 and all(ch in "0123456789abcdef" for ch in hexv):
        return (int(hexv[0:2], 16), int(hexv[2:4], 16), int(hexv[4:6], 16))
    m = re.fullmatch(r"rgb\(\s*(\d{1,3})\s*,\s*(\d{1,3})\s*,\s*(\d{1,3})\s*\)", s)
    if m:
        return tuple(max(0, min(255, int(m.group(i)))) for i in (1, 2, 3))
    return fallback
