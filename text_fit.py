"""
Fit a (possibly multi-line) string into a box on the page.

The box is given in page millimetres; font sizes are in points. Fitting is a
pure function of text, box and font; drawing is a separate step so callers
can preview the chosen size without touching a canvas.
"""

from __future__ import annotations

import math
from functools import lru_cache

from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfgen import canvas

from config import LINE_HEIGHT, MAX_FONT_SIZE, MIN_FONT_SIZE, TEXT_PADDING_MM
from models import FitResult, MmBox

# Baseline sits this far (in font sizes) below the top of its line.
_BASELINE_RATIO = 0.8


def wrap_words(text: str, measure, max_width: float) -> list[str]:
    """Greedy word wrap.

    *measure* maps a string to its width. A single word that is wider than
    *max_width* is kept as its own line (no character-level breaking). Empty
    text still yields one empty line.
    """
    lines: list[str] = []
    current = ""
    for word in text.split():
        candidate = f"{current} {word}" if current else word
        if measure(candidate) <= max_width:
            current = candidate
            continue
        if current:
            lines.append(current)
        current = word
    if current:
        lines.append(current)
    return lines if lines else [""]


def _available_space(box: MmBox, padding_mm: float) -> tuple[float, float]:
    width = (box.width_mm - 2 * padding_mm) * mm
    height = (box.height_mm - 2 * padding_mm) * mm
    return width, height


def fit_text(
    text: str,
    box: MmBox,
    font_name: str,
    max_font_size: float = MAX_FONT_SIZE,
    min_font_size: float = MIN_FONT_SIZE,
    padding_mm: float = TEXT_PADDING_MM,
    line_height: float = LINE_HEIGHT,
) -> FitResult:
    """Largest font size (whole points) at which *text* fits inside *box*.

    The floor and ceiling are hard limits: the result never leaves
    [MIN_FONT_SIZE, MAX_FONT_SIZE]. When nothing fits, the floor is used and
    the text is allowed to overflow.
    """
    floor = min(MAX_FONT_SIZE, max(MIN_FONT_SIZE, float(min_font_size)))
    ceiling = max(floor, min(MAX_FONT_SIZE, float(max_font_size)))
    avail_w, avail_h = _available_space(box, padding_mm)

    @lru_cache(maxsize=None)
    def unit_width(value: str) -> float:
        # stringWidth is linear in the font size; measure once at 1pt.
        return pdfmetrics.stringWidth(value, font_name, 1.0)

    def layout(size: float) -> list[str]:
        return wrap_words(text, lambda s: unit_width(s) * size, avail_w)

    def fits(size: float, lines: list[str]) -> bool:
        if len(lines) * size * line_height > avail_h:
            return False
        return all(unit_width(line) * size <= avail_w for line in lines)

    lo, hi = math.ceil(floor), math.floor(ceiling)
    best: float | None = None
    while lo <= hi:
        mid = (lo + hi) // 2
        if fits(mid, layout(mid)):
            best = mid
            lo = mid + 1
        else:
            hi = mid - 1

    size = float(best) if best is not None else floor
    return FitResult(font_size=size, lines=layout(size))


def draw_fitted_text(
    c: canvas.Canvas,
    fit: FitResult,
    box: MmBox,
    font_name: str,
    page_height: float,
    align: str = "center",
    padding_mm: float = TEXT_PADDING_MM,
    line_height: float = LINE_HEIGHT,
) -> None:
    """Draw the fitted lines as a block centred vertically inside *box*.

    *page_height* is in points; the box's y runs down from the top edge while
    the canvas origin is bottom-left.
    """
    size = fit.font_size
    pad = padding_mm * mm
    _, avail_h = _available_space(box, padding_mm)
    block_h = len(fit.lines) * size * line_height
    # Overflowing text stays anchored to the top padding edge.
    slack = max(0.0, (avail_h - block_h) / 2)

    box_left = box.x_mm * mm
    box_w = box.width_mm * mm
    first_baseline = page_height - box.y_mm * mm - pad - slack - size * _BASELINE_RATIO

    c.setFont(font_name, size)
    for i, line in enumerate(fit.lines):
        line_w = pdfmetrics.stringWidth(line, font_name, size)
        if align == "left":
            x = box_left + pad
        elif align == "right":
            x = box_left + box_w - pad - line_w
        else:
            x = box_left + (box_w - line_w) / 2
        c.drawString(x, first_baseline - i * size * line_height, line)


def fit_text_to_box(
    c: canvas.Canvas,
    text: str,
    box: MmBox,
    font_name: str,
    page_height: float,
    align: str = "center",
    max_font_size: float = MAX_FONT_SIZE,
) -> float:
    """Fit *text* into *box*, draw it, and return the chosen font size."""
    fit = fit_text(text, box, font_name, max_font_size=max_font_size)
    draw_fitted_text(c, fit, box, font_name, page_height, align=align)
    return fit.font_size
