"""
Conversions between the placement canvas (screen pixels) and the printed page
(millimetres).

X and Y are scaled independently: a square drawn on a non-uniformly scaled
preview becomes a rectangle on the page.
"""

from __future__ import annotations

from dataclasses import dataclass

from errors import ValidationError
from models import A4_LANDSCAPE, CanvasSize, MmBox, PageSize, PxBox

MM_PER_INCH = 25.4


@dataclass(frozen=True)
class ContainFit:
    width: float
    height: float
    offset_x: float
    offset_y: float
    scale: float


def _check_positive(label: str, value: float) -> None:
    if value <= 0:
        raise ValidationError(f"{label} must be greater than zero, got {value}.")


def px_to_mm(
    box: PxBox,
    canvas: CanvasSize,
    page: PageSize = A4_LANDSCAPE,
    device_pixel_ratio: float = 1.0,
) -> MmBox:
    """Map a box drawn on the canvas onto the page."""
    _check_positive("Canvas width", canvas.width_px)
    _check_positive("Canvas height", canvas.height_px)
    _check_positive("Device pixel ratio", device_pixel_ratio)

    # Box and canvas are both in device pixels, so the ratio cancels out of
    # the scale; it only matters when one side was measured in CSS pixels.
    css_w = canvas.width_px / device_pixel_ratio
    css_h = canvas.height_px / device_pixel_ratio
    scale_x = page.width_mm / css_w
    scale_y = page.height_mm / css_h

    return MmBox(
        x_mm=box.x / device_pixel_ratio * scale_x,
        y_mm=box.y / device_pixel_ratio * scale_y,
        width_mm=box.width / device_pixel_ratio * scale_x,
        height_mm=box.height / device_pixel_ratio * scale_y,
    )


def mm_to_px(
    box: MmBox,
    canvas: CanvasSize,
    page: PageSize = A4_LANDSCAPE,
    device_pixel_ratio: float = 1.0,
) -> PxBox:
    """Inverse of px_to_mm."""
    _check_positive("Page width", page.width_mm)
    _check_positive("Page height", page.height_mm)
    _check_positive("Device pixel ratio", device_pixel_ratio)

    scale_x = canvas.width_px / page.width_mm
    scale_y = canvas.height_px / page.height_mm

    return PxBox(
        x=box.x_mm * scale_x,
        y=box.y_mm * scale_y,
        width=max(0.0, box.width_mm * scale_x),
        height=max(0.0, box.height_mm * scale_y),
    )


def compute_contain_fit(
    container_w: float, container_h: float, image_w: float, image_h: float
) -> ContainFit:
    """Largest size at which an image fits inside a container, centred."""
    _check_positive("Image width", image_w)
    _check_positive("Image height", image_h)
    scale = min(container_w / image_w, container_h / image_h)
    width = image_w * scale
    height = image_h * scale
    return ContainFit(
        width=width,
        height=height,
        offset_x=(container_w - width) / 2,
        offset_y=(container_h - height) / 2,
        scale=scale,
    )


def calculate_dpi(
    image_w_px: float, image_h_px: float, page: PageSize = A4_LANDSCAPE
) -> tuple[float, float, float]:
    """Effective (dpi_x, dpi_y, min_dpi) of a backdrop stretched over the page."""
    _check_positive("Page width", page.width_mm)
    _check_positive("Page height", page.height_mm)
    dpi_x = image_w_px / (page.width_mm / MM_PER_INCH)
    dpi_y = image_h_px / (page.height_mm / MM_PER_INCH)
    return dpi_x, dpi_y, min(dpi_x, dpi_y)
