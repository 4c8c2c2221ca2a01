import pytest

from coords import calculate_dpi, compute_contain_fit, mm_to_px, px_to_mm
from errors import ValidationError
from models import A4_LANDSCAPE, CanvasSize, MmBox, PageSize, PxBox

CANVAS = CanvasSize(width_px=800, height_px=600)


def test_px_to_mm_scales_each_axis_independently():
    result = px_to_mm(PxBox(x=100, y=50, width=200, height=100), CANVAS, A4_LANDSCAPE)
    # 297/800 horizontally, 210/600 vertically
    assert result.x_mm == pytest.approx(37.125)
    assert result.y_mm == pytest.approx(17.5)
    assert result.width_mm == pytest.approx(74.25)
    assert result.height_mm == pytest.approx(35.0)


def test_square_on_screen_becomes_rectangle_on_page():
    result = px_to_mm(PxBox(x=0, y=0, width=100, height=100), CANVAS, A4_LANDSCAPE)
    assert result.width_mm != pytest.approx(result.height_mm)


def test_full_canvas_maps_to_full_page():
    result = px_to_mm(PxBox(x=0, y=0, width=800, height=600), CANVAS, A4_LANDSCAPE)
    assert result.width_mm == pytest.approx(297.0)
    assert result.height_mm == pytest.approx(210.0)


def test_device_pixel_ratio_does_not_change_result():
    box = PxBox(x=100, y=50, width=200, height=100)
    hi_dpi = px_to_mm(box, CANVAS, A4_LANDSCAPE, 2.0)
    plain = px_to_mm(box, CANVAS, A4_LANDSCAPE, 1.0)
    for attr in ("x_mm", "y_mm", "width_mm", "height_mm"):
        assert getattr(hi_dpi, attr) == pytest.approx(getattr(plain, attr))


@pytest.mark.parametrize(
    "canvas",
    [CanvasSize(width_px=0, height_px=600), CanvasSize(width_px=800, height_px=0)],
)
def test_zero_canvas_dimension_is_rejected(canvas):
    with pytest.raises(ValidationError):
        px_to_mm(PxBox(x=1, y=1, width=1, height=1), canvas, A4_LANDSCAPE)


def test_zero_page_dimension_is_rejected_by_inverse():
    with pytest.raises(ValidationError):
        mm_to_px(MmBox(x_mm=1, y_mm=1, width_mm=1, height_mm=1), CANVAS, PageSize(width_mm=0, height_mm=210))


@pytest.mark.parametrize(
    "box,canvas,page",
    [
        (PxBox(x=200, y=150, width=400, height=80), CANVAS, A4_LANDSCAPE),
        (PxBox(x=0, y=0, width=0, height=0), CANVAS, A4_LANDSCAPE),
        (PxBox(x=13.7, y=401.2, width=77.3, height=9.9), CanvasSize(width_px=1023, height_px=731), A4_LANDSCAPE),
        (PxBox(x=5, y=7, width=3, height=2), CanvasSize(width_px=11, height_px=13), PageSize(width_mm=210, height_mm=297)),
        (PxBox(x=1e4, y=2e4, width=3e3, height=1e3), CanvasSize(width_px=5e4, height_px=4e4), A4_LANDSCAPE),
    ],
)
def test_round_trip_reproduces_pixel_box(box, canvas, page):
    back = mm_to_px(px_to_mm(box, canvas, page), canvas, page)
    for attr in ("x", "y", "width", "height"):
        assert getattr(back, attr) == pytest.approx(getattr(box, attr), rel=1e-9, abs=1e-9)


def test_contain_fit_letterboxes_wide_image():
    fit = compute_contain_fit(800, 600, 1600, 800)
    assert fit.scale == pytest.approx(0.5)
    assert (fit.width, fit.height) == (pytest.approx(800), pytest.approx(400))
    assert fit.offset_x == pytest.approx(0)
    assert fit.offset_y == pytest.approx(100)


def test_calculate_dpi_for_a4_landscape():
    dpi_x, dpi_y, min_dpi = calculate_dpi(3508, 2480)
    assert dpi_x == pytest.approx(300, rel=1e-3)
    assert dpi_y == pytest.approx(300, rel=1e-3)
    assert min_dpi == min(dpi_x, dpi_y)
