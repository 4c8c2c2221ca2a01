import base64

import pytest
from reportlab.pdfbase import pdfmetrics

from fonts import (
    bold_variant,
    decode_font_data_url,
    find_pdf_font,
    is_font_data_url,
    map_css_font,
    parse_css_color,
    register_embedded_font,
    resolve_name_font,
)


@pytest.mark.parametrize(
    "value,expected",
    [
        ("#2D3748", (45, 55, 72)),
        ("2d3748", (45, 55, 72)),
        ("#fff", (255, 255, 255)),
        ("rgb(10, 20, 300)", (10, 20, 255)),
        ("Red", (255, 0, 0)),
        ("invalid-color", (0, 0, 0)),
        ("#12345", (0, 0, 0)),
        ("", (0, 0, 0)),
        (None, (0, 0, 0)),
    ],
)
def test_parse_css_color(value, expected):
    assert parse_css_color(value) == expected


def test_parse_css_color_custom_fallback():
    assert parse_css_color("nope", fallback=(1, 2, 3)) == (1, 2, 3)


@pytest.mark.parametrize(
    "css,expected",
    [
        ("Arial, sans-serif", "Helvetica"),
        ("'Times New Roman', serif", "Times-Roman"),
        ("monospace", "Courier"),
        ("Comic Sans MS", "Helvetica"),
        (None, "Helvetica"),
    ],
)
def test_map_css_font(css, expected):
    assert map_css_font(css) == expected


def test_bold_variant():
    assert bold_variant("Helvetica") == "Helvetica-Bold"
    assert bold_variant("Times-Roman") == "Times-Bold"
    assert bold_variant("CustomFont-abc") == "CustomFont-abc"


def test_find_pdf_font_matches_loosely():
    assert find_pdf_font("Helvetica-Bold") == "Helvetica-Bold"
    assert find_pdf_font("helvetica bold") == "Helvetica-Bold"
    assert find_pdf_font("NoSuchFont") is None
    assert find_pdf_font(None) is None


def test_pdf_font_names_keep_their_family():
    assert resolve_name_font("Times-Roman") == "Times-Bold"
    assert resolve_name_font("times roman") == "Times-Bold"
    assert resolve_name_font("Courier-Oblique") == "Courier-BoldOblique"


def test_registered_font_name_is_used_as_is(vera_ttf):
    name = register_embedded_font(vera_ttf)
    assert resolve_name_font(name) == name


def test_name_font_is_bold_builtin_by_default():
    assert resolve_name_font("helvetica") == "Helvetica-Bold"
    assert resolve_name_font("serif") == "Times-Bold"
    assert resolve_name_font(None) == "Helvetica-Bold"


def test_embedded_font_registration_is_idempotent(vera_ttf):
    data = vera_ttf
    first = register_embedded_font(data)
    second = register_embedded_font(data)
    assert first == second
    assert first.startswith("CustomFont-")
    assert first in pdfmetrics.getRegisteredFontNames()


def test_embedded_font_from_data_url(vera_ttf):
    data = vera_ttf
    url = "data:font/ttf;base64," + base64.b64encode(data).decode("ascii")
    assert is_font_data_url(url)
    assert decode_font_data_url(url) == data
    assert resolve_name_font(url) == register_embedded_font(data)


def test_broken_font_bytes_fall_back_to_default(caplog):
    assert resolve_name_font("helvetica", b"definitely not a font") == "Helvetica-Bold"
    assert "falling back" in caplog.text


def test_broken_font_data_url_falls_back_to_default():
    assert resolve_name_font("data:font/ttf;base64,@@@not-base64@@@") == "Helvetica-Bold"


def test_decode_rejects_other_strings():
    assert not is_font_data_url("Arial")
    with pytest.raises(ValueError):
        decode_font_data_url("Arial")
