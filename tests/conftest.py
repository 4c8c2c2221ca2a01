"""Shared fixtures: one event/org/template set and a small backdrop image."""

from __future__ import annotations

import io
import os

import pytest
import reportlab
from PIL import Image

from models import CanvasSize, EventInfo, OrgInfo, Participant, PxBox, TemplateSpec

VERA_TTF = os.path.join(os.path.dirname(reportlab.__file__), "fonts", "Vera.ttf")


@pytest.fixture
def event() -> EventInfo:
    return EventInfo(
        id="event-456",
        title="Beach Cleanup Volunteer Event",
        date="2024-03-15",
        location="Santa Monica Beach, CA",
        description="Community beach cleaning initiative",
    )


@pytest.fixture
def org() -> OrgInfo:
    return OrgInfo(name="Ocean Guardians NGO", logo_url="https://example.com/logo.png")


@pytest.fixture
def vera_ttf() -> bytes:
    with open(VERA_TTF, "rb") as f:
        return f.read()


@pytest.fixture
def png_backdrop() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (120, 85), (240, 230, 200)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def template(png_backdrop: bytes) -> TemplateSpec:
    return TemplateSpec(
        backdrop_image=png_backdrop,
        name_box_px=PxBox(x=200, y=150, width=400, height=80),
        canvas_size=CanvasSize(width_px=800, height_px=600),
        font_family="helvetica",
        text_color="#2D3748",
        text_align="center",
    )


@pytest.fixture
def participants() -> list[Participant]:
    return [
        Participant(id=f"u{i}", name=f"Volunteer Number {i}", email=f"v{i}@example.com")
        for i in range(1, 8)
    ]
