"""Value types shared by the transform, composer, orchestrator and packager."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config import PAGE_HEIGHT_MM, PAGE_WIDTH_MM


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class PxBox(_Frozen):
    x: float = 0.0
    y: float = 0.0
    width: float = Field(default=0.0, ge=0)
    height: float = Field(default=0.0, ge=0)


class MmBox(_Frozen):
    """Box in page millimetres, y measured down from the top edge."""

    x_mm: float
    y_mm: float
    width_mm: float
    height_mm: float


class CanvasSize(_Frozen):
    width_px: float
    height_px: float


class PageSize(_Frozen):
    width_mm: float
    height_mm: float


A4_LANDSCAPE = PageSize(width_mm=PAGE_WIDTH_MM, height_mm=PAGE_HEIGHT_MM)


class Participant(_Frozen):
    # Left permissive on purpose: the orchestrator validates the whole list at
    # once so every offending row can be reported together.
    id: str = ""
    name: str = ""
    email: str | None = None


class EventInfo(_Frozen):
    id: str = ""
    title: str
    date: dt.date
    location: str = ""
    description: str | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _accept_datetimes(cls, value):
        if isinstance(value, dt.datetime):
            return value.date()
        if isinstance(value, str) and len(value) > 10 and value[10] in "T ":
            return value[:10]
        return value


class OrgInfo(_Frozen):
    name: str
    logo_url: str | None = None


class TemplateSpec(_Frozen):
    """Everything the placement UI hands over for one generation run."""

    backdrop_image: bytes | str | None = None
    name_box_px: PxBox
    canvas_size: CanvasSize
    # Optional precomputed box; skips the pixel transform when present.
    name_box_mm: MmBox | None = None
    font_family: str = "helvetica"
    font_data: bytes | None = None
    font_size: float | None = None
    text_color: str = "#000000"
    text_align: Literal["left", "center", "right"] = "center"


class FitResult(_Frozen):
    font_size: float
    lines: list[str]


class GenerationResult(_Frozen):
    participant_id: str
    participant_name: str
    success: bool
    document_bytes: bytes | None = None
    error_message: str | None = None


class Progress(_Frozen):
    completed: int
    total: int
    percentage: int
    current_participant: str | None = None


class ParticipantImport(_Frozen):
    participants: list[Participant]
    errors: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class CertificateArchive:
    filename: str
    data: bytes
