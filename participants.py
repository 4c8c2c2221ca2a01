"""
Participant import from CSV text.

Headers are matched case-insensitively: `name` or `full_name`, `id` or
`user_id`, and an optional `email`. Bad rows are reported one by one and
never stop the rest of the file from being read.
"""

from __future__ import annotations

import csv
import io
import re
from pathlib import Path

from errors import ValidationError
from models import Participant, ParticipantImport

_NAME_HEADERS = ("name", "full_name")
_ID_HEADERS = ("id", "user_id")
_EMAIL_HEADERS = ("email",)
_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def _find_column(fieldnames: list[str], candidates: tuple[str, ...]) -> str | None:
    by_lower = {name.strip().lower(): name for name in fieldnames if name}
    for candidate in candidates:
        if candidate in by_lower:
            return by_lower[candidate]
    return None


def parse_participants_csv(text: str) -> ParticipantImport:
    reader = csv.DictReader(io.StringIO(text.lstrip("\ufeff")))
    fieldnames = list(reader.fieldnames or [])

    name_col = _find_column(fieldnames, _NAME_HEADERS)
    id_col = _find_column(fieldnames, _ID_HEADERS)
    email_col = _find_column(fieldnames, _EMAIL_HEADERS)
    missing = []
    if not name_col:
        missing.append("name (or full_name)")
    if not id_col:
        missing.append("id (or user_id)")
    if missing:
        raise ValidationError(
            f"CSV is missing required column(s): {', '.join(missing)}. Columns: {fieldnames}"
        )

    participants: list[Participant] = []
    errors: list[str] = []
    # Row numbers count the header as row 1, matching what a spreadsheet shows.
    for row_number, row in enumerate(reader, start=2):
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        name = (row.get(name_col) or "").strip()
        pid = (row.get(id_col) or "").strip()
        email = (row.get(email_col) or "").strip() if email_col else ""

        row_errors = []
        if not name:
            row_errors.append("name is required")
        if not pid:
            row_errors.append("id is required")
        if email and not _EMAIL_RE.fullmatch(email):
            row_errors.append(f"invalid email '{email}'")
        if row_errors:
            errors.append(f"Row {row_number}: {', '.join(row_errors)}")
            continue
        participants.append(Participant(id=pid, name=name, email=email or None))

    if not participants and not errors:
        errors.append("CSV has no data rows.")
    return ParticipantImport(participants=participants, errors=errors)


def load_participants_csv(path: Path) -> ParticipantImport:
    with path.open("r", newline="", encoding="utf-8-sig") as f:
        return parse_participants_csv(f.read())
