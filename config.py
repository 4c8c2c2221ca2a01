"""
Central configuration for the certificate engine.

Values are read from the environment once, at import time. Entry points call
load_dotenv() before importing this module so a local .env file can override
the defaults. Keep runtime-safe (no secrets).
"""

from __future__ import annotations

import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}.") from None


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, float(default)))


# Page (A4 landscape, millimetres)
PAGE_WIDTH_MM = 297.0
PAGE_HEIGHT_MM = 210.0

# Name fitting
MIN_FONT_SIZE = _env_float("CERT_MIN_FONT_SIZE", 8.0)  # points, hard floor
MAX_FONT_SIZE = _env_float("CERT_MAX_FONT_SIZE", 72.0)  # points, hard ceiling
TEXT_PADDING_MM = _env_float("CERT_TEXT_PADDING_MM", 2.0)
LINE_HEIGHT = _env_float("CERT_LINE_HEIGHT", 1.2)
# The PDF name renders slightly smaller than the on-screen preview.
PREVIEW_FONT_SHRINK = 4.0

DEFAULT_FONT = "Helvetica"
CUSTOM_FONT_PREFIX = "CustomFont"

# Bulk generation
MAX_BATCH_SIZE = _env_int("CERT_MAX_BATCH_SIZE", 25)
ESTIMATED_MB_PER_CERTIFICATE = 2
AVAILABLE_MEMORY_MB = 500
CHUNK_PAUSE_SECONDS = _env_float("CERT_CHUNK_PAUSE_SECONDS", 0.1)

# Archive
ZIP_COMPRESS_LEVEL = _env_int("CERT_ZIP_COMPRESS_LEVEL", 6)
ZIP_SPOOL_MAX_BYTES = _env_int("CERT_ZIP_SPOOL_MAX_BYTES", 25 * 1024 * 1024)  # spill to disk after ~25MB
FILENAME_MAX_LENGTH = 50
SINGLE_FILENAME_MAX_LENGTH = 30

# HTTP / logging
LOG_LEVEL = os.environ.get("CERT_LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.environ.get(
        "CERT_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(",")
    if origin.strip()
]
