"""
Package generation results into one ZIP archive.

Every input row ends up as exactly one entry: a certificate PDF for a
success, an ERROR-*.txt with the failure description otherwise.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
import tempfile
import threading
import zipfile
import zlib

from config import FILENAME_MAX_LENGTH, ZIP_COMPRESS_LEVEL, ZIP_SPOOL_MAX_BYTES
from errors import PackagingError
from models import CertificateArchive, GenerationResult

logger = logging.getLogger(__name__)

DOCUMENT_EXTENSION = "pdf"


def sanitize_filename(value: str | None, max_length: int = FILENAME_MAX_LENGTH, fallback: str = "") -> str:
    """
    Make a string safe for use inside a filename.
    - Keeps only ASCII letters/digits/whitespace/hyphens
    - Collapses whitespace to single hyphens, lowercases
    - Truncates to max_length; falls back when nothing is left
    """
    raw = "" if value is None else str(value)
    safe = re.sub(r"[^A-Za-z0-9\s-]+", "", raw).strip()
    safe = re.sub(r"\s+", "-", safe).lower()[:max_length]
    return safe or fallback


def _entry_id(participant_id: str) -> str:
    # Ids stay readable, but must never introduce directories into the archive.
    return re.sub(r"[\\/:]", "_", participant_id)


def entry_name(result: GenerationResult) -> str:
    safe_name = sanitize_filename(result.participant_name, fallback="participant")
    safe_id = _entry_id(result.participant_id)
    if result.success:
        return f"certificate-{safe_name}-{safe_id}.{DOCUMENT_EXTENSION}"
    return f"ERROR-{safe_name}-{safe_id}.txt"


def archive_filename(event_title: str, now: dt.datetime | None = None) -> str:
    timestamp = (now or dt.datetime.now()).strftime("%Y-%m-%dT%H-%M-%S")
    return f"certificates-{sanitize_filename(event_title, fallback='event')}-{timestamp}.zip"


class ArchivePackager:
    """Single-writer ZIP builder.

    Concurrent producers may call add(); insertions are serialised by a lock.
    Large archives spill from memory to a temporary file.
    """

    def __init__(
        self,
        event_title: str,
        compress_level: int = ZIP_COMPRESS_LEVEL,
        spool_max_bytes: int = ZIP_SPOOL_MAX_BYTES,
    ) -> None:
        self.event_title = event_title
        self._lock = threading.Lock()
        self._names: set[str] = set()
        self._buffer = tempfile.SpooledTemporaryFile(max_size=spool_max_bytes)
        try:
            self._zip = zipfile.ZipFile(
                self._buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compress_level
            )
        except (ValueError, OSError) as exc:
            self._buffer.close()
            raise PackagingError(f"Failed to create certificate archive: {exc}") from exc
        self._closed = False

    @property
    def entry_names(self) -> list[str]:
        return sorted(self._names)

    def _unique(self, name: str) -> str:
        if name not in self._names:
            return name
        stem, dot, ext = name.rpartition(".")
        n = 2
        while f"{stem}-{n}{dot}{ext}" in self._names:
            n += 1
        return f"{stem}-{n}{dot}{ext}"

    def add(self, result: GenerationResult) -> str:
        if result.success:
            if result.document_bytes is None:
                raise PackagingError(f"Result for {result.participant_id} has no document bytes.")
            payload = result.document_bytes
        else:
            message = result.error_message or "Unknown error"
            payload = message.encode("utf-8")

        with self._lock:
            if self._closed:
                raise PackagingError("Archive is already finished.")
            name = self._unique(entry_name(result))
            try:
                self._zip.writestr(name, payload)
            except (OSError, ValueError, RuntimeError, zlib.error) as exc:
                raise PackagingError(f"Failed to add {name} to archive: {exc}") from exc
            self._names.add(name)
        return name

    def finish(self, now: dt.datetime | None = None) -> CertificateArchive:
        with self._lock:
            if self._closed:
                raise PackagingError("Archive is already finished.")
            self._closed = True
            try:
                self._zip.close()
                self._buffer.seek(0)
                data = self._buffer.read()
            except (OSError, ValueError, RuntimeError, zlib.error) as exc:
                raise PackagingError(f"Failed to create certificate archive: {exc}") from exc
            finally:
                self._buffer.close()
        logger.info("Packed %d archive entries (%d bytes)", len(self._names), len(data))
        return CertificateArchive(filename=archive_filename(self.event_title, now), data=data)

    def discard(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self._zip.close()
            finally:
                self._buffer.close()


def pack(results: list[GenerationResult], event_title: str) -> CertificateArchive:
    """Package every result into one archive. Any failure is a PackagingError."""
    packager = ArchivePackager(event_title)
    try:
        for result in results:
            packager.add(result)
    except PackagingError:
        packager.discard()
        raise
    return packager.finish()
