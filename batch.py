"""
Bulk certificate generation.

Participants are processed in consecutive chunks. Items inside a chunk are
composed concurrently in worker threads; chunks run one after another with a
short pause in between so the host event loop stays responsive. Cancellation
is cooperative: it is checked before each chunk and before each item, never in
the middle of a document.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
import threading
from collections.abc import Awaitable, Callable
from enum import Enum

from archive import ArchivePackager
from certificate import compose_certificate
from config import (
    AVAILABLE_MEMORY_MB,
    CHUNK_PAUSE_SECONDS,
    ESTIMATED_MB_PER_CERTIFICATE,
    MAX_BATCH_SIZE,
)
from errors import BatchInProgressError, CancellationError, ValidationError
from models import (
    CertificateArchive,
    EventInfo,
    GenerationResult,
    OrgInfo,
    Participant,
    Progress,
    TemplateSpec,
)

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
_SKIPPED = object()

ProgressCallback = Callable[[Progress], Awaitable[None] | None]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class CancelToken:
    """Cancellation handle that can be signalled from any thread."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationError("Certificate generation was cancelled")


def validate_participants(participants: list[Participant]) -> list[str]:
    """Return every problem with the participant list (empty when valid)."""
    if not participants:
        return ["At least one participant is required"]

    errors: list[str] = []
    rows_by_id: dict[str, list[int]] = {}
    for index, participant in enumerate(participants, start=1):
        pid = (participant.id or "").strip()
        if not (participant.name or "").strip():
            errors.append(f"Participant {index}: Name is required")
        if not pid:
            errors.append(f"Participant {index}: ID is required")
        else:
            rows_by_id.setdefault(pid, []).append(index)
        if participant.email and not _EMAIL_RE.fullmatch(participant.email.strip()):
            errors.append(f"Participant {index}: Invalid email format ({participant.email})")

    duplicates = {pid: rows for pid, rows in rows_by_id.items() if len(rows) > 1}
    if duplicates:
        described = ", ".join(
            f"{pid} (participants {', '.join(str(r) for r in rows)})" for pid, rows in duplicates.items()
        )
        errors.append(f"Duplicate participant IDs found: {described}")
    return errors


def recommended_batch_size(participant_count: int) -> int:
    """Chunk size that keeps per-chunk memory within a conservative budget."""
    if participant_count <= 0:
        return 0
    if participant_count <= 10:
        return min(participant_count, 5)
    if participant_count <= 50:
        return min(participant_count, 10)
    if participant_count <= 200:
        return min(participant_count, 20)
    memory_cap = AVAILABLE_MEMORY_MB // ESTIMATED_MB_PER_CERTIFICATE
    return min(memory_cap, MAX_BATCH_SIZE)


def _chunks(items: list[Participant], size: int) -> list[list[Participant]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BatchGenerator:
    """Drives certificate composition over a participant list.

    One instance runs at most one batch at a time. After a run, `state` and
    `results` describe what happened, including runs that were cancelled.
    """

    def __init__(
        self,
        composer: Callable[..., bytes] = compose_certificate,
        chunk_pause: float = CHUNK_PAUSE_SECONDS,
        packager_factory: Callable[[str], ArchivePackager] = ArchivePackager,
    ) -> None:
        self.composer = composer
        self.chunk_pause = chunk_pause
        self.packager_factory = packager_factory
        self.state = RunState.IDLE
        self.results: list[GenerationResult] = []
        self._completed = 0
        self._total = 0

    async def _emit(self, on_progress: ProgressCallback | None, name: str) -> None:
        if on_progress is None:
            return
        progress = Progress(
            completed=self._completed,
            total=self._total,
            percentage=int(self._completed * 100 / self._total + 0.5),
            current_participant=name,
        )
        outcome = on_progress(progress)
        if inspect.isawaitable(outcome):
            await outcome

    def _compose(self, abort: threading.Event, participant: Participant, *args):
        # Runs in a worker thread; items still queued when the chunk aborts never start.
        if abort.is_set():
            return _SKIPPED
        return self.composer(participant, *args)

    async def _generate_one(
        self,
        participant: Participant,
        event: EventInfo,
        org: OrgInfo,
        template: TemplateSpec,
        packager: ArchivePackager,
        on_progress: ProgressCallback | None,
        cancel_token: CancelToken,
        abort: threading.Event,
    ) -> None:
        if cancel_token.cancelled or abort.is_set():
            return
        try:
            document = await asyncio.to_thread(self._compose, abort, participant, event, org, template)
            if document is _SKIPPED:
                return
            result = GenerationResult(
                participant_id=participant.id,
                participant_name=participant.name,
                success=True,
                document_bytes=document,
            )
        except Exception as exc:
            logger.exception("Failed to generate certificate for %s", participant.name)
            result = GenerationResult(
                participant_id=participant.id,
                participant_name=participant.name,
                success=False,
                error_message=f"Error generating certificate for {participant.name}: {exc}",
            )

        if abort.is_set():
            return
        await asyncio.to_thread(packager.add, result)
        self.results.append(result)
        self._completed += 1
        await self._emit(on_progress, participant.name)

    async def _run_chunk(
        self,
        chunk: list[Participant],
        event: EventInfo,
        org: OrgInfo,
        template: TemplateSpec,
        packager: ArchivePackager,
        on_progress: ProgressCallback | None,
        cancel_token: CancelToken,
    ) -> None:
        """Compose one chunk concurrently.

        If any item fails hard, the remaining items are told to stop and every
        in-flight worker is waited for before the error propagates, so nothing
        from this chunk outlives the run.
        """
        abort = threading.Event()
        tasks = [
            asyncio.create_task(
                self._generate_one(p, event, org, template, packager, on_progress, cancel_token, abort)
            )
            for p in chunk
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            abort.set()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def run(
        self,
        participants: list[Participant],
        event: EventInfo,
        org: OrgInfo,
        template: TemplateSpec,
        *,
        batch_size: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> CertificateArchive:
        if self.state is RunState.RUNNING:
            raise BatchInProgressError("A batch is already running on this generator.")

        errors = validate_participants(participants)
        if errors:
            raise ValidationError(errors)
        size = batch_size if batch_size is not None else recommended_batch_size(len(participants))
        if size < 1:
            raise ValidationError(f"Batch size must be at least 1, got {size}.")

        cancel_token = cancel_token or CancelToken()
        packager = self.packager_factory(event.title)
        self.state = RunState.RUNNING
        self.results = []
        self._completed = 0
        self._total = len(participants)
        chunks = _chunks(list(participants), size)
        logger.info(
            "Generating %d certificates in %d chunk(s) of up to %d", self._total, len(chunks), size
        )

        try:
            for index, chunk in enumerate(chunks):
                cancel_token.raise_if_cancelled()
                await self._run_chunk(chunk, event, org, template, packager, on_progress, cancel_token)
                if index + 1 < len(chunks):
                    await asyncio.sleep(self.chunk_pause)
            if cancel_token.cancelled and self._completed < self._total:
                # Items skipped mid-chunk leave the run incomplete.
                cancel_token.raise_if_cancelled()
            archive = await asyncio.to_thread(packager.finish)
        except CancellationError:
            self.state = RunState.CANCELLED
            packager.discard()
            logger.info("Generation cancelled after %d of %d certificates", self._completed, self._total)
            raise
        except BaseException:
            self.state = RunState.FAILED
            packager.discard()
            raise

        self.state = RunState.COMPLETED
        failed = sum(1 for r in self.results if not r.success)
        logger.info("Generated %d certificates (%d failed) -> %s", self._total, failed, archive.filename)
        return archive


def generate_bulk_certificates(
    participants: list[Participant],
    event: EventInfo,
    org: OrgInfo,
    template: TemplateSpec,
    *,
    batch_size: int | None = None,
    on_progress: ProgressCallback | None = None,
    cancel_token: CancelToken | None = None,
) -> CertificateArchive:
    """Blocking wrapper around BatchGenerator.run for scripts."""
    return asyncio.run(
        BatchGenerator().run(
            participants,
            event,
            org,
            template,
            batch_size=batch_size,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )
    )
