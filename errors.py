"""Exception types raised by the certificate engine."""

from __future__ import annotations


class CertificateError(Exception):
    """Base class for every error the engine raises on purpose."""


class ValidationError(CertificateError):
    """Bad input shape. Carries every violation, not just the first one."""

    def __init__(self, errors: list[str] | str) -> None:
        if isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed.")


class CancellationError(CertificateError):
    """The caller asked the run to stop. Not a content failure."""


class RenderError(CertificateError):
    def __init__(self, participant_id: str, message: str) -> None:
        self.participant_id = participant_id
        self.message = message
        super().__init__(f"[{participant_id}] {message}")


class PackagingError(CertificateError):
    """The archive could not be built. Always fatal for the run."""


class BatchInProgressError(CertificateError):
    pass
