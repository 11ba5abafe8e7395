"""
Failure taxonomy for the rendering and delivery pipeline.

Every remote-call component raises one of these typed failures, carrying the
step that produced it and the upstream diagnostic text. The orchestrator
propagates them unchanged in kind.
"""
from typing import Any, Optional


class ReportForgeError(Exception):
    """Base class for every failure this service classifies."""

    retryable: bool = False

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RenderFailure(ReportForgeError):
    """The rendering server did not produce an artifact."""

    retryable = True
    step = "render"


class UploadFailure(ReportForgeError):
    """
    Base for the four upload steps.

    `result` is attached by the orchestrator before re-raising so callers can
    inspect the reached state and the allocated handle id.
    """

    step: str = "upload"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        handle_id: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code)
        self.handle_id = handle_id
        self.result: Optional[Any] = None

    @property
    def kind(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        status = f" (HTTP {self.status_code})" if self.status_code is not None else ""
        return f"{self.kind} at {self.step}{status}: {self.message}"


class AuthFailure(UploadFailure):
    """Credential exchange rejected. Always fatal, never retried automatically."""

    step = "token"
    retryable = False


class StagingFailure(UploadFailure):
    """Handle allocation rejected or unparseable. No bytes were sent."""

    step = "stage"
    retryable = True


class TransferFailure(UploadFailure):
    """Byte transfer failed. The handle may be partially populated."""

    step = "transfer"
    retryable = True


class FinalizationFailure(UploadFailure):
    """Completion action rejected. The staged bytes are orphaned."""

    step = "finalize"
    retryable = True
