"""
Error taxonomy for the submission lifecycle.

User-correctable errors (missing field, invalid rating) carry the offending
field or value so the API can report them verbatim. Operator-correctable errors
(template missing or unparsable, render failure) are reported generically to
the caller and logged with their cause. Notification errors never reach the
caller, so they sit outside the ``SubmissionError`` hierarchy.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class SubmissionError(Exception):
    """Base class for failures that abort a submission before it is archived."""

    kind = "submission_error"
    user_correctable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        # Filled in by the assembler with the stage the failure happened in
        self.stage: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class MissingFieldError(SubmissionError):
    kind = "missing_field"
    user_correctable = True

    def __init__(self, field: str) -> None:
        super().__init__(f"Campo obbligatorio mancante: {field}")
        self.field = field

    def to_payload(self) -> Dict[str, Any]:
        return {**super().to_payload(), "field": self.field}


class InvalidRatingError(SubmissionError):
    kind = "invalid_rating"
    user_correctable = True

    def __init__(self, value: str) -> None:
        super().__init__(f"Potenza non valida: {value}")
        self.value = value

    def to_payload(self) -> Dict[str, Any]:
        return {**super().to_payload(), "value": self.value}


class TemplateLoadError(SubmissionError):
    """The document template could not be parsed as a PDF."""

    kind = "template_load"


class RenderError(SubmissionError):
    """Drawing or merging the overlay failed."""

    kind = "render"


class TemplateIOError(SubmissionError):
    """A template file is missing or unreadable."""

    kind = "template_io"


class ArchiveError(SubmissionError):
    """The archive store is unavailable or rejected the write."""

    kind = "archive"


class NotificationError(Exception):
    """Mail dispatch failed. Logged by the caller, never surfaced over HTTP."""
