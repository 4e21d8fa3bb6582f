"""
Submission assembly: from raw form fields to a rendered artifact bundle.

Assembly runs through fixed stages (validate, normalize, resolve template,
render) and either completes with an ``OutputBundle`` or fails with a
``SubmissionError`` tagged with the stage it failed in. Nothing is persisted
here; a failed assembly leaves no trace besides a log line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable
from uuid import uuid4

from .errors import MissingFieldError, SubmissionError, TemplateIOError
from .models import REQUIRED_FIELDS, AssemblyStage, SubmissionInput
from .overlay import OverlayRenderer
from .templates import TemplateLocator, TemplateRegistry, normalize_rating
from .utils import filename_timestamp, sanitize_filename

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _short_suffix() -> str:
    return uuid4().hex[:8]


@dataclass(frozen=True)
class OutputBundle:
    """
    The artifacts produced by one successful assembly.

    Attributes:
        submission: Cleaned (trimmed) input fields
        rating: Normalized power rating used for template lookup
        pdf_bytes: Overlay-filled document
        pdf_filename: Download name for the document
        txt_bytes: Companion text file, copied verbatim from its template
        txt_filename: Download name for the text file
        pdf_template: Template reference the document was rendered from
        txt_template: Template reference the text file was copied from
        stage: Always ``COMPLETE``; failures raise instead of returning a bundle
    """

    submission: SubmissionInput
    rating: str
    pdf_bytes: bytes
    pdf_filename: str
    txt_bytes: bytes
    txt_filename: str
    pdf_template: str
    txt_template: str
    stage: AssemblyStage = AssemblyStage.COMPLETE


def build_filename_base(cognome: str, nome: str, rating: str, moment: datetime, suffix: str = "") -> str:
    """
    Derive the artifact filename stem.

    Example:
        >>> build_filename_base("O'Brien", "Anne", "3.0", datetime(2026, 1, 2, tzinfo=timezone.utc))
        'O_Brien_Anne_3.0kW_2026-01-02T00-00-00-000Z'
    """
    base = f"{cognome}_{nome}_{rating}kW_{filename_timestamp(moment)}"
    if suffix:
        base = f"{base}_{suffix}"
    return sanitize_filename(base)


class SubmissionAssembler:
    """
    Validates a submission and renders its artifacts.

    Args:
        registry: Rating to template lookup
        locator: Resolves template references to files
        renderer: Draws the overlay on the document template
        clock: Source of the filename timestamp (UTC)
        suffix_factory: Source of the disambiguating filename suffix; two
            submissions for the same person and rating within one clock tick
            still get distinct filenames
    """

    def __init__(
        self,
        registry: TemplateRegistry,
        locator: TemplateLocator,
        renderer: OverlayRenderer,
        clock: Callable[[], datetime] = _utcnow,
        suffix_factory: Callable[[], str] = _short_suffix,
    ) -> None:
        self.registry = registry
        self.locator = locator
        self.renderer = renderer
        self._clock = clock
        self._suffix_factory = suffix_factory

    def assemble(self, submission: SubmissionInput) -> OutputBundle:
        stage = AssemblyStage.VALIDATING
        try:
            cleaned = self.validate(submission)

            stage = AssemblyStage.NORMALIZING
            rating = normalize_rating(cleaned.potenza_kw)

            stage = AssemblyStage.TEMPLATE_RESOLVING
            pair = self.registry.resolve(rating)

            stage = AssemblyStage.RENDERING
            cleaned = cleaned.model_copy(update={"potenza_kw": rating})
            pdf_path = self.locator.pdf_path(pair)
            txt_path = self.locator.txt_path(pair)
            pdf_bytes = self.renderer.render(self._read_template(pdf_path), cleaned, rating)
            txt_bytes = self._read_template(txt_path)
        except SubmissionError as exc:
            exc.stage = stage.value
            if exc.user_correctable:
                logger.info(f"Submission rejected during {stage.value}: {exc.message}")
            else:
                logger.error(f"Submission failed during {stage.value}: {exc.message}")
            raise

        base = build_filename_base(cleaned.cognome, cleaned.nome, rating, self._clock(), self._suffix_factory())
        bundle = OutputBundle(
            submission=cleaned,
            rating=rating,
            pdf_bytes=pdf_bytes,
            pdf_filename=f"{base}.pdf",
            txt_bytes=txt_bytes,
            txt_filename=f"{base}.txt",
            pdf_template=pair.pdf,
            txt_template=pair.txt,
        )
        logger.info(f"Assembly {bundle.stage.value}: {base} from templates {pair.pdf!r} / {pair.txt!r}")
        return bundle

    @staticmethod
    def validate(submission: SubmissionInput) -> SubmissionInput:
        """Trim every field and fail on the first one left blank."""
        cleaned = {}
        for field in REQUIRED_FIELDS:
            value = (getattr(submission, field) or "").strip()
            if not value:
                raise MissingFieldError(field)
            cleaned[field] = value
        return SubmissionInput(**cleaned)

    @staticmethod
    def _read_template(path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.error(f"Template not readable at {path.resolve()}: {exc}")
            raise TemplateIOError(f"Template not available: {path.name}") from exc

