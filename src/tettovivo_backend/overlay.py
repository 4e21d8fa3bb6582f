"""
Fixed-position text overlay on the first page of a PDF template.

The overlay is drawn with reportlab onto a blank page of the same size as the
template's first page, then merged onto that page with pypdf. The writer is a
clone of the template, so the other pages and document-level parts (metadata,
outline, form fields) are carried through untouched.
"""

from __future__ import annotations

import logging
from io import BytesIO
from typing import List

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.pdfgen import canvas

from .configuration import OverlaySettings
from .errors import RenderError, TemplateLoadError
from .models import SubmissionInput

logger = logging.getLogger(__name__)


def overlay_lines(lines: List[str], submission: SubmissionInput, rating: str) -> List[str]:
    """
    Expand the configured line formats for one submission.

    Formats may reference any input field plus ``full_name``; ``potenza_kw``
    is the normalized rating.
    """
    values = submission.model_dump()
    values["potenza_kw"] = rating
    values["full_name"] = submission.full_name
    try:
        return [line.format(**values) for line in lines]
    except (KeyError, IndexError, ValueError) as exc:
        raise RenderError(f"Invalid overlay line format: {exc}") from exc


class OverlayRenderer:
    def __init__(self, settings: OverlaySettings) -> None:
        self.settings = settings

    def lines_for(self, submission: SubmissionInput, rating: str) -> List[str]:
        return overlay_lines(self.settings.lines, submission, rating)

    def positions(self, count: int) -> List[tuple[float, float]]:
        s = self.settings
        return [(s.x, s.y_top - i * s.line_gap) for i in range(count)]

    def render(self, template_bytes: bytes, submission: SubmissionInput, rating: str) -> bytes:
        """
        Return a new PDF with the overlay stamped on page one.

        Args:
            template_bytes: The template PDF; never modified
            submission: Cleaned submission fields
            rating: Normalized power rating, e.g. ``"3.0"``

        Raises:
            TemplateLoadError: If the bytes are not a readable PDF with at least one page
            RenderError: If drawing or merging the overlay fails
        """
        try:
            reader = PdfReader(BytesIO(template_bytes))
            if reader.is_encrypted:
                reader.decrypt("")
            pages = list(reader.pages)
            if pages:
                first_box = pages[0].mediabox
                width, height = float(first_box.width), float(first_box.height)
        except (PyPdfError, ValueError, KeyError, TypeError) as exc:
            raise TemplateLoadError(f"Template PDF could not be parsed: {exc}") from exc
        if not pages:
            raise TemplateLoadError("Template PDF has no pages")

        lines = self.lines_for(submission, rating)
        try:
            overlay_page = self._draw_overlay(lines, width, height)
            writer = PdfWriter(clone_from=reader)
            writer.pages[0].merge_page(overlay_page)
            output = BytesIO()
            writer.write(output)
        except Exception as exc:
            logger.exception("Overlay rendering failed")
            raise RenderError(f"Overlay rendering failed: {exc}") from exc

        logger.debug(f"Rendered {len(lines)} overlay lines onto a {len(pages)}-page template")
        return output.getvalue()

    def _draw_overlay(self, lines: List[str], width: float, height: float):
        buffer = BytesIO()
        canv = canvas.Canvas(buffer, pagesize=(width, height))
        canv.setFont(self.settings.font_name, self.settings.font_size)
        canv.setFillColorRGB(0, 0, 0)
        for line, (x, y) in zip(lines, self.positions(len(lines))):
            canv.drawString(x, y, line)
        canv.showPage()
        canv.save()
        buffer.seek(0)
        return PdfReader(buffer).pages[0]
