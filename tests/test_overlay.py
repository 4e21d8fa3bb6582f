"""
Tests for the PDF overlay renderer.
"""

from io import BytesIO

import pytest
from pypdf import PdfReader, PdfWriter

from tettovivo_backend.configuration import OverlaySettings, load_settings
from tettovivo_backend.errors import RenderError, TemplateLoadError
from tettovivo_backend.overlay import OverlayRenderer, overlay_lines

EXPECTED_LINES = [
    "COMMITTENTE: Anna Rossi",
    "CODICE FISCALE: RSSANN80A01F205X",
    "INDIRIZZO: Via Roma 1",
    "COMUNE: Milano",
    "POD: IT001E12345678",
    "POTENZA: 3.0 kW",
]


@pytest.fixture
def renderer():
    return OverlayRenderer(OverlaySettings())


class TestOverlayLines:
    def test_default_six_lines(self, sample_submission):
        assert overlay_lines(OverlaySettings().lines, sample_submission, "3.0") == EXPECTED_LINES

    def test_no_technical_contact_line(self, sample_submission):
        lines = overlay_lines(OverlaySettings().lines, sample_submission, "3.0")
        assert not any(line.startswith("TECNICO") for line in lines)

    def test_unknown_placeholder(self, sample_submission):
        with pytest.raises(RenderError):
            overlay_lines(["TECNICO: {tecnico}"], sample_submission, "3.0")

    def test_default_positions(self, renderer):
        assert renderer.positions(6) == [(55, 770), (55, 756), (55, 742), (55, 728), (55, 714), (55, 700)]

    def test_configured_positions(self):
        renderer = OverlayRenderer(OverlaySettings(x=100, y_top=500, line_gap=20))
        assert renderer.positions(3) == [(100, 500), (100, 480), (100, 460)]


class TestRender:
    def test_overlay_on_first_page(self, renderer, sample_submission, template_pdf_bytes):
        output = renderer.render(template_pdf_bytes, sample_submission, "3.0")

        text = PdfReader(BytesIO(output)).pages[0].extract_text()
        for line in EXPECTED_LINES:
            assert line in text
        assert "Monofase BT 3.0 kW pagina 1" in text

    def test_other_pages_untouched(self, renderer, sample_submission, template_pdf_bytes):
        output = PdfReader(BytesIO(renderer.render(template_pdf_bytes, sample_submission, "3.0")))
        template = PdfReader(BytesIO(template_pdf_bytes))

        assert len(output.pages) == len(template.pages) == 2
        assert output.pages[1].extract_text() == template.pages[1].extract_text()
        assert "POD:" not in output.pages[1].extract_text()

    def test_template_bytes_not_modified(self, renderer, sample_submission, template_pdf_bytes):
        original = bytes(template_pdf_bytes)
        renderer.render(template_pdf_bytes, sample_submission, "3.0")
        assert template_pdf_bytes == original

    def test_rendering_is_repeatable(self, renderer, sample_submission, template_pdf_bytes):
        first = PdfReader(BytesIO(renderer.render(template_pdf_bytes, sample_submission, "3.0")))
        second = PdfReader(BytesIO(renderer.render(template_pdf_bytes, sample_submission, "3.0")))
        assert first.pages[0].extract_text() == second.pages[0].extract_text()

    @pytest.mark.parametrize("garbage", [b"", b"not a pdf at all"])
    def test_unparsable_template(self, renderer, sample_submission, garbage):
        with pytest.raises(TemplateLoadError):
            renderer.render(garbage, sample_submission, "3.0")

    def test_unknown_font(self, sample_submission, template_pdf_bytes):
        renderer = OverlayRenderer(OverlaySettings(font_name="NoSuchFont-Bold"))
        with pytest.raises(RenderError):
            renderer.render(template_pdf_bytes, sample_submission, "3.0")

    def test_document_structure_preserved(self, renderer, sample_submission, template_pdf_bytes):
        writer = PdfWriter(clone_from=BytesIO(template_pdf_bytes))
        writer.add_metadata({"/Title": "Schema unifilare 3.0 kW"})
        writer.add_outline_item("Schema unifilare", 0)
        template = BytesIO()
        writer.write(template)

        output = PdfReader(BytesIO(renderer.render(template.getvalue(), sample_submission, "3.0")))

        assert output.metadata.title == "Schema unifilare 3.0 kW"
        assert [item.title for item in output.outline] == ["Schema unifilare"]
        assert "POD: IT001E12345678" in output.pages[0].extract_text()


class TestOverlaySettingsFromEnvironment:
    def test_env_overrides_calibration(self, monkeypatch):
        monkeypatch.setenv("PDF_X", "80")
        monkeypatch.setenv("PDF_Y_TOP", "600")
        monkeypatch.setenv("PDF_LINE_GAP", "12")
        monkeypatch.setenv("PDF_FONT_SIZE", "8.5")

        overlay = load_settings().overlay

        assert (overlay.x, overlay.y_top, overlay.line_gap, overlay.font_size) == (80.0, 600.0, 12.0, 8.5)
        assert OverlayRenderer(overlay).positions(2) == [(80.0, 600.0), (80.0, 588.0)]

    def test_defaults_without_env(self, monkeypatch):
        for name in ("PDF_X", "PDF_Y_TOP", "PDF_LINE_GAP", "PDF_FONT_SIZE"):
            monkeypatch.delenv(name, raising=False)

        overlay = load_settings().overlay

        assert (overlay.x, overlay.y_top, overlay.line_gap, overlay.font_size) == (55, 770, 14, 10)
