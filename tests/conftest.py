"""
Pytest configuration and fixtures for TettoVivo Backend tests.
"""

import os
import shutil
import tempfile
from io import BytesIO
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from reportlab.pdfgen import canvas

RATINGS = ["2.0", "3.0", "3.6", "5.0", "6.0"]


def make_template_pdf(title: str, pages: int = 2) -> bytes:
    """Build a small multi-page A4 PDF standing in for a real template."""
    buffer = BytesIO()
    canv = canvas.Canvas(buffer, pagesize=(595.27, 841.89))
    for index in range(pages):
        canv.setFont("Helvetica", 12)
        canv.drawString(300, 500, f"{title} pagina {index + 1}")
        canv.showPage()
    canv.save()
    return buffer.getvalue()


def write_templates(root: Path) -> Path:
    (root / "pdf").mkdir(parents=True, exist_ok=True)
    (root / "txt").mkdir(parents=True, exist_ok=True)
    for rating in RATINGS:
        pdf = make_template_pdf(f"Monofase BT {rating} kW")
        (root / "pdf" / f"Monofase_BT_senza_accumulo_{rating} kW.pdf").write_bytes(pdf)
        (root / "txt" / f"cm {rating} kW.txt").write_bytes(f"Schema {rating} kW\nriga due\n".encode("utf-8"))
    return root


# Set test environment variables before importing the app
TEMPLATE_ROOT = write_templates(Path(tempfile.mkdtemp(prefix="tettovivo_test_templates_")))
DATA_DIR = tempfile.mkdtemp(prefix="tettovivo_test_data_")
os.environ["TEMPLATES_DIR"] = str(TEMPLATE_ROOT)
os.environ["DATABASE_PATH"] = os.path.join(DATA_DIR, "archive.db")
os.environ["ADMIN_KEY"] = "test-admin-key-12345"
os.environ["FORM_PASSWORD"] = "test-form-password"
os.environ.pop("GMAIL_USER", None)
os.environ.pop("GMAIL_PASS", None)

from tettovivo_backend.configuration import load_settings  # noqa: E402
from tettovivo_backend.main import app  # noqa: E402
from tettovivo_backend.models import SubmissionInput  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def test_dirs():
    """Cleanup test directories after the session."""
    yield {"templates": TEMPLATE_ROOT, "data": DATA_DIR}

    shutil.rmtree(TEMPLATE_ROOT, ignore_errors=True)
    shutil.rmtree(DATA_DIR, ignore_errors=True)


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def admin_headers():
    return {"X-API-Key": "test-admin-key-12345"}


@pytest.fixture
def form_data():
    """The reference submission as posted by the HTML form."""
    return {
        "nome": "Anna",
        "cognome": "Rossi",
        "indirizzo": "Via Roma 1",
        "comune": "Milano",
        "codice_fiscale": "RSSANN80A01F205X",
        "pod": "IT001E12345678",
        "potenza_kw": "3",
        "password": "test-form-password",
    }


@pytest.fixture
def sample_submission(form_data):
    fields = {key: value for key, value in form_data.items() if key != "password"}
    return SubmissionInput(**fields)


@pytest.fixture
def template_root():
    return TEMPLATE_ROOT


@pytest.fixture
def template_pdf_bytes():
    return (TEMPLATE_ROOT / "pdf" / "Monofase_BT_senza_accumulo_3.0 kW.pdf").read_bytes()


@pytest.fixture
def app_config(tmp_path):
    """Settings isolated to a per-test archive, with mail disabled."""
    return load_settings(overrides={
        "templates": {"root": str(TEMPLATE_ROOT)},
        "storage": {"database_path": str(tmp_path / "archive.db")},
        "mail": {"user": None, "password": None},
    })


class RecordingDispatcher:
    """Stands in for MailDispatcher and keeps every message it is asked to send."""

    def __init__(self, enabled: bool = True, error: Exception | None = None):
        self.enabled = enabled
        self.error = error
        self.calls = []

    def send(self, subject, body, attachments):
        self.calls.append({"subject": subject, "body": body, "attachments": list(attachments)})
        if self.error is not None:
            raise self.error
        return self.enabled


@pytest.fixture
def recording_dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def dispatcher_factory():
    return RecordingDispatcher
