from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Form, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response

from .configuration import load_settings
from .errors import ArchiveError, SubmissionError
from .models import (
    ArtifactKind,
    ConfigMetadata,
    ErrorDetail,
    SubmissionCreated,
    SubmissionDetail,
    SubmissionInput,
    SubmissionSummary,
)
from .submission_manager import SubmissionManager

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let queued notifications go out before the process exits
    logger.info("Shutting down, waiting for pending mail dispatches")
    submission_manager.shutdown(wait=True)


app = FastAPI(title="TettoVivo API", version="0.1.0", lifespan=lifespan)

allowed_origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

settings = load_settings()
submission_manager = SubmissionManager(settings)


def get_submission_manager() -> SubmissionManager:
    return submission_manager


def _secret_matches(supplied: Optional[str], expected: str) -> bool:
    return secrets.compare_digest((supplied or "").encode("utf-8"), expected.encode("utf-8"))


def require_admin_key(x_api_key: str = Header(...)) -> None:
    expected = settings.security.admin_key
    if not expected:
        raise HTTPException(status_code=503, detail="Admin access is not configured")
    if not _secret_matches(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid API key")


@app.exception_handler(SubmissionError)
async def submission_error_handler(request: Request, exc: SubmissionError) -> JSONResponse:
    if exc.user_correctable:
        return JSONResponse(status_code=400, content=exc.to_payload())

    if isinstance(exc, ArchiveError):
        status_code = 503
        detail = ErrorDetail(kind=exc.kind, message="Archivio non disponibile, riprovare più tardi")
    else:
        status_code = 500
        detail = ErrorDetail(kind=exc.kind, message="Modelli non disponibili, contattare l'amministratore")
    logger.error(f"{request.method} {request.url.path} failed ({exc.kind}, stage={exc.stage}): {exc.message}")
    return JSONResponse(status_code=status_code, content=detail.model_dump(exclude_none=True))


@app.get("/healthz")
def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/", include_in_schema=False)
def submission_form() -> FileResponse:
    return FileResponse(STATIC_DIR / "index.html", media_type="text/html")


@app.post("/submissions", response_model=SubmissionCreated, status_code=201)
def create_submission(
    nome: str = Form(""),
    cognome: str = Form(""),
    indirizzo: str = Form(""),
    comune: str = Form(""),
    codice_fiscale: str = Form(""),
    pod: str = Form(""),
    potenza_kw: str = Form(""),
    password: str = Form(""),
    manager: SubmissionManager = Depends(get_submission_manager),
) -> SubmissionCreated:
    form_password = settings.security.form_password
    if form_password and not _secret_matches(password, form_password):
        raise HTTPException(status_code=401, detail="Password errata")

    submission = SubmissionInput(
        nome=nome,
        cognome=cognome,
        indirizzo=indirizzo,
        comune=comune,
        codice_fiscale=codice_fiscale,
        pod=pod,
        potenza_kw=potenza_kw,
    )
    return manager.create_submission(submission)


@app.get(
    "/admin/submissions",
    response_model=List[SubmissionSummary],
    dependencies=[Depends(require_admin_key)],
)
def list_submissions(manager: SubmissionManager = Depends(get_submission_manager)) -> List[SubmissionSummary]:
    return manager.list_submissions()


@app.get(
    "/admin/submissions/{submission_id}",
    response_model=SubmissionDetail,
    dependencies=[Depends(require_admin_key)],
)
def get_submission(submission_id: int, manager: SubmissionManager = Depends(get_submission_manager)) -> SubmissionDetail:
    detail = manager.get_submission(submission_id)
    if not detail:
        raise HTTPException(status_code=404, detail="Submission not found")
    return detail


@app.get("/admin/submissions/{submission_id}/{kind}", dependencies=[Depends(require_admin_key)])
def download_artifact(
    submission_id: int,
    kind: ArtifactKind,
    manager: SubmissionManager = Depends(get_submission_manager),
) -> Response:
    artifact = manager.get_artifact(submission_id, kind)
    if not artifact:
        raise HTTPException(status_code=404, detail="Submission not found")
    return Response(
        content=artifact.data,
        media_type=artifact.content_type,
        headers={"Content-Disposition": f'attachment; filename="{artifact.filename}"'},
    )


@app.get("/admin/config", response_model=ConfigMetadata, dependencies=[Depends(require_admin_key)])
def get_config(manager: SubmissionManager = Depends(get_submission_manager)) -> ConfigMetadata:
    return manager.get_config_metadata()
