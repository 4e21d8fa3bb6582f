from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel

# Order matters: validation reports the first blank field in form order
REQUIRED_FIELDS = ("nome", "cognome", "indirizzo", "comune", "codice_fiscale", "pod", "potenza_kw")


class AssemblyStage(str, Enum):
    VALIDATING = "validating"
    NORMALIZING = "normalizing"
    TEMPLATE_RESOLVING = "template_resolving"
    RENDERING = "rendering"
    COMPLETE = "complete"


class ArtifactKind(str, Enum):
    PDF = "pdf"
    TXT = "txt"


class SubmissionInput(BaseModel):
    nome: str = ""
    cognome: str = ""
    indirizzo: str = ""
    comune: str = ""
    codice_fiscale: str = ""
    pod: str = ""
    potenza_kw: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.nome} {self.cognome}".strip()


class SubmissionCreated(BaseModel):
    id: int
    created_at: datetime
    pdf_filename: str
    txt_filename: str


class SubmissionSummary(BaseModel):
    id: int
    created_at: datetime
    nome: str
    cognome: str
    comune: str
    pod: str
    potenza_kw: str
    pdf_filename: str
    txt_filename: str


class SubmissionDetail(SubmissionSummary):
    indirizzo: str
    codice_fiscale: str
    pdf_size: int
    txt_size: int


class Artifact(BaseModel):
    filename: str
    content_type: str
    data: bytes


class ErrorDetail(BaseModel):
    kind: str
    message: str
    field: Optional[str] = None
    value: Optional[str] = None


class ConfigMetadata(BaseModel):
    ratings: List[str]
    templates: Dict[str, Dict[str, str]]
    overlay: Dict[str, float | str]
    overlay_lines: List[str]
    mail_enabled: bool
    mail_recipient: str
