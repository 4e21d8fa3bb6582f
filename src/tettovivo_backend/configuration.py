from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field

# Pick up a local .env before any ${oc.env:...} interpolation is resolved
load_dotenv()

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:3]]

DEFAULT_CONFIG_PATH = next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)
if DEFAULT_CONFIG_PATH is None:  # pragma: no cover - fail fast in broken installs
    raise FileNotFoundError("Default config.yaml could not be located; ensure package data was installed.")


class OverlaySettings(BaseModel):
    x: float = 55
    y_top: float = 770
    line_gap: float = 14
    font_size: float = 10
    font_name: str = "Helvetica"
    lines: List[str] = Field(default_factory=lambda: [
        "COMMITTENTE: {full_name}",
        "CODICE FISCALE: {codice_fiscale}",
        "INDIRIZZO: {indirizzo}",
        "COMUNE: {comune}",
        "POD: {pod}",
        "POTENZA: {potenza_kw} kW",
    ])


class TemplateFiles(BaseModel):
    pdf: str
    txt: str


class TemplateSettings(BaseModel):
    root: Path = Path("templates")
    pdf_subdir: str = "pdf"
    txt_subdir: str = "txt"
    entries: Dict[str, TemplateFiles] = Field(default_factory=dict)

    @property
    def pdf_dir(self) -> Path:
        return self.root / self.pdf_subdir

    @property
    def txt_dir(self) -> Path:
        return self.root / self.txt_subdir


class MailSettings(BaseModel):
    user: Optional[str] = None
    password: Optional[str] = None
    from_address: Optional[str] = None
    recipient: str = "pratiche@tettovivo.it"
    host: str = "smtp.gmail.com"
    port: int = 465
    timeout: float = 30

    @property
    def enabled(self) -> bool:
        # Absent credentials mean "mail disabled", not a configuration error
        return bool(self.user and self.password)

    @property
    def sender(self) -> str:
        return self.from_address or self.user or ""


class StorageSettings(BaseModel):
    database_path: Path = Path("data/tettovivo.db")


class SecuritySettings(BaseModel):
    form_password: Optional[str] = None
    admin_key: Optional[str] = None


class ExecutorSettings(BaseModel):
    max_workers: int = 2


class AppConfig(BaseModel):
    """Runtime configuration, built once at startup and passed to components."""

    overlay: OverlaySettings = Field(default_factory=OverlaySettings)
    templates: TemplateSettings = Field(default_factory=TemplateSettings)
    mail: MailSettings = Field(default_factory=MailSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    executor: ExecutorSettings = Field(default_factory=ExecutorSettings)


def resolve_config_path(config_path: Path | None = None) -> Path:
    if config_path is not None:
        return Path(config_path)
    env_path = os.environ.get("TETTOVIVO_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


@lru_cache(maxsize=4)
def _load_base_config(config_path: Path) -> DictConfig:
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found at {config_path}")
    return OmegaConf.load(config_path)


def make_runtime_config(overrides: Dict[str, Any] | None = None, config_path: Path | None = None) -> DictConfig:
    base_container = OmegaConf.to_container(_load_base_config(resolve_config_path(config_path)), resolve=False)
    base = OmegaConf.create(base_container)
    OmegaConf.set_struct(base, True)
    # Template entries are open-ended; everything else must match a known key
    OmegaConf.set_struct(base.templates.entries, False)

    if not overrides:
        return base
    return DictConfig(OmegaConf.merge(base, OmegaConf.create(overrides)))


def load_settings(overrides: Dict[str, Any] | None = None, config_path: Path | None = None) -> AppConfig:
    """
    Build the application configuration.

    Layers, lowest precedence first: the packaged ``config.yaml`` defaults,
    environment variables (through ``${oc.env:...}`` interpolation, after a
    local ``.env`` has been loaded), and explicit ``overrides``.

    Raises:
        omegaconf.errors.ConfigKeyError: If an override names an unknown key
        pydantic.ValidationError: If a value has the wrong type
    """
    runtime_config = make_runtime_config(overrides, config_path)
    container = OmegaConf.to_container(runtime_config, resolve=True, enum_to_str=True)
    return AppConfig.model_validate(container)
