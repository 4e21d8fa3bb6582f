"""
Power-rating normalization and the template registry.

A rating typed into the form ("3", " 3.6 ", "3,6") is canonicalized into the
registry key shape ("3.0", "3.6") before lookup, so the registry holds exactly
one key per rating. Ratings and their template files are configuration: a new
rating is a new entry under ``templates.entries`` in ``config.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping

from .configuration import TemplateSettings
from .errors import InvalidRatingError, MissingFieldError


@dataclass(frozen=True)
class TemplatePair:
    pdf: str
    txt: str


def normalize_rating(raw: str) -> str:
    """
    Canonicalize a user-supplied power rating into a registry key.

    Whitespace is trimmed, a decimal comma becomes a dot, and ``.0`` is
    appended when no decimal separator is present. Idempotent.

    Raises:
        MissingFieldError: If the rating is empty after trimming

    Example:
        >>> normalize_rating(" 3 ")
        '3.0'
        >>> normalize_rating("3,6")
        '3.6'
    """
    value = (raw or "").strip()
    if not value:
        raise MissingFieldError("potenza_kw")
    value = value.replace(",", ".")
    if "." not in value:
        value = f"{value}.0"
    return value


def _rating_sort_key(key: str):
    try:
        return (0, float(key), key)
    except ValueError:
        return (1, 0.0, key)


class TemplateRegistry:
    """Read-only mapping from normalized rating to its template pair."""

    def __init__(self, entries: Mapping[str, TemplatePair]) -> None:
        normalized: Dict[str, TemplatePair] = {}
        for key, pair in entries.items():
            canonical = normalize_rating(key)
            if canonical in normalized:
                raise ValueError(f"Duplicate template entry for rating {canonical!r}")
            normalized[canonical] = pair
        self._entries = MappingProxyType(normalized)

    @classmethod
    def from_settings(cls, settings: TemplateSettings) -> "TemplateRegistry":
        return cls({key: TemplatePair(pdf=files.pdf, txt=files.txt) for key, files in settings.entries.items()})

    def resolve(self, key: str) -> TemplatePair:
        try:
            return self._entries[key]
        except KeyError:
            raise InvalidRatingError(key) from None

    def keys(self) -> List[str]:
        return sorted(self._entries, key=_rating_sort_key)

    def as_dict(self) -> Dict[str, Dict[str, str]]:
        return {key: {"pdf": self._entries[key].pdf, "txt": self._entries[key].txt} for key in self.keys()}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class TemplateLocator:
    """Turns template references from the registry into paths on disk."""

    def __init__(self, settings: TemplateSettings) -> None:
        self.pdf_dir = Path(settings.pdf_dir)
        self.txt_dir = Path(settings.txt_dir)

    def pdf_path(self, pair: TemplatePair) -> Path:
        return self.pdf_dir / pair.pdf

    def txt_path(self, pair: TemplatePair) -> Path:
        return self.txt_dir / pair.txt
