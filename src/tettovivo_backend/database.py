"""
SQLite archive for submission records.

This module provides an append-only persistence layer: records are created
once and can then be listed or fetched by id. There is no update or delete.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import ArchiveError
from .utils import ensure_directory

logger = logging.getLogger(__name__)

SUMMARY_COLUMNS = (
    "id, created_at, nome, cognome, comune, pod, potenza_kw, pdf_filename, txt_filename"
)

RECORD_FIELDS = (
    "nome",
    "cognome",
    "indirizzo",
    "comune",
    "codice_fiscale",
    "pod",
    "potenza_kw",
    "pdf_filename",
    "pdf_data",
    "txt_filename",
    "txt_data",
)


def _deserialize_datetime(s: str) -> Optional[datetime]:
    """Deserialize the store's UTC timestamp string to an aware datetime."""
    if not s:
        return None
    parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SubmissionDatabase:
    """
    SQLite database for submission archival.

    The path comes from ``StorageSettings.database_path``.

    Identifiers and creation timestamps are assigned by SQLite itself, so
    concurrent creates need no coordination on our side.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        try:
            ensure_directory(self.db_path.parent)
            self._init_db()
        except (OSError, sqlite3.Error) as exc:
            raise ArchiveError(f"Archive unavailable: {exc}") from exc

    @contextmanager
    def _get_connection(self):
        """Get a database connection with proper settings."""
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS submissions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    created_at TEXT NOT NULL
                        DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
                    nome TEXT NOT NULL,
                    cognome TEXT NOT NULL,
                    indirizzo TEXT NOT NULL,
                    comune TEXT NOT NULL,
                    codice_fiscale TEXT NOT NULL,
                    pod TEXT NOT NULL,
                    potenza_kw TEXT NOT NULL,
                    pdf_filename TEXT NOT NULL,
                    pdf_data BLOB NOT NULL,
                    txt_filename TEXT NOT NULL,
                    txt_data BLOB NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_submissions_created_at
                ON submissions(created_at DESC)
            """)

    def create(self, record: Dict[str, Any]) -> Tuple[int, datetime]:
        """
        Archive a new submission.

        Args:
            record: Mapping with every key in ``RECORD_FIELDS``

        Returns:
            The store-assigned ``(id, created_at)``

        Raises:
            ArchiveError: If the record cannot be written
        """
        missing = [name for name in RECORD_FIELDS if name not in record]
        if missing:
            raise ArchiveError(f"Record is missing fields: {', '.join(missing)}")

        placeholders = ", ".join("?" for _ in RECORD_FIELDS)
        values = [
            sqlite3.Binary(record[name]) if name.endswith("_data") else record[name]
            for name in RECORD_FIELDS
        ]
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    f"INSERT INTO submissions ({', '.join(RECORD_FIELDS)}) VALUES ({placeholders})",
                    values,
                )
                row = conn.execute(
                    "SELECT id, created_at FROM submissions WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error(f"Archive write failed at {self.db_path}: {exc}")
            raise ArchiveError(f"Archive write failed: {exc}") from exc

        return row["id"], _deserialize_datetime(row["created_at"])

    def list(self) -> List[Dict[str, Any]]:
        """
        List all submission summaries ordered by creation time (newest first).

        Artifact bytes are not loaded.
        """
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    f"SELECT {SUMMARY_COLUMNS} FROM submissions ORDER BY created_at DESC, id DESC"
                ).fetchall()
        except sqlite3.Error as exc:
            raise ArchiveError(f"Archive read failed: {exc}") from exc

        return [self._row_to_dict(row) for row in rows]

    def get(self, submission_id: int) -> Optional[Dict[str, Any]]:
        """
        Retrieve a full record, artifact bytes included.

        Returns:
            Record dictionary or None if not found
        """
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM submissions WHERE id = ?", (submission_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise ArchiveError(f"Archive read failed: {exc}") from exc

        if not row:
            return None
        return self._row_to_dict(row)

    def _row_to_dict(self, row: sqlite3.Row) -> Dict[str, Any]:
        """Convert a database row to a plain dictionary."""
        data = dict(row)
        data["created_at"] = _deserialize_datetime(data["created_at"])
        for blob in ("pdf_data", "txt_data"):
            if blob in data:
                data[blob] = bytes(data[blob])
        return data
