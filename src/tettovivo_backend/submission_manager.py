"""
Submission lifecycle coordination.

This module ties the pieces of a submission together:
- Assembly (validation, template resolution, overlay rendering)
- Archival in the submission database
- Out-of-band mail dispatch on a background thread pool
- Read access to archived records and their artifacts

The SubmissionManager class is the service layer behind the HTTP API. A caller
receives its archive identifier as soon as the record is stored; mail dispatch
runs afterwards and its failures are only logged.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_futures
from threading import Lock
from typing import List, Optional, Set

from .assembler import OutputBundle, SubmissionAssembler
from .configuration import AppConfig
from .database import SubmissionDatabase
from .errors import NotificationError
from .models import (
    Artifact,
    ArtifactKind,
    ConfigMetadata,
    SubmissionCreated,
    SubmissionDetail,
    SubmissionInput,
    SubmissionSummary,
)
from .notifier import MailDispatcher
from .overlay import OverlayRenderer
from .templates import TemplateLocator, TemplateRegistry

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    ArtifactKind.PDF: "application/pdf",
    ArtifactKind.TXT: "text/plain; charset=utf-8",
}


def _notification_subject(bundle: OutputBundle) -> str:
    s = bundle.submission
    return f"Nuova pratica: {s.cognome} {s.nome} - {bundle.rating} kW"


def _notification_body(bundle: OutputBundle, submission_id: int) -> str:
    s = bundle.submission
    return "\n".join([
        f"Pratica #{submission_id}",
        "",
        f"Committente: {s.full_name}",
        f"Codice fiscale: {s.codice_fiscale}",
        f"Indirizzo: {s.indirizzo}",
        f"Comune: {s.comune}",
        f"POD: {s.pod}",
        f"Potenza: {bundle.rating} kW",
        "",
        f"In allegato: {bundle.pdf_filename}, {bundle.txt_filename}",
    ])


class SubmissionManager:
    """
    Central coordinator for submissions.

    Attributes:
        settings: Application configuration the components were built from
        registry: Rating to template lookup shared with the assembler
        assembler: Builds output bundles from raw input
        database: Append-only archive
        dispatcher: Mail sender used by background tasks
    """

    def __init__(
        self,
        settings: AppConfig,
        database: SubmissionDatabase | None = None,
        dispatcher: MailDispatcher | None = None,
        assembler: SubmissionAssembler | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.settings = settings
        self.assembler = assembler or SubmissionAssembler(
            registry=TemplateRegistry.from_settings(settings.templates),
            locator=TemplateLocator(settings.templates),
            renderer=OverlayRenderer(settings.overlay),
        )
        self.registry = self.assembler.registry
        self.database = database or SubmissionDatabase(settings.storage.database_path)
        self.dispatcher = dispatcher or MailDispatcher(settings.mail)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.executor.max_workers,
            thread_name_prefix="mail-dispatch",
        )
        self._pending: Set[Future] = set()
        self._pending_lock = Lock()
        self._config_metadata: ConfigMetadata | None = None

    def create_submission(self, submission: SubmissionInput) -> SubmissionCreated:
        """
        Assemble, archive and schedule notification for one submission.

        Rendering completes before the archive is touched, so any failure up
        to and including archival leaves nothing behind.

        Raises:
            SubmissionError: Any assembly failure, or ArchiveError
        """
        bundle = self.assembler.assemble(submission)

        record = {
            **bundle.submission.model_dump(),
            "pdf_filename": bundle.pdf_filename,
            "pdf_data": bundle.pdf_bytes,
            "txt_filename": bundle.txt_filename,
            "txt_data": bundle.txt_bytes,
        }
        submission_id, created_at = self.database.create(record)
        logger.info(f"Archived submission #{submission_id} ({bundle.pdf_filename})")

        self._schedule_notification(bundle, submission_id)

        return SubmissionCreated(
            id=submission_id,
            created_at=created_at,
            pdf_filename=bundle.pdf_filename,
            txt_filename=bundle.txt_filename,
        )

    def _schedule_notification(self, bundle: OutputBundle, submission_id: int) -> None:
        future = self._executor.submit(self._send_notification, bundle, submission_id)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _send_notification(self, bundle: OutputBundle, submission_id: int) -> None:
        """
        Mail the bundle (runs in a background thread).

        Never raises: the submitter already has the archive identifier, so a
        failed mail only leaves a log entry.
        """
        try:
            self.dispatcher.send(
                _notification_subject(bundle),
                _notification_body(bundle, submission_id),
                [
                    (bundle.pdf_filename, bundle.pdf_bytes, CONTENT_TYPES[ArtifactKind.PDF]),
                    (bundle.txt_filename, bundle.txt_bytes, CONTENT_TYPES[ArtifactKind.TXT]),
                ],
            )
        except NotificationError as exc:
            logger.error(f"Notification for submission #{submission_id} failed: {exc}")
        except Exception:
            logger.exception(f"Unexpected error notifying submission #{submission_id}")

    def list_submissions(self) -> List[SubmissionSummary]:
        """Get all archived submissions, newest first."""
        return [SubmissionSummary(**row) for row in self.database.list()]

    def get_submission(self, submission_id: int) -> Optional[SubmissionDetail]:
        row = self.database.get(submission_id)
        if row is None:
            return None
        return SubmissionDetail(
            **{key: value for key, value in row.items() if not key.endswith("_data")},
            pdf_size=len(row["pdf_data"]),
            txt_size=len(row["txt_data"]),
        )

    def get_artifact(self, submission_id: int, kind: ArtifactKind) -> Optional[Artifact]:
        """
        Fetch one archived artifact with its download name and content type.

        Returns:
            Artifact, or None if the submission does not exist
        """
        row = self.database.get(submission_id)
        if row is None:
            return None
        kind = ArtifactKind(kind)
        return Artifact(
            filename=row[f"{kind.value}_filename"],
            content_type=CONTENT_TYPES[kind],
            data=row[f"{kind.value}_data"],
        )

    def get_config_metadata(self) -> ConfigMetadata:
        if self._config_metadata is None:
            self._config_metadata = self._build_config_metadata()
        return self._config_metadata

    def _build_config_metadata(self) -> ConfigMetadata:
        overlay = self.settings.overlay
        return ConfigMetadata(
            ratings=self.registry.keys(),
            templates=self.registry.as_dict(),
            overlay={
                "x": overlay.x,
                "y_top": overlay.y_top,
                "line_gap": overlay.line_gap,
                "font_size": overlay.font_size,
                "font_name": overlay.font_name,
            },
            overlay_lines=list(overlay.lines),
            mail_enabled=self.dispatcher.enabled,
            mail_recipient=self.settings.mail.recipient,
        )

    def wait_for_dispatches(self, timeout: float | None = None) -> bool:
        """Block until scheduled notifications finish. Returns False on timeout."""
        with self._pending_lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = wait_futures(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
