"""Edit service -- deep module for content editing and version history.

Owns the retrieval path (live body + history) and the save path:

    validate -> load -> sequence -> derive -> assemble
             -> write version (commit) -> update live document (commit)

The version commit is the point of no return. Once it succeeds the edit
is applied, even if the live document update that follows fails; such a
document is left with ``live_version`` behind its newest version and is
repaired by ``reconcile`` (on the next read, at startup and from the
worker).
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..exceptions import PersistenceError, VersionNotFoundError
from ..models import ContentDocument, ContentVersion
from ..repositories import ContentRepository, VersionRepository
from ..schemas.edit import (
    ChangeDescriptor,
    EditableContent,
    EditRequest,
    EditResult,
    TopicSummary,
    parse_edit_request,
)
from ..schemas.version import VersionDetail, VersionHistory, VersionSummary
from . import audit_service
from .metrics import derive_metrics

CHANGE_TYPE_MANUAL = "manual_save"
CHANGE_TYPE_AUTO = "auto_save"

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def serialize_changes(changes: List[ChangeDescriptor]) -> str:
    """Encode a change list the way it is stored on a version row."""
    return json.dumps([
        change.model_dump(mode="json", by_alias=True, exclude_none=True)
        for change in changes
    ])


class EditService:
    """Editing and versioning of content documents.

    Args:
        db: Session used for every read and write of one request.
        clock: Returns the current aware UTC datetime. Injectable for tests.
        max_attempts: How many times a save may lose the race for a version
            number before it fails. Defaults to ``VERSION_WRITE_ATTEMPTS``.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Callable[[], datetime]] = None,
        max_attempts: Optional[int] = None,
    ):
        self.db = db
        self.clock = clock or _utcnow
        self.max_attempts = max_attempts or settings.version_write_attempts
        self.content_repo = ContentRepository(db)
        self.version_repo = VersionRepository(db)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def get_for_editing(self, content_id: str) -> EditableContent:
        """Load a document into the editor.

        Raises ContentNotFoundError. A document whose live body lags its
        newest version is reconciled first.
        """
        doc = self.content_repo.get_by_id(content_id)
        latest = self.version_repo.get_latest(content_id)

        body = doc.live_body
        if latest is not None and doc.live_version < latest.version:
            # History is authoritative, whether or not the repair sticks.
            body = latest.version_content
            if self._replay(content_id, latest):
                self.db.refresh(doc)
                body = doc.live_body

        return EditableContent(
            body=body,
            original_body=doc.outline or "",
            updated_at=doc.updated_at,
            topic=TopicSummary.model_validate(doc.topic) if doc.topic else None,
            current_version=latest.version if latest else 0,
        )

    def list_versions(self, content_id: str) -> VersionHistory:
        """Version history of a document, newest first."""
        doc = self.content_repo.get_by_id(content_id)
        versions = self.version_repo.get_by_content(content_id)
        current = versions[0].version if versions else 0

        return VersionHistory(
            content_id=doc.id,
            title=doc.title,
            current_version=current,
            total_versions=len(versions),
            versions=[
                VersionSummary.model_validate(v).model_copy(update={"is_current": v.version == current})
                for v in versions
            ],
        )

    def get_version(self, content_id: str, version: int) -> VersionDetail:
        """One version including its body. Raises ContentNotFoundError or VersionNotFoundError."""
        self.content_repo.get_by_id(content_id)
        row = self.version_repo.get_by_number(content_id, version)
        if row is None:
            raise VersionNotFoundError(content_id, version)
        latest = self.version_repo.get_latest(content_id)
        return VersionDetail.model_validate(row).model_copy(
            update={"is_current": latest is not None and latest.version == row.version}
        )

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save_edit(self, content_id: str, payload: Any, editor: Optional[str] = None) -> EditResult:
        """Validate and apply one edit, recording it as a new version.

        Args:
            content_id: Target document.
            payload: Raw request body; validated here.
            editor: Identity of the authenticated editor. ``None`` records the
                ``ANONYMOUS_EDITOR`` placeholder and logs a warning.

        Raises:
            InvalidRequestError: payload failed validation. Nothing written.
            ContentNotFoundError: no such document. Nothing written.
            PersistenceError: the version could not be written. The live
                document is untouched.
        """
        request = parse_edit_request(payload)

        if editor is None:
            editor = settings.anonymous_editor
            logger.warning(
                "No authenticated editor; attributing version to placeholder '%s'",
                editor,
                extra={"content_id": content_id},
            )

        version = self._write_version(content_id, request, editor)
        number = version.version
        updated_at = self._update_live_document(content_id, request.body, number, editor, version.edited_at)

        if not request.auto_save:
            audit_service.log(
                self.db,
                user_id=editor,
                action="content_save",
                resource_type="content",
                resource_id=content_id,
                details={"version": number, "changes": len(request.changes)},
            )

        logger.info(
            "Content %s %s with %d changes (version %d)",
            content_id,
            "auto-saved" if request.auto_save else "saved",
            len(request.changes),
            number,
            extra={"content_id": content_id, "version": number, "auto_save": request.auto_save},
        )

        return EditResult(
            content_id=content_id,
            updated_at=updated_at,
            changes_count=len(request.changes),
            auto_save=request.auto_save,
            version=number,
        )

    def _write_version(self, content_id: str, request: EditRequest, editor: str) -> ContentVersion:
        """Claim the next version number and commit the version row.

        Load, sequence and insert share one transaction. A concurrent writer
        that claimed the same number first makes the insert fail on the
        unique (content_id, version) index; the transaction is rolled back
        and the number recomputed.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                doc = self.content_repo.get_for_update(content_id)
                number = self.version_repo.next_version_number(content_id)
                version = self.version_repo.create(self._assemble(doc, request, number, editor))
                self.db.commit()
                return version
            except IntegrityError:
                self.db.rollback()
                logger.warning(
                    "Version %d of %s was claimed concurrently (attempt %d/%d)",
                    number, content_id, attempt, self.max_attempts,
                    extra={"content_id": content_id, "version": number},
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    "Failed to write version of %s: %s", content_id, e,
                    exc_info=True,
                    extra={"event": "version_write_failed", "content_id": content_id},
                )
                raise PersistenceError(content_id) from e

        logger.error(
            "Gave up claiming a version number for %s after %d attempts",
            content_id, self.max_attempts,
            extra={"event": "version_write_failed", "content_id": content_id},
        )
        raise PersistenceError(content_id)

    def _assemble(self, doc: ContentDocument, request: EditRequest, number: int, editor: str) -> ContentVersion:
        metrics = derive_metrics(request.body)
        return ContentVersion(
            id=uuid.uuid4().hex,
            content_id=doc.id,
            version=number,
            title=doc.title,
            version_content=request.body,
            change_type=CHANGE_TYPE_AUTO if request.auto_save else CHANGE_TYPE_MANUAL,
            change_count=len(request.changes),
            word_count=metrics.word_count,
            char_count=metrics.char_count,
            edited_by=editor,
            session_id=request.session_id or self._fallback_session_id(),
            time_spent_ms=request.time_spent_ms,
            changes=serialize_changes(request.changes),
            edited_at=self.clock(),
        )

    def _fallback_session_id(self) -> str:
        millis = int(self.clock().timestamp() * 1000)
        return f"session-{millis}-{uuid.uuid4().hex[:8]}"

    def _update_live_document(
        self, content_id: str, body: str, number: int, editor: str, accepted_at: datetime
    ) -> datetime:
        """Point the live document at a committed version.

        Failure is logged as an inconsistency and audited, never raised: the
        version is durable and reconciliation will finish the job.

        Returns the live document's new ``updated_at``. When the update is
        superseded by a newer version, returns the timestamp the document
        already carries; when it fails, returns ``accepted_at``, the time the
        version was committed.
        """
        now = self.clock()
        try:
            applied = self.content_repo.apply_live_update(content_id, body, number, now)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Live update of %s failed after version %d was committed: %s",
                content_id, number, e,
                exc_info=True,
                extra={"event": "live_update_failed", "content_id": content_id, "version": number},
            )
            audit_service.log(
                self.db,
                user_id=editor,
                action="live_update_failed",
                resource_type="content",
                resource_id=content_id,
                details={"version": number},
            )
            return accepted_at

        if not applied:
            logger.debug(
                "Version %d of %s superseded before going live", number, content_id,
                extra={"content_id": content_id, "version": number},
            )
            return self.content_repo.get_by_id(content_id).updated_at
        return now

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reconcile(self, content_id: str) -> bool:
        """Replay the newest version into the live document if it lags.

        Returns True when the live document was repaired.
        """
        doc = self.content_repo.get_by_id(content_id)
        latest = self.version_repo.get_latest(content_id)
        if latest is None or doc.live_version >= latest.version:
            return False
        return self._replay(content_id, latest)

    def reconcile_all(self) -> int:
        """Repair every lagging document. Returns how many were repaired."""
        repaired = 0
        for content_id in self.content_repo.find_lagging_ids():
            if self.reconcile(content_id):
                repaired += 1
        return repaired

    def _replay(self, content_id: str, version: ContentVersion) -> bool:
        number = version.version
        try:
            applied = self.content_repo.apply_live_update(
                content_id, version.version_content, number, self.clock()
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Reconciliation of %s to version %d failed: %s", content_id, number, e,
                exc_info=True,
                extra={"event": "reconcile_failed", "content_id": content_id, "version": number},
            )
            return False

        if applied:
            logger.info(
                "Reconciled live document %s to version %d", content_id, number,
                extra={"event": "reconciled", "content_id": content_id, "version": number},
            )
            audit_service.log(
                self.db,
                user_id=None,
                action="reconcile",
                resource_type="content",
                resource_id=content_id,
                details={"version": number},
            )
        return applied
