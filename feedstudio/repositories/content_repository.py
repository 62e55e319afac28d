"""Content document repository.

The only write this repository performs is the guarded live update;
content rows are created and deleted by the generation pipeline.
"""

from datetime import datetime
from typing import List

from sqlalchemy import func

from ..models import ContentDocument, ContentVersion
from ..exceptions import ContentNotFoundError
from .base import BaseRepository


class ContentRepository(BaseRepository[ContentDocument]):
    """Repository for content documents."""

    model_class = ContentDocument
    not_found_error = ContentNotFoundError

    def get_for_update(self, content_id: str) -> ContentDocument:
        """Load a document and lock its row until the transaction ends.

        On PostgreSQL this serialises concurrent writers of the same
        document. SQLite has no row locks; SQLAlchemy drops the clause and
        the unique version index is what keeps writers apart.
        """
        doc = (
            self.db.query(ContentDocument)
            .filter(ContentDocument.id == content_id)
            .with_for_update()
            .first()
        )
        if doc is None:
            raise ContentNotFoundError(content_id)
        return doc

    def apply_live_update(self, content_id: str, body: str, version: int, updated_at: datetime) -> bool:
        """Point the live body at *version*.

        A single UPDATE guarded by ``live_version < version``: a slow writer
        carrying an older version never overwrites a newer live body.
        Returns False when nothing was updated.
        """
        updated = (
            self.db.query(ContentDocument)
            .filter(
                ContentDocument.id == content_id,
                ContentDocument.live_version < version,
            )
            .update(
                {
                    ContentDocument.edited_content: body,
                    ContentDocument.updated_at: updated_at,
                    ContentDocument.live_version: version,
                },
                synchronize_session=False,
            )
        )
        return updated > 0

    def find_lagging_ids(self) -> List[str]:
        """IDs of documents whose live body is behind their newest version."""
        latest = (
            self.db.query(
                ContentVersion.content_id.label("content_id"),
                func.max(ContentVersion.version).label("max_version"),
            )
            .group_by(ContentVersion.content_id)
            .subquery()
        )
        rows = (
            self.db.query(ContentDocument.id)
            .join(latest, latest.c.content_id == ContentDocument.id)
            .filter(ContentDocument.live_version < latest.c.max_version)
            .all()
        )
        return [row[0] for row in rows]

    def count(self) -> int:
        return self.db.query(func.count(ContentDocument.id)).scalar() or 0
