"""Content version repository.

Versions are append-only: this repository inserts and reads, it never
updates or deletes.
"""

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import ContentVersion


class VersionRepository:
    """Repository for the version history table."""

    def __init__(self, db: Session):
        self.db = db

    def next_version_number(self, content_id: str) -> int:
        """Highest stored version + 1, or 1 for a document without history.

        Must run in the same transaction as the insert that uses it.
        """
        current = (
            self.db.query(func.max(ContentVersion.version))
            .filter(ContentVersion.content_id == content_id)
            .scalar()
        )
        return (current or 0) + 1

    def create(self, version: ContentVersion) -> ContentVersion:
        """Insert a fully assembled version row.

        Flushes immediately so a duplicate (content_id, version) raises
        IntegrityError here rather than at commit.
        """
        self.db.add(version)
        self.db.flush()
        return version

    def get_latest(self, content_id: str) -> Optional[ContentVersion]:
        return (
            self.db.query(ContentVersion)
            .filter(ContentVersion.content_id == content_id)
            .order_by(ContentVersion.version.desc())
            .first()
        )

    def get_by_number(self, content_id: str, version: int) -> Optional[ContentVersion]:
        return (
            self.db.query(ContentVersion)
            .filter(
                ContentVersion.content_id == content_id,
                ContentVersion.version == version,
            )
            .first()
        )

    def get_by_content(self, content_id: str) -> List[ContentVersion]:
        """All versions of a document, newest first."""
        return (
            self.db.query(ContentVersion)
            .filter(ContentVersion.content_id == content_id)
            .order_by(ContentVersion.version.desc())
            .all()
        )
