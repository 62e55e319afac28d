"""Content version model."""

from sqlalchemy import Column, Float, Index, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class ContentVersion(Base):
    """Append-only version history of a content document.

    One row per accepted edit. Rows are never updated or deleted; the
    highest ``version`` of a document is its current version.
    """

    __tablename__ = "content_versions"
    __table_args__ = (
        # Two writers racing for the same number: the second insert fails.
        Index("ux_content_versions_content_version", "content_id", "version", unique=True),
        Index("ix_content_versions_edited_at", "edited_at"),
    )

    id = Column(String(50), primary_key=True)
    content_id = Column(String(50), ForeignKey("content.id"), nullable=False)
    version = Column(Integer, nullable=False)

    # Snapshot
    title = Column(String(255), nullable=False)
    version_content = Column(Text, nullable=False)

    # Edit metadata
    change_type = Column(String(20), nullable=False)  # 'manual_save' or 'auto_save'
    change_count = Column(Integer, nullable=False, default=0)
    word_count = Column(Integer, nullable=False, default=0)
    char_count = Column(Integer, nullable=False, default=0)
    edited_by = Column(String(255), nullable=False)
    session_id = Column(String(100), nullable=False)
    time_spent_ms = Column(Float, nullable=True)
    changes = Column(Text, nullable=False, default="[]")  # JSON array of change descriptors

    edited_at = Column(DateTime(timezone=True), server_default=func.now())

    document = relationship("ContentDocument", back_populates="versions")
