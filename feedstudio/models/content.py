"""Content document model."""

from sqlalchemy import Column, Index, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class ContentDocument(Base):
    """The live, editable unit of generated content.

    Rows are created by the generation pipeline. The editor only ever
    touches ``edited_content``, ``updated_at`` and ``live_version``.
    """

    __tablename__ = "content"
    __table_args__ = (
        Index("ix_content_updated_at", "updated_at"),
        Index("ix_content_topic_id", "topic_id"),
    )

    id = Column(String(50), primary_key=True)
    title = Column(String(255), nullable=False)

    # Text as produced by generation; fallback body until the first edit.
    content = Column(Text, nullable=False, default="")
    # Live body. NULL means "never edited".
    edited_content = Column(Text, nullable=True)
    # Reference text shown next to the editor.
    outline = Column(Text, nullable=True)

    topic_id = Column(String(50), ForeignKey("topics.id", ondelete="SET NULL"), nullable=True)

    # Version number the live body reflects. Lags the newest version only
    # when a live update failed after its version was committed.
    live_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now())

    topic = relationship("Topic")
    versions = relationship(
        "ContentVersion",
        back_populates="document",
        order_by="ContentVersion.version",
        passive_deletes=True,
    )

    @property
    def live_body(self) -> str:
        """Edited body, or the generated text when nothing was edited yet."""
        if self.edited_content is not None:
            return self.edited_content
        return self.content or ""
