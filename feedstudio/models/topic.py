"""Topic model."""

from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from ..database import Base


class Topic(Base):
    """Trending topic a content document was generated from.

    Written by the topic approval workflow; read-only for the editor.
    """

    __tablename__ = "topics"

    id = Column(String(50), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected
    created_at = Column(DateTime(timezone=True), server_default=func.now())
