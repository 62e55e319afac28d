"""Database models."""

from .topic import Topic
from .content import ContentDocument
from .version import ContentVersion
from .user import User, AuditLog

__all__ = ["Topic", "ContentDocument", "ContentVersion", "User", "AuditLog"]
