"""Data access repositories."""

from .base import BaseRepository
from .content_repository import ContentRepository
from .version_repository import VersionRepository

__all__ = ["BaseRepository", "ContentRepository", "VersionRepository"]
