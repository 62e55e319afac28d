"""Business logic services."""

from .edit_service import EditService

__all__ = ["EditService"]
