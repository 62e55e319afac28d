"""Pydantic schemas for API validation."""

from .edit import (
    ChangeDescriptor,
    EditRequest,
    EditResult,
    EditableContent,
    TopicSummary,
    parse_edit_request,
)
from .version import VersionSummary, VersionDetail, VersionHistory

__all__ = [
    "ChangeDescriptor",
    "EditRequest",
    "EditResult",
    "EditableContent",
    "TopicSummary",
    "parse_edit_request",
    "VersionSummary",
    "VersionDetail",
    "VersionHistory",
]
