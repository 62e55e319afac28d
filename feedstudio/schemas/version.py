"""Version history schemas."""

import json
from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field, field_validator

from .edit import CamelModel, ChangeDescriptor


class VersionSummary(CamelModel):
    """Version metadata as listed in the history panel."""

    id: str
    version: int
    title: str
    change_type: str
    change_count: int
    word_count: int
    char_count: int
    edited_by: str
    edited_at: Optional[datetime] = None
    session_id: str
    time_spent_ms: Optional[float] = None
    changes: List[ChangeDescriptor] = Field(default_factory=list)
    is_current: bool = False

    model_config = ConfigDict(from_attributes=True)

    @field_validator("changes", mode="before")
    @classmethod
    def decode_changes(cls, v):
        """Rows store the change list as a JSON string."""
        if v is None or v == "":
            return []
        if isinstance(v, str):
            return json.loads(v)
        return v


class VersionDetail(VersionSummary):
    """A single version including its body."""

    version_content: str


class VersionHistory(CamelModel):
    """Full history of one content document, newest first."""

    content_id: str
    title: str
    current_version: int
    total_versions: int
    versions: List[VersionSummary]
