"""Edit request/response schemas and the validation entry point.

The editor client speaks camelCase JSON; fields are snake_case in Python
and serialised through camelCase aliases.
"""

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..exceptions import InvalidRequestError

# Width of content_versions.session_id.
SESSION_ID_MAX_LENGTH = 100


class CamelModel(BaseModel):
    """Base model serialising to camelCase, accepting either spelling on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChangeDescriptor(CamelModel):
    """One discrete edit reported by the editor."""

    kind: Literal["insert", "delete", "modify"] = Field(alias="type")
    # Any finite number >= 0; strings and bools are rejected.
    position: float = Field(ge=0, strict=True, allow_inf_nan=False)
    length: float = Field(ge=0, strict=True, allow_inf_nan=False)
    text: str = Field(alias="content", strict=True)
    timestamp: Optional[datetime] = None


class EditRequest(CamelModel):
    """Validated input of one save."""

    body: str = Field(validation_alias=AliasChoices("body", "content"), strict=True)
    changes: List[ChangeDescriptor] = Field(default_factory=list)
    auto_save: bool = Field(default=False, strict=True)
    session_id: Optional[str] = Field(default=None, max_length=SESSION_ID_MAX_LENGTH, strict=True)
    time_spent_ms: Optional[float] = Field(default=None, ge=0, strict=True, allow_inf_nan=False)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "body": "<p>Rewritten intro paragraph.</p>",
                    "changes": [
                        {"type": "modify", "position": 3, "length": 9, "content": "Rewritten"}
                    ],
                    "autoSave": True,
                    "sessionId": "session-1731578400000",
                    "timeSpentMs": 42000,
                }
            ]
        }
    )


# Every key, in either spelling, that EditRequest understands.
_RECOGNISED_FIELDS = frozenset({
    "body", "content", "changes",
    "autoSave", "auto_save",
    "sessionId", "session_id",
    "timeSpentMs", "time_spent_ms",
})


def _field_path(loc: tuple) -> str:
    return ".".join(str(part) for part in loc) or "(root)"


def parse_edit_request(payload: Any) -> EditRequest:
    """Validate a raw payload into an EditRequest.

    Unknown keys are ignored. On failure raises InvalidRequestError listing
    every violation; the error is flagged as a shape error when the payload
    is not an object or carries none of the recognised fields.
    """
    if not isinstance(payload, dict):
        raise InvalidRequestError(
            [{"field": "(root)", "message": "Expected a JSON object"}],
            shape=True,
        )

    try:
        return EditRequest.model_validate(payload)
    except PydanticValidationError as e:
        violations = [
            {"field": _field_path(err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        shape = not (payload.keys() & _RECOGNISED_FIELDS)
        raise InvalidRequestError(violations, shape=shape) from None


class TopicSummary(CamelModel):
    """Topic metadata returned alongside content being edited."""

    id: str
    title: str
    description: Optional[str] = None
    status: str

    model_config = ConfigDict(from_attributes=True)


class EditableContent(CamelModel):
    """Content as loaded into the editor."""

    body: str
    original_body: str
    updated_at: Optional[datetime] = None
    topic: Optional[TopicSummary] = None
    current_version: int = 0


class EditResult(CamelModel):
    """Confirmation of an accepted save."""

    success: bool = True
    content_id: str
    updated_at: Optional[datetime] = None
    changes_count: int
    auto_save: bool
    version: int
