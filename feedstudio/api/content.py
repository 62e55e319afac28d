"""Content editing endpoints.

Endpoints are thin: EditService owns validation, versioning and the live
document update.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, resolve_editor
from ..database import get_db
from ..schemas.edit import EditableContent, EditResult
from ..services import EditService

router = APIRouter(prefix="/api/content", tags=["content"])


@router.get("/{content_id}/edit", response_model=EditableContent)
def get_for_editing(
    content_id: str,
    db: Session = Depends(get_db),
):
    """Load the live body, reference outline and topic of a content document."""
    return EditService(db).get_for_editing(content_id)


@router.put("/{content_id}/edit", response_model=EditResult)
def save_edit(
    content_id: str,
    payload: Any = Body(default=None),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(resolve_editor),
):
    """Save an edit (manual or auto-save) as a new version.

    The raw body is validated by the service so that every violation is
    reported in one 400 response.
    """
    return EditService(db).save_edit(content_id, payload, editor=auth.user_id)
