"""Version history endpoints."""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.version import VersionDetail, VersionHistory
from ..services import EditService

router = APIRouter(prefix="/api/content/{content_id}/versions", tags=["versions"])


@router.get("", response_model=VersionHistory)
def list_versions(
    content_id: str,
    db: Session = Depends(get_db),
):
    """List every version of a content document, newest first."""
    return EditService(db).list_versions(content_id)


@router.get("/{version}", response_model=VersionDetail)
def get_version(
    content_id: str,
    version: int = Path(..., ge=1),
    db: Session = Depends(get_db),
):
    """Get one version including its body."""
    return EditService(db).get_version(content_id, version)
