"""
Version History API Routes

Read-only access to the append-only snapshot log. Snapshots are written by
the declaration lifecycle itself; there is no endpoint that creates, edits
or deletes one.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..services.declarations import DeclarationError, VersionHistoryService
from .errors import http_error


router = APIRouter(prefix="/version-history", tags=["version-history"])


@router.get("/{declaration_id}", response_model=list)
async def list_snapshots(declaration_id: str, db: Session = Depends(get_db)):
    """Snapshot summaries, oldest first."""
    try:
        return VersionHistoryService(db).list_snapshots(declaration_id)
    except DeclarationError as e:
        raise http_error(e)


@router.get("/{declaration_id}/{snapshot_id}", response_model=dict)
async def get_snapshot(declaration_id: str, snapshot_id: str, db: Session = Depends(get_db)):
    try:
        return VersionHistoryService(db).get_snapshot(declaration_id, snapshot_id)
    except DeclarationError as e:
        raise http_error(e)
