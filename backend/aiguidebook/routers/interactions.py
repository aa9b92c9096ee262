"""
Interaction API Routes

Logged AI-tool interactions and the unassigned-interaction resolution queue.
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import row_to_dict
from ..services.declarations import DeclarationError, InteractionService
from .errors import http_error


router = APIRouter(prefix="/interactions", tags=["interactions"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class RecordInteractionRequest(BaseModel):
    """A new interaction log. Attribution is inferred unless assignment_id is given."""
    tool_name: str = Field(..., min_length=1, description="AI tool, e.g. ChatGPT")
    category: str = Field(..., min_length=1, description="Kind of use, e.g. debugging")
    description: str = Field(..., min_length=1, description="What the tool was used for")
    logged_at: datetime = Field(..., description="When the interaction happened")
    assignment_id: Optional[str] = Field(None, description="Explicit student tag")


class AssignInteractionRequest(BaseModel):
    """Student resolution of an unassigned interaction."""
    assignment_id: str = Field(..., min_length=1, description="Assignment the interaction belongs to")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=list)
async def list_interactions(db: Session = Depends(get_db)):
    return [row_to_dict(log) for log in InteractionService(db).list_all()]


@router.post("", response_model=dict, status_code=201)
async def record_interaction(request: RecordInteractionRequest, db: Session = Depends(get_db)):
    service = InteractionService(db)
    try:
        log = service.record_interaction(
            tool_name=request.tool_name,
            category=request.category,
            description=request.description,
            logged_at=request.logged_at,
            assignment_id=request.assignment_id,
        )
        db.commit()
    except DeclarationError as e:
        db.rollback()
        raise http_error(e)
    return row_to_dict(log)


@router.get("/unassigned", response_model=list)
async def list_unassigned(db: Session = Depends(get_db)):
    """Interactions awaiting an explicit assignment choice."""
    return [row_to_dict(log) for log in InteractionService(db).unassigned()]


@router.post("/{interaction_id}/assign", response_model=dict)
async def assign_interaction(
    interaction_id: str,
    request: AssignInteractionRequest,
    db: Session = Depends(get_db),
):
    """
    Resolve an unassigned interaction.

    Only valid while the interaction is unassigned; an assigned interaction
    is never re-attributed.
    """
    service = InteractionService(db)
    try:
        log = service.assign(interaction_id, request.assignment_id)
    except DeclarationError as e:
        raise http_error(e)
    return {"assigned": True, "interaction": row_to_dict(log)}
