"""
Assignment API Routes

Instructor-side assignment records, their active periods, and the interaction
logs scoped to each period.
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.db_models import row_to_dict
from ..services.declarations import (
    NEARBY_MARGIN_DAYS, AssignmentService, DeclarationError, InteractionService,
)
from .errors import http_error


router = APIRouter(prefix="/assignments", tags=["assignments"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateAssignmentRequest(BaseModel):
    """Request to create an assignment."""
    id: str = Field(..., min_length=1, description="Assignment identifier")
    course_id: str = Field(..., min_length=1, description="Owning course identifier")
    course_name: str = Field(..., min_length=1, description="Course display name")
    title: str = Field(..., min_length=1, description="Assignment title")
    description: Optional[str] = Field(None, description="Assignment description")
    period_start: datetime = Field(..., description="Start of the active period (inclusive)")
    period_end: datetime = Field(..., description="End of the active period (inclusive)")


class UpdateAssignmentRequest(BaseModel):
    """Partial update; at least one field is required."""
    title: Optional[str] = Field(None, description="New title")
    description: Optional[str] = Field(None, description="New description")
    period_start: Optional[datetime] = Field(None, description="New period start")
    period_end: Optional[datetime] = Field(None, description="New period end")


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=list)
async def list_assignments(db: Session = Depends(get_db)):
    """All assignments, earliest period first."""
    return [row_to_dict(a) for a in AssignmentService(db).list_assignments()]


@router.get("/{assignment_id}", response_model=dict)
async def get_assignment(assignment_id: str, db: Session = Depends(get_db)):
    try:
        return row_to_dict(AssignmentService(db).get_assignment(assignment_id))
    except DeclarationError as e:
        raise http_error(e)


@router.post("", response_model=dict, status_code=201)
async def create_assignment(request: CreateAssignmentRequest, db: Session = Depends(get_db)):
    service = AssignmentService(db)
    try:
        assignment = service.create_assignment(
            assignment_id=request.id,
            course_id=request.course_id,
            course_name=request.course_name,
            title=request.title,
            description=request.description,
            period_start=request.period_start,
            period_end=request.period_end,
        )
    except DeclarationError as e:
        raise http_error(e)
    return {"id": assignment.id}


@router.patch("/{assignment_id}", response_model=dict)
async def update_assignment(
    assignment_id: str,
    request: UpdateAssignmentRequest,
    db: Session = Depends(get_db),
):
    """
    Update title, description or period.

    The response reports how many declarations already locked their time
    period, so those students can be told the period moved.
    """
    service = AssignmentService(db)
    try:
        return service.update_assignment(
            assignment_id,
            title=request.title,
            description=request.description,
            period_start=request.period_start,
            period_end=request.period_end,
        )
    except DeclarationError as e:
        raise http_error(e)


@router.get("/{assignment_id}/interactions", response_model=list)
async def scoped_interactions(assignment_id: str, db: Session = Depends(get_db)):
    """Interaction logs attributed to the assignment within its period."""
    service = InteractionService(db)
    try:
        assignment = service.get_assignment(assignment_id)
    except DeclarationError as e:
        raise http_error(e)
    return [row_to_dict(log) for log in service.scoped_logs(assignment)]


@router.get("/{assignment_id}/nearby-unassigned", response_model=list)
async def nearby_unassigned(
    assignment_id: str,
    margin_days: int = Query(NEARBY_MARGIN_DAYS, description="Days to widen the period on each side"),
    db: Session = Depends(get_db),
):
    """Unassigned logs near the assignment period. Informational only."""
    service = InteractionService(db)
    try:
        assignment = service.get_assignment(assignment_id)
        logs = service.nearby_unassigned(assignment, margin_days)
    except DeclarationError as e:
        raise http_error(e)
    return [row_to_dict(log) for log in logs]
