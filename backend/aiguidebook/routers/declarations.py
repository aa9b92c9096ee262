"""
Declaration API Routes

Endpoints for the declaration lifecycle: creation and draft generation,
entry editing, reflection, save/review/submit, regeneration, and the
integrity read models (warnings, coverage).
"""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..dependencies import get_declaration_service
from ..services.declarations import DeclarationError, DeclarationService
from .errors import http_error


router = APIRouter(prefix="/declarations", tags=["declarations"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CreateDeclarationRequest(BaseModel):
    """Request to open a declaration for an assignment."""
    assignment_id: str = Field(..., description="Assignment being declared")
    student_id: str = Field(..., description="Declaring student")


class AddEntryRequest(BaseModel):
    field_name: str = Field(..., description="Entry field, e.g. usage_summary")
    content: str = Field(..., description="Entry text")
    origin: str = Field(..., description="auto-generated | auto-generated-modified | manual")
    interaction_log_id: Optional[str] = Field(None, description="Source interaction log")


class EditEntryRequest(BaseModel):
    content: str = Field(..., description="Replacement text")


class ReflectionRequest(BaseModel):
    prompt1: str = Field("", description="Reflection prompt 1 response")
    prompt2: str = Field("", description="Reflection prompt 2 response")


class SubmitRequest(BaseModel):
    """Final submission. Acknowledgment is required while warnings are active."""
    acknowledged_warnings: bool = Field(default=False, description="Student acknowledged active warnings")


# =============================================================================
# CREATION
# =============================================================================

@router.post("", response_model=dict, status_code=201)
async def create_declaration(
    request: CreateDeclarationRequest,
    service: DeclarationService = Depends(get_declaration_service),
):
    """Open an empty declaration. Records the initial_open snapshot."""
    try:
        declaration_id = service.create_declaration(request.assignment_id, request.student_id)
    except DeclarationError as e:
        raise http_error(e)
    return {"declaration_id": declaration_id}


@router.post("/generate", response_model=dict, status_code=201)
async def generate_draft(
    request: CreateDeclarationRequest,
    service: DeclarationService = Depends(get_declaration_service),
):
    """
    Generate a draft from the assignment's logged interactions.

    Blocked (409 UNRESOLVED_INTERACTIONS) while unassigned interactions fall
    inside the assignment period.
    """
    try:
        return service.generate_draft(request.assignment_id, request.student_id)
    except DeclarationError as e:
        raise http_error(e)


# =============================================================================
# READS
# =============================================================================

@router.get("/by-assignment/{assignment_id}", response_model=dict)
async def get_declaration_by_assignment(
    assignment_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        return service.get_by_assignment(assignment_id)
    except DeclarationError as e:
        raise http_error(e)


@router.get("/{declaration_id}", response_model=dict)
async def get_declaration(
    declaration_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    """Declaration with its entries, manual entries and reflection."""
    try:
        return service.get_declaration(declaration_id)
    except DeclarationError as e:
        raise http_error(e)


@router.get("/{declaration_id}/warnings", response_model=list)
async def get_warnings(
    declaration_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        return service.get_warnings(declaration_id)
    except DeclarationError as e:
        raise http_error(e)


@router.get("/{declaration_id}/coverage", response_model=dict)
async def get_coverage(
    declaration_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        return service.get_coverage(declaration_id)
    except DeclarationError as e:
        raise http_error(e)


# =============================================================================
# ENTRIES
# =============================================================================

@router.post("/{declaration_id}/entries", response_model=dict, status_code=201)
async def add_entry(
    declaration_id: str,
    request: AddEntryRequest,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        entry_id = service.add_entry(
            declaration_id,
            field_name=request.field_name,
            content=request.content,
            origin=request.origin,
            interaction_log_id=request.interaction_log_id,
        )
    except DeclarationError as e:
        raise http_error(e)
    return {"entry_id": entry_id}


@router.patch("/{declaration_id}/entries/{entry_id}", response_model=dict)
async def edit_entry(
    declaration_id: str,
    entry_id: str,
    request: EditEntryRequest,
    service: DeclarationService = Depends(get_declaration_service),
):
    """Edit entry text. Returns the new origin and the length delta."""
    try:
        return service.edit_entry(declaration_id, entry_id, request.content)
    except DeclarationError as e:
        raise http_error(e)


@router.delete("/{declaration_id}/entries/{entry_id}", response_model=dict)
async def delete_entry(
    declaration_id: str,
    entry_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        return service.delete_entry(declaration_id, entry_id)
    except DeclarationError as e:
        raise http_error(e)


# =============================================================================
# REFLECTION
# =============================================================================

@router.patch("/{declaration_id}/reflection", response_model=dict)
async def update_reflection(
    declaration_id: str,
    request: ReflectionRequest,
    service: DeclarationService = Depends(get_declaration_service),
):
    """Store the reflection. Validity is computed server-side and returned."""
    try:
        return service.update_reflection(declaration_id, request.prompt1, request.prompt2)
    except DeclarationError as e:
        raise http_error(e)


# =============================================================================
# LIFECYCLE
# =============================================================================

@router.post("/{declaration_id}/save", response_model=dict)
async def save_draft(
    declaration_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        return service.save_draft(declaration_id)
    except DeclarationError as e:
        raise http_error(e)


@router.post("/{declaration_id}/review", response_model=dict)
async def enter_review(
    declaration_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    """Enter the review step: warnings, coverage and confirmation text."""
    try:
        return service.enter_review(declaration_id)
    except DeclarationError as e:
        raise http_error(e)


@router.post("/{declaration_id}/submit", response_model=dict)
async def submit_declaration(
    declaration_id: str,
    request: Optional[SubmitRequest] = None,
    service: DeclarationService = Depends(get_declaration_service),
):
    """
    Submit the declaration.

    422 REFLECTION_INVALID if the stored reflection is missing or invalid.
    Active warnings never block, but must be acknowledged.
    """
    acknowledged = request.acknowledged_warnings if request is not None else False
    try:
        return service.submit(declaration_id, acknowledged_warnings=acknowledged)
    except DeclarationError as e:
        raise http_error(e)


@router.post("/{declaration_id}/regenerate", response_model=dict)
async def regenerate(
    declaration_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    """Add entries for newly available logs; existing entries are untouched."""
    try:
        return service.regenerate(declaration_id)
    except DeclarationError as e:
        raise http_error(e)
