"""
Manual Usage Entry API Routes

AI usage the logs did not capture (external devices, unintegrated tools,
usage before logging started).
"""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..dependencies import get_declaration_service
from ..services.declarations import DeclarationError, DeclarationService
from .errors import http_error


router = APIRouter(prefix="/declarations/{declaration_id}/manual-entries", tags=["manual-entries"])


class ManualEntryRequest(BaseModel):
    """
    Manual usage entry.

    Fields are validated by the service so every problem comes back as a
    field-level error in one response.
    """
    tool_name: str = Field("", description="AI tool used")
    date_range: str = Field("", description="Free-text date range, e.g. Nov 3-5")
    description: str = Field("", description="At least 15 words describing the usage")
    reason: str = Field("", description="external_device | unintegrated_tool | before_logging | other")
    reason_other: Optional[str] = Field(None, description="Required when reason is other")


@router.get("", response_model=list)
async def list_manual_entries(
    declaration_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        return service.get_declaration(declaration_id)["manual_entries"]
    except DeclarationError as e:
        raise http_error(e)


@router.post("", response_model=dict, status_code=201)
async def add_manual_entry(
    declaration_id: str,
    request: ManualEntryRequest,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        entry_id = service.add_manual_entry(
            declaration_id,
            tool_name=request.tool_name,
            date_range=request.date_range,
            description=request.description,
            reason=request.reason,
            reason_other=request.reason_other,
        )
    except DeclarationError as e:
        raise http_error(e)
    return {"entry_id": entry_id}


@router.delete("/{manual_entry_id}", response_model=dict)
async def remove_manual_entry(
    declaration_id: str,
    manual_entry_id: str,
    service: DeclarationService = Depends(get_declaration_service),
):
    try:
        return service.remove_manual_entry(declaration_id, manual_entry_id)
    except DeclarationError as e:
        raise http_error(e)
