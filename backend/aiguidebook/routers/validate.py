"""
Validation API Routes

Immediate reflection feedback using the same validator as the submission gate.
"""
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..services.integrity import validate_reflection


router = APIRouter(prefix="/validate", tags=["validate"])


class ValidateReflectionRequest(BaseModel):
    prompt1: str = Field("", description="Reflection prompt 1 response")
    prompt2: str = Field("", description="Reflection prompt 2 response")


@router.post("/reflection")
async def validate_reflection_endpoint(request: ValidateReflectionRequest):
    """200 with valid=true, or 422 with per-field errors."""
    result = validate_reflection(request.prompt1, request.prompt2)
    if not result.valid:
        return JSONResponse(status_code=422, content=result.to_dict())
    return result.to_dict()
