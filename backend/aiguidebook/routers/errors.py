"""
AI Guidebook - Router Error Mapping

Translates declaration service errors to HTTPException in one place.
"""
from fastapi import HTTPException

from ..services.declarations import (
    AlreadyExists, DeclarationError, DraftGenerationFailed, NotFound, ReflectionInvalid,
    SnapshotWriteFailed, StateConflict, UnresolvedInteractions, ValidationFailed,
)

STATUS_CODES = {
    ValidationFailed: 400,
    NotFound: 404,
    AlreadyExists: 409,
    StateConflict: 409,
    UnresolvedInteractions: 409,
    ReflectionInvalid: 422,
    DraftGenerationFailed: 500,
    SnapshotWriteFailed: 500,
}


def http_error(exc: DeclarationError) -> HTTPException:
    return HTTPException(status_code=STATUS_CODES.get(type(exc), 500), detail=exc.to_detail())
