"""
Declaration Service Errors

Genuine failures only. Integrity findings (low coverage, missing tools, scope
reduction, deletions) are warnings and never appear here.
"""
from typing import Dict, List, Optional

from ...models.db_models import AppendOnlyViolation


class DeclarationError(Exception):
    """Base class for declaration service failures."""
    code = "DECLARATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {"error": self.message, "code": self.code}


class ValidationFailed(DeclarationError):
    """Client-correctable input problem, reported per field."""
    code = "VALIDATION_FAILED"

    def __init__(self, errors: List[Dict[str, str]]):
        super().__init__("; ".join(f"{e['field']}: {e['message']}" for e in errors))
        self.errors = errors

    def to_detail(self) -> dict:
        return {"error": self.message, "code": self.code, "errors": self.errors}


class NotFound(DeclarationError):
    code = "NOT_FOUND"

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class AlreadyExists(DeclarationError):
    code = "ALREADY_EXISTS"

    def __init__(self, message: str, existing_id: Optional[str] = None):
        super().__init__(message)
        self.existing_id = existing_id

    def to_detail(self) -> dict:
        return {"error": self.message, "code": self.code, "existing_id": self.existing_id}


class StateConflict(DeclarationError):
    """Operation not allowed in the record's current state."""
    code = "STATE_CONFLICT"


class ReflectionInvalid(DeclarationError):
    """Submission gate: stored reflection missing or not valid."""
    code = "REFLECTION_INVALID"

    def __init__(self, message: str = "Reflection is required before submission.",
                 errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_detail(self) -> dict:
        return {"error": self.message, "code": self.code, "errors": self.errors}


class UnresolvedInteractions(DeclarationError):
    """Draft generation blocked until ambiguous interactions are assigned."""
    code = "UNRESOLVED_INTERACTIONS"

    def __init__(self, interaction_ids: List[str]):
        super().__init__(
            f"{len(interaction_ids)} unassigned interaction(s) must be resolved before generating a draft."
        )
        self.interaction_ids = interaction_ids

    def to_detail(self) -> dict:
        return {"error": self.message, "code": self.code, "interaction_ids": self.interaction_ids}


class DraftGenerationFailed(DeclarationError):
    """A generation or regeneration unit failed and was rolled back."""
    code = "DRAFT_GENERATION_FAILED"


class SnapshotWriteFailed(DeclarationError):
    """Audit record could not be written; the triggering operation fails with it."""
    code = "SNAPSHOT_WRITE_FAILED"


__all__ = [
    "DeclarationError", "ValidationFailed", "NotFound", "AlreadyExists", "StateConflict",
    "ReflectionInvalid", "UnresolvedInteractions", "DraftGenerationFailed",
    "SnapshotWriteFailed", "AppendOnlyViolation",
]
