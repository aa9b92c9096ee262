"""
Declaration Services

Persistence-facing orchestration: assignments, interaction scoping and the
resolution gate, declaration lifecycle, and the append-only version history.
"""

from .errors import (
    AlreadyExists, AppendOnlyViolation, DeclarationError, DraftGenerationFailed, NotFound,
    ReflectionInvalid, SnapshotWriteFailed, StateConflict, UnresolvedInteractions,
    ValidationFailed,
)
from .interactions import NEARBY_MARGIN_DAYS, InteractionService, parse_timestamp
from .assignments import AssignmentService
from .state import load_declaration_state
from .version_history import VersionHistoryService
from .declaration_service import (
    CONFIRMATION_TEXT, CONFIRMATION_TEXT_WITH_WARNINGS, MANUAL_DESCRIPTION_MIN_WORDS,
    DeclarationService, build_entry_content, confirmation_text, validate_manual_entry,
)

__all__ = [
    'AlreadyExists', 'AppendOnlyViolation', 'DeclarationError', 'DraftGenerationFailed', 'NotFound',
    'ReflectionInvalid', 'SnapshotWriteFailed', 'StateConflict', 'UnresolvedInteractions',
    'ValidationFailed',
    'NEARBY_MARGIN_DAYS', 'InteractionService', 'parse_timestamp',
    'AssignmentService',
    'load_declaration_state',
    'VersionHistoryService',
    'CONFIRMATION_TEXT', 'CONFIRMATION_TEXT_WITH_WARNINGS', 'MANUAL_DESCRIPTION_MIN_WORDS',
    'DeclarationService', 'build_entry_content', 'confirmation_text', 'validate_manual_entry',
]
