"""AI Guidebook - Data Models"""
from .db_models import (
    # Enums
    OriginTag, EntryOrigin, DeclarationStatus, ManualReason, SnapshotTrigger,
    # ORM
    AssignmentDB, InteractionLogDB, DeclarationDB, DeclarationEntryDB,
    ManualUsageEntryDB, ReflectionDB, VersionSnapshotDB,
    AppendOnlyViolation, row_to_dict,
)
from .domain import (
    WarningCondition, IntegrityWarning, warning_id,
    EntryState, ManualEntryState, DeclarationState,
)

__all__ = [
    "OriginTag", "EntryOrigin", "DeclarationStatus", "ManualReason", "SnapshotTrigger",
    "AssignmentDB", "InteractionLogDB", "DeclarationDB", "DeclarationEntryDB",
    "ManualUsageEntryDB", "ReflectionDB", "VersionSnapshotDB",
    "AppendOnlyViolation", "row_to_dict",
    "WarningCondition", "IntegrityWarning", "warning_id",
    "EntryState", "ManualEntryState", "DeclarationState",
]
