"""
Declaration State Loader

Builds the immutable DeclarationState the integrity engine works on, straight
from storage. Callers flush pending changes first.
"""
from typing import List

from sqlalchemy.orm import Session

from ...models.db_models import (
    AssignmentDB, DeclarationDB, DeclarationEntryDB, ManualUsageEntryDB,
)
from ...models.domain import DeclarationState, EntryState, ManualEntryState
from .errors import NotFound
from .interactions import InteractionService


def load_entries(db: Session, declaration_id: str) -> List[DeclarationEntryDB]:
    return (
        db.query(DeclarationEntryDB)
        .filter(DeclarationEntryDB.declaration_id == declaration_id)
        .order_by(DeclarationEntryDB.created_at, DeclarationEntryDB.id)
        .all()
    )


def load_manual_entries(db: Session, declaration_id: str) -> List[ManualUsageEntryDB]:
    return (
        db.query(ManualUsageEntryDB)
        .filter(ManualUsageEntryDB.declaration_id == declaration_id)
        .order_by(ManualUsageEntryDB.created_at, ManualUsageEntryDB.id)
        .all()
    )


def load_declaration_state(db: Session, declaration_id: str) -> DeclarationState:
    declaration = db.query(DeclarationDB).filter(DeclarationDB.id == declaration_id).first()
    if declaration is None:
        raise NotFound("Declaration", declaration_id)
    assignment = db.query(AssignmentDB).filter(AssignmentDB.id == declaration.assignment_id).first()
    logs = InteractionService(db).scoped_logs(assignment) if assignment is not None else []

    # Unique tool names in order of first appearance
    logged_tools = tuple(dict.fromkeys(log.tool_name for log in logs))

    return DeclarationState(
        declaration_id=declaration_id,
        entries=tuple(
            EntryState(
                id=e.id,
                field_name=e.field_name,
                content=e.content,
                origin=e.origin,
                interaction_log_id=e.interaction_log_id,
                previous_content=e.previous_content,
            )
            for e in load_entries(db, declaration_id)
        ),
        manual_entries=tuple(
            ManualEntryState(
                id=m.id,
                tool_name=m.tool_name,
                description=m.description,
                date_range=m.date_range,
                reason=m.reason,
            )
            for m in load_manual_entries(db, declaration_id)
        ),
        logged_tools=logged_tools,
        total_logged=len(logs),
    )
