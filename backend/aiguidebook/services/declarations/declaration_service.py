"""
Declaration Service

Main orchestration service for AI usage declarations.
Coordinates draft generation, entry editing, manual entries, reflections,
submission, regeneration, the integrity monitor and the version history.

AUTHORITY MODEL:
- STUDENT: creates/generates the declaration, edits and deletes entries, adds
  manual entries, writes the reflection, saves, reviews, submits, regenerates.
- SYSTEM: tags provenance, raises and clears integrity warnings, records
  snapshots. Warnings never block a mutation.

TRANSACTIONS:
- Draft generation (declaration + one entry per scoped log + initial_open
  snapshot) commits as a single unit.
- Submission commits the status change together with its snapshot; if the
  snapshot cannot be written the submission fails.
- Regeneration commits its pre_regeneration snapshot first, then the merged
  entries together with the post_regeneration snapshot.
- Nothing here retries a failed write.

EVENTS:
- Single-entry mutations publish their event after commit, carrying the
  declaration state as re-read from storage.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    AssignmentDB, DeclarationDB, DeclarationEntryDB, DeclarationStatus, EntryOrigin,
    InteractionLogDB, ManualReason, ManualUsageEntryDB, ReflectionDB, SnapshotTrigger,
    row_to_dict,
)
from ..integrity import (
    EntryAdded, EntryDeleted, EntryModified, IntegrityRegistry, ManualEntryAdded,
    ManualEntryRemoved, apply_edit, count_words, origin_label, summarize_coverage,
    validate_reflection,
)
from ..integrity.registry import DeclarationSession
from .errors import (
    AlreadyExists, DeclarationError, DraftGenerationFailed, NotFound, ReflectionInvalid,
    SnapshotWriteFailed, StateConflict, ValidationFailed,
)
from .interactions import InteractionService
from .state import load_declaration_state, load_entries, load_manual_entries
from .version_history import VersionHistoryService

logger = logging.getLogger(__name__)


USAGE_SUMMARY_FIELD = "usage_summary"
MANUAL_DESCRIPTION_MIN_WORDS = 15

CONFIRMATION_TEXT = (
    "I confirm this declaration accurately and completely represents my AI usage for this assignment."
)
CONFIRMATION_TEXT_WITH_WARNINGS = (
    "I confirm this declaration accurately and completely represents my AI usage for this "
    "assignment, and I acknowledge the unresolved warnings and confirm the declaration is still accurate."
)


def confirmation_text(has_warnings: bool) -> str:
    return CONFIRMATION_TEXT_WITH_WARNINGS if has_warnings else CONFIRMATION_TEXT


def build_entry_content(log: InteractionLogDB) -> str:
    """Templated from log fields; no model generation involved."""
    return f"{log.tool_name} was used for {log.category}: {log.description}"


def validate_manual_entry(
    tool_name: Optional[str],
    date_range: Optional[str],
    description: Optional[str],
    reason: Optional[str],
    reason_other: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Field errors for a manual usage entry; empty when valid."""
    errors = []
    if not (tool_name or "").strip():
        errors.append({"field": "tool_name", "message": "tool_name is required"})
    if not (date_range or "").strip():
        errors.append({"field": "date_range", "message": "date_range is required"})
    if not (description or "").strip():
        errors.append({"field": "description", "message": "description is required"})
    elif count_words(description) < MANUAL_DESCRIPTION_MIN_WORDS:
        errors.append({
            "field": "description",
            "message": f"description must be at least {MANUAL_DESCRIPTION_MIN_WORDS} words",
        })
    valid_reasons = [r.value for r in ManualReason]
    if reason not in valid_reasons:
        errors.append({"field": "reason", "message": f"reason must be one of: {', '.join(valid_reasons)}"})
    if reason == ManualReason.OTHER.value and not (reason_other or "").strip():
        errors.append({"field": "reason_other", "message": 'reason_other is required when reason is "other"'})
    return errors


# =============================================================================
# DECLARATION SERVICE
# =============================================================================

class DeclarationService:
    """
    Main service for declaration management.

    Holds no state of its own beyond the request's database session; live
    warning state belongs to the IntegrityRegistry passed in.
    """

    def __init__(self, db_session: Session, registry: IntegrityRegistry):
        self.db = db_session
        self.registry = registry
        self.interactions = InteractionService(db_session)
        self.history = VersionHistoryService(db_session)

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _get_declaration(self, declaration_id: str) -> DeclarationDB:
        declaration = self.db.query(DeclarationDB).filter(DeclarationDB.id == declaration_id).first()
        if declaration is None:
            raise NotFound("Declaration", declaration_id)
        return declaration

    def _get_draft(self, declaration_id: str) -> DeclarationDB:
        declaration = self._get_declaration(declaration_id)
        if declaration.status == DeclarationStatus.SUBMITTED:
            raise StateConflict(f"Declaration {declaration_id} has already been submitted")
        return declaration

    def _get_entry(self, declaration_id: str, entry_id: str) -> DeclarationEntryDB:
        entry = self.db.query(DeclarationEntryDB).filter(
            DeclarationEntryDB.id == entry_id,
            DeclarationEntryDB.declaration_id == declaration_id,
        ).first()
        if entry is None:
            raise NotFound("Entry", entry_id)
        return entry

    def _session(self, declaration_id: str) -> DeclarationSession:
        """Open (or reuse) the live session, caught up with the current scoped logs."""
        state = self._state(declaration_id)
        session = self.registry.ensure(declaration_id, lambda: state)
        session.refresh(state)
        return session

    def _state(self, declaration_id: str):
        return load_declaration_state(self.db, declaration_id)

    def _existing_for_assignment(self, assignment_id: str) -> Optional[DeclarationDB]:
        return self.db.query(DeclarationDB).filter(DeclarationDB.assignment_id == assignment_id).first()

    def _insert_declaration(self, assignment: AssignmentDB, student_id: str) -> DeclarationDB:
        existing = self._existing_for_assignment(assignment.id)
        if existing is not None:
            raise AlreadyExists("Declaration already exists for this assignment", existing_id=existing.id)

        now = datetime.utcnow()
        declaration = DeclarationDB(
            id=str(uuid4()),
            assignment_id=assignment.id,
            student_id=student_id,
            status=DeclarationStatus.DRAFT,
            time_period_locked_at=now,
        )
        self.db.add(declaration)
        self.db.flush()
        return declaration

    def _insert_entry(
        self,
        declaration_id: str,
        field_name: str,
        content: str,
        origin: EntryOrigin,
        interaction_log_id: Optional[str] = None,
    ) -> DeclarationEntryDB:
        entry = DeclarationEntryDB(
            id=str(uuid4()),
            declaration_id=declaration_id,
            interaction_log_id=interaction_log_id,
            field_name=field_name,
            content=content,
            origin=origin,
        )
        self.db.add(entry)
        return entry

    def _commit_snapshot(self, declaration_id: str, trigger: SnapshotTrigger, **kwargs) -> str:
        """Write a snapshot in its own commit; roll back on any failure."""
        try:
            snapshot_id = self.history.create_snapshot(declaration_id, trigger, **kwargs)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise SnapshotWriteFailed(f"Could not record {SnapshotTrigger(trigger).value} snapshot: {e}") from e
        except DeclarationError:
            self.db.rollback()
            raise
        return snapshot_id

    @staticmethod
    def _entry_dict(entry: DeclarationEntryDB) -> Dict[str, Any]:
        data = row_to_dict(entry)
        data["origin_label"] = origin_label(entry.origin)
        return data

    # =========================================================================
    # READS
    # =========================================================================

    def get_declaration(self, declaration_id: str) -> Dict[str, Any]:
        declaration = self._get_declaration(declaration_id)
        reflection = self.db.query(ReflectionDB).filter(ReflectionDB.declaration_id == declaration_id).first()
        return {
            "declaration": row_to_dict(declaration),
            "entries": [self._entry_dict(e) for e in load_entries(self.db, declaration_id)],
            "manual_entries": [row_to_dict(m) for m in load_manual_entries(self.db, declaration_id)],
            "reflection": row_to_dict(reflection),
        }

    def get_by_assignment(self, assignment_id: str) -> Dict[str, Any]:
        declaration = self._existing_for_assignment(assignment_id)
        if declaration is None:
            raise NotFound("Declaration for assignment", assignment_id)
        return self.get_declaration(declaration.id)

    def get_warnings(self, declaration_id: str) -> List[Dict[str, Any]]:
        """Live warnings; for a submitted declaration, those recorded at submission."""
        declaration = self._get_declaration(declaration_id)
        if declaration.status == DeclarationStatus.SUBMITTED:
            snapshot = self.history.latest(declaration_id, SnapshotTrigger.SUBMISSION)
            return snapshot["active_warnings"] if snapshot else []
        return [w.to_dict() for w in self._session(declaration_id).active_warnings()]

    def get_coverage(self, declaration_id: str) -> Dict[str, Any]:
        self._get_declaration(declaration_id)
        state = self._state(declaration_id)
        return summarize_coverage(state.declared_count, state.total_logged).to_dict()

    # =========================================================================
    # DECLARATION CREATION
    # =========================================================================

    def create_declaration(self, assignment_id: str, student_id: str) -> str:
        """
        Create an empty declaration and its initial_open snapshot.

        Fails with AlreadyExists if the assignment already has one.
        """
        if not (assignment_id or "").strip() or not (student_id or "").strip():
            raise ValidationFailed([
                {"field": "assignment_id", "message": "assignment_id and student_id are required"},
            ])
        assignment = self.interactions.get_assignment(assignment_id)

        declaration = None
        try:
            declaration = self._insert_declaration(assignment, student_id)
            session = self._session(declaration.id)
            self.history.create_snapshot(declaration.id, SnapshotTrigger.INITIAL_OPEN, session.active_warnings())
            self.db.commit()
        except (SQLAlchemyError, DeclarationError):
            self.db.rollback()
            if declaration is not None:
                self.registry.close(declaration.id)
            raise

        logger.info(f"Declaration {declaration.id} created for assignment {assignment_id}")
        return declaration.id

    def generate_draft(self, assignment_id: str, student_id: str) -> Dict[str, Any]:
        """
        Create the declaration pre-populated from the assignment's scoped logs.

        Refuses to run while unassigned interactions fall inside the
        assignment's period. Declaration, entries and the initial_open
        snapshot commit together or not at all.
        """
        if not (assignment_id or "").strip() or not (student_id or "").strip():
            raise ValidationFailed([
                {"field": "assignment_id", "message": "assignment_id and student_id are required"},
            ])
        assignment = self.interactions.get_assignment(assignment_id)
        self.interactions.ensure_resolved(assignment)

        declaration = None
        try:
            declaration = self._insert_declaration(assignment, student_id)
            logs = self.interactions.scoped_logs(assignment)
            for log in logs:
                self._insert_entry(
                    declaration.id, USAGE_SUMMARY_FIELD, build_entry_content(log),
                    EntryOrigin.AUTO_GENERATED, interaction_log_id=log.id,
                )
            self.db.flush()
            session = self._session(declaration.id)
            snapshot_id = self.history.create_snapshot(
                declaration.id, SnapshotTrigger.INITIAL_OPEN, session.active_warnings()
            )
            self.db.commit()
        except (AlreadyExists, SnapshotWriteFailed):
            self.db.rollback()
            if declaration is not None:
                self.registry.close(declaration.id)
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            if declaration is not None:
                self.registry.close(declaration.id)
            logger.error(f"Draft generation failed for assignment {assignment_id}: {e}")
            raise DraftGenerationFailed(f"Draft generation failed: {e}") from e

        logger.info(f"Draft generated for assignment {assignment_id}: {len(logs)} entries")
        return {
            "declaration_id": declaration.id,
            "entries_created": len(logs),
            "snapshot_id": snapshot_id,
        }

    # =========================================================================
    # ENTRIES
    # =========================================================================

    def add_entry(
        self,
        declaration_id: str,
        field_name: str,
        content: str,
        origin: str,
        interaction_log_id: Optional[str] = None,
    ) -> str:
        errors = []
        if not (field_name or "").strip():
            errors.append({"field": "field_name", "message": "field_name is required"})
        if not (content or "").strip():
            errors.append({"field": "content", "message": "content is required"})
        try:
            origin = EntryOrigin(origin)
        except ValueError:
            errors.append({
                "field": "origin",
                "message": f"origin must be one of: {', '.join(o.value for o in EntryOrigin)}",
            })
        if errors:
            raise ValidationFailed(errors)

        self._get_draft(declaration_id)
        if interaction_log_id is not None:
            self.interactions.get_interaction(interaction_log_id)
        session = self._session(declaration_id)

        entry = self._insert_entry(declaration_id, field_name, content, origin, interaction_log_id)
        self.db.commit()

        session.publish(EntryAdded(
            declaration_id=declaration_id,
            state=self._state(declaration_id),
            entry_id=entry.id,
            origin=origin,
        ))
        return entry.id

    def edit_entry(self, declaration_id: str, entry_id: str, new_content: str) -> Dict[str, Any]:
        """
        Replace an entry's content.

        Applies the origin transition, keeps the pre-edit text on first edit
        only, and records diff_delta = len(new) - len(old).
        """
        if not (new_content or "").strip():
            raise ValidationFailed([{"field": "content", "message": "content is required"}])

        self._get_draft(declaration_id)
        entry = self._get_entry(declaration_id, entry_id)
        session = self._session(declaration_id)

        previous_origin, previous_text = EntryOrigin(entry.origin), entry.content
        outcome = apply_edit(previous_origin, entry.content, entry.previous_content, new_content)

        entry.content = outcome.content
        entry.origin = outcome.new_origin
        entry.previous_content = outcome.previous_content
        entry.diff_delta = outcome.diff_delta
        self.db.commit()

        session.publish(EntryModified(
            declaration_id=declaration_id,
            state=self._state(declaration_id),
            entry_id=entry_id,
            previous_content=previous_text,
            new_content=outcome.content,
            previous_origin=previous_origin,
            new_origin=outcome.new_origin,
            diff_delta=outcome.diff_delta,
        ))

        return {
            "updated": True,
            "new_origin": outcome.new_origin.value,
            "origin_label": origin_label(outcome.new_origin),
            "diff_delta": outcome.diff_delta,
        }

    def delete_entry(self, declaration_id: str, entry_id: str) -> Dict[str, Any]:
        """
        Hard-delete an entry.

        The deleted entry's origin and content travel in the EntryDeleted
        event, so the monitor's deletion check sees the record as it was.
        """
        self._get_draft(declaration_id)
        entry = self._get_entry(declaration_id, entry_id)
        session = self._session(declaration_id)

        origin, content = EntryOrigin(entry.origin), entry.content
        self.db.delete(entry)
        self.db.commit()

        session.publish(EntryDeleted(
            declaration_id=declaration_id,
            state=self._state(declaration_id),
            entry_id=entry_id,
            origin=origin,
            content=content,
        ))
        return {"deleted": True}

    # =========================================================================
    # MANUAL ENTRIES
    # =========================================================================

    def add_manual_entry(
        self,
        declaration_id: str,
        tool_name: str,
        date_range: str,
        description: str,
        reason: str,
        reason_other: Optional[str] = None,
    ) -> str:
        errors = validate_manual_entry(tool_name, date_range, description, reason, reason_other)
        if errors:
            raise ValidationFailed(errors)

        self._get_draft(declaration_id)
        session = self._session(declaration_id)

        manual = ManualUsageEntryDB(
            id=str(uuid4()),
            declaration_id=declaration_id,
            tool_name=tool_name.strip(),
            date_range=date_range.strip(),
            description=description,
            reason=ManualReason(reason),
            reason_other=reason_other if reason == ManualReason.OTHER.value else None,
        )
        self.db.add(manual)
        self.db.commit()

        session.publish(ManualEntryAdded(
            declaration_id=declaration_id,
            state=self._state(declaration_id),
            manual_entry_id=manual.id,
            tool_name=manual.tool_name,
        ))
        return manual.id

    def remove_manual_entry(self, declaration_id: str, manual_entry_id: str) -> Dict[str, Any]:
        self._get_draft(declaration_id)
        manual = self.db.query(ManualUsageEntryDB).filter(
            ManualUsageEntryDB.id == manual_entry_id,
            ManualUsageEntryDB.declaration_id == declaration_id,
        ).first()
        if manual is None:
            raise NotFound("Manual entry", manual_entry_id)
        session = self._session(declaration_id)

        self.db.delete(manual)
        self.db.commit()

        session.publish(ManualEntryRemoved(
            declaration_id=declaration_id,
            state=self._state(declaration_id),
            manual_entry_id=manual_entry_id,
        ))
        return {"deleted": True}

    # =========================================================================
    # REFLECTION
    # =========================================================================

    def update_reflection(self, declaration_id: str, prompt1: str, prompt2: str) -> Dict[str, Any]:
        """Store both prompts; validity is computed here, never taken from the client."""
        self._get_draft(declaration_id)
        validation = validate_reflection(prompt1, prompt2)

        reflection = self.db.query(ReflectionDB).filter(ReflectionDB.declaration_id == declaration_id).first()
        if reflection is None:
            reflection = ReflectionDB(id=str(uuid4()), declaration_id=declaration_id)
            self.db.add(reflection)
        reflection.prompt1 = prompt1 or ""
        reflection.prompt2 = prompt2 or ""
        reflection.is_valid = validation.valid
        reflection.word_count_p1 = validation.prompt1.word_count
        reflection.word_count_p2 = validation.prompt2.word_count
        self.db.commit()

        return {"updated": True, **validation.to_dict()}

    # =========================================================================
    # LIFECYCLE SNAPSHOTS
    # =========================================================================

    def save_draft(self, declaration_id: str) -> Dict[str, Any]:
        self._get_draft(declaration_id)
        session = self._session(declaration_id)
        snapshot_id = self._commit_snapshot(
            declaration_id, SnapshotTrigger.MANUAL_SAVE, active_warnings=session.active_warnings()
        )
        return {"saved": True, "snapshot_id": snapshot_id}

    def enter_review(self, declaration_id: str) -> Dict[str, Any]:
        """Review/confirmation step: snapshot plus everything the step displays."""
        self._get_draft(declaration_id)
        session = self._session(declaration_id)
        warnings = session.active_warnings()
        snapshot_id = self._commit_snapshot(
            declaration_id, SnapshotTrigger.REVIEW_STEP, active_warnings=warnings
        )

        reflection = self.db.query(ReflectionDB).filter(ReflectionDB.declaration_id == declaration_id).first()
        return {
            "snapshot_id": snapshot_id,
            "warnings": [w.to_dict() for w in warnings],
            "coverage": self.get_coverage(declaration_id),
            "confirmation_text": confirmation_text(bool(warnings)),
            "acknowledgment_required": bool(warnings),
            "reflection_valid": bool(reflection and reflection.is_valid),
        }

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit(self, declaration_id: str, acknowledged_warnings: bool = False) -> Dict[str, Any]:
        """
        Final submission.

        Gate: the stored reflection must exist and pass the shared validator.
        Active warnings never block, but they must be acknowledged.
        The status change and the submission snapshot commit together.
        """
        declaration = self._get_draft(declaration_id)

        reflection = self.db.query(ReflectionDB).filter(ReflectionDB.declaration_id == declaration_id).first()
        if reflection is None or not reflection.is_valid:
            raise ReflectionInvalid()
        validation = validate_reflection(reflection.prompt1, reflection.prompt2)
        if not validation.valid:
            raise ReflectionInvalid(errors=validation.field_errors())

        session = self._session(declaration_id)
        warnings = session.active_warnings()
        if warnings and not acknowledged_warnings:
            raise ValidationFailed([{
                "field": "acknowledged_warnings",
                "message": "Unresolved warnings must be acknowledged before submission",
            }])

        text = confirmation_text(bool(warnings))
        try:
            declaration.status = DeclarationStatus.SUBMITTED
            declaration.submitted_at = datetime.utcnow()
            self.db.flush()
            snapshot_id = self.history.create_snapshot(
                declaration_id,
                SnapshotTrigger.SUBMISSION,
                warnings,
                meta={"acknowledged_warnings": bool(warnings) and acknowledged_warnings, "confirmation_text": text},
            )
            self.db.commit()
        except (SQLAlchemyError, DeclarationError):
            self.db.rollback()
            logger.error(f"Submission of declaration {declaration_id} rolled back")
            raise

        self.registry.close(declaration_id)
        logger.info(f"Declaration {declaration_id} submitted with {len(warnings)} acknowledged warning(s)")
        return {
            "submitted": True,
            "submitted_at": declaration.submitted_at.isoformat(),
            "snapshot_id": snapshot_id,
            "confirmation_text": text,
            "warnings": [w.to_dict() for w in warnings],
        }

    # =========================================================================
    # REGENERATION
    # =========================================================================

    def regenerate(self, declaration_id: str) -> Dict[str, Any]:
        """
        Merge entries for newly available logs into an existing draft.

        Logs already linked to an entry are skipped; existing entries keep
        their content and origin. Bracketed by pre/post snapshots.
        """
        declaration = self._get_draft(declaration_id)
        assignment = self.interactions.get_assignment(declaration.assignment_id)
        self.interactions.ensure_resolved(assignment)
        session = self._session(declaration_id)

        pre_snapshot_id = self._commit_snapshot(
            declaration_id, SnapshotTrigger.PRE_REGENERATION, active_warnings=session.active_warnings()
        )

        checkpoint = session.monitor.checkpoint()
        try:
            represented = {
                e.interaction_log_id for e in load_entries(self.db, declaration_id)
                if e.interaction_log_id is not None
            }
            added = [
                self._insert_entry(
                    declaration_id, USAGE_SUMMARY_FIELD, build_entry_content(log),
                    EntryOrigin.AUTO_GENERATED, interaction_log_id=log.id,
                )
                for log in self.interactions.scoped_logs(assignment)
                if log.id not in represented
            ]
            declaration.updated_at = datetime.utcnow()
            self.db.flush()

            state = self._state(declaration_id)
            for entry in added:
                session.publish(EntryAdded(
                    declaration_id=declaration_id, state=state,
                    entry_id=entry.id, origin=EntryOrigin.AUTO_GENERATED,
                ))

            post_snapshot_id = self.history.create_snapshot(
                declaration_id, SnapshotTrigger.POST_REGENERATION, session.active_warnings()
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            session.monitor.restore(checkpoint)
            logger.error(f"Regeneration failed for declaration {declaration_id}: {e}")
            raise DraftGenerationFailed(f"Regeneration failed: {e}") from e
        except Exception:
            # Warnings raised for the merged entries must not outlive them
            self.db.rollback()
            session.monitor.restore(checkpoint)
            logger.error(f"Regeneration of declaration {declaration_id} rolled back")
            raise

        count = len(added)
        logger.info(f"Declaration {declaration_id} regenerated: {count} new entries")
        return {
            "regenerated": True,
            "new_entries_added": count,
            "pre_snapshot_id": pre_snapshot_id,
            "post_snapshot_id": post_snapshot_id,
            "message": (
                f"Draft regenerated. {count} new entr{'y' if count == 1 else 'ies'} added from newly "
                f"available logs. Existing edits and reflections preserved."
            ),
        }
