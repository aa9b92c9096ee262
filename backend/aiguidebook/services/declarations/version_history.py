"""
Version History Service

Append-only audit trail of full declaration state.

Core Principles:
1. Snapshots are INSERTed once. No update or delete path exists; the ORM
   rejects both (AppendOnlyViolation).
2. State is re-read from storage at capture time, never taken from a cache.
3. Snapshot writes join the caller's transaction. If the write fails the
   caller's operation fails with it - an action without its audit record is
   an invalid end state.
4. "Undo" is a new snapshot, never a change to an old one.
"""
import logging
from copy import deepcopy
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import (
    DeclarationDB, ReflectionDB, SnapshotTrigger, VersionSnapshotDB, row_to_dict,
)
from ...models.domain import IntegrityWarning
from .errors import NotFound, SnapshotWriteFailed
from .state import load_entries, load_manual_entries

logger = logging.getLogger(__name__)


class VersionHistoryService:
    """Writes and reads version snapshots. Never commits; callers own the transaction."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # WRITE
    # =========================================================================

    def create_snapshot(
        self,
        declaration_id: str,
        trigger: SnapshotTrigger,
        active_warnings: Iterable[IntegrityWarning] = (),
        meta: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Capture the declaration as it is now and append one snapshot.

        Args:
            declaration_id: Declaration to capture
            trigger: Lifecycle point that caused the capture
            active_warnings: Integrity warnings active at capture time
            meta: Extra facts recorded in snapshot_meta (e.g. acknowledgment)

        Returns:
            The new snapshot id
        """
        trigger = SnapshotTrigger(trigger)
        warnings = [w.to_dict() for w in active_warnings]
        captured_at = datetime.utcnow()

        try:
            self.db.flush()
            declaration = self.db.query(DeclarationDB).filter(DeclarationDB.id == declaration_id).first()
            if declaration is None:
                raise NotFound("Declaration", declaration_id)
            reflection = self.db.query(ReflectionDB).filter(ReflectionDB.declaration_id == declaration_id).first()

            payload = {
                "declaration": row_to_dict(declaration),
                "entries": [row_to_dict(e) for e in load_entries(self.db, declaration_id)],
                "manual_entries": [row_to_dict(m) for m in load_manual_entries(self.db, declaration_id)],
                "reflection": row_to_dict(reflection),
                "active_warnings": warnings,
                "snapshot_meta": {
                    "trigger": trigger.value,
                    "captured_at": captured_at.isoformat(),
                    **(meta or {}),
                },
            }

            snapshot = VersionSnapshotDB(
                id=str(uuid4()),
                declaration_id=declaration_id,
                sequence=self._next_sequence(declaration_id),
                trigger_event=trigger,
                snapshot_data=payload,
                active_warnings=deepcopy(warnings),
                created_at=captured_at,
            )
            self.db.add(snapshot)
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Snapshot write failed for declaration {declaration_id} ({trigger.value}): {e}")
            raise SnapshotWriteFailed(f"Could not record {trigger.value} snapshot: {e}") from e

        logger.info(
            f"Snapshot {snapshot.sequence} ({trigger.value}) recorded for declaration {declaration_id}"
        )
        return snapshot.id

    def _next_sequence(self, declaration_id: str) -> int:
        current = (
            self.db.query(func.max(VersionSnapshotDB.sequence))
            .filter(VersionSnapshotDB.declaration_id == declaration_id)
            .scalar()
        )
        return (current or 0) + 1

    # =========================================================================
    # READ
    # =========================================================================

    def _require_declaration(self, declaration_id: str) -> None:
        if self.db.query(DeclarationDB.id).filter(DeclarationDB.id == declaration_id).first() is None:
            raise NotFound("Declaration", declaration_id)

    def list_snapshots(self, declaration_id: str) -> List[Dict[str, Any]]:
        """Snapshot summaries, oldest first."""
        self._require_declaration(declaration_id)
        rows = (
            self.db.query(VersionSnapshotDB)
            .filter(VersionSnapshotDB.declaration_id == declaration_id)
            .order_by(VersionSnapshotDB.sequence)
            .all()
        )
        return [
            {
                "id": row.id,
                "declaration_id": row.declaration_id,
                "sequence": row.sequence,
                "trigger_event": row.trigger_event.value,
                "active_warnings": deepcopy(row.active_warnings),
                "created_at": row.created_at.isoformat(),
            }
            for row in rows
        ]

    def get_snapshot(self, declaration_id: str, snapshot_id: str) -> Dict[str, Any]:
        """Full snapshot payload. Each call returns its own copy."""
        row = (
            self.db.query(VersionSnapshotDB)
            .filter(
                VersionSnapshotDB.id == snapshot_id,
                VersionSnapshotDB.declaration_id == declaration_id,
            )
            .first()
        )
        if row is None:
            raise NotFound("Snapshot", snapshot_id)
        return {
            "id": row.id,
            "declaration_id": row.declaration_id,
            "sequence": row.sequence,
            "trigger_event": row.trigger_event.value,
            "snapshot_data": deepcopy(row.snapshot_data),
            "active_warnings": deepcopy(row.active_warnings),
            "created_at": row.created_at.isoformat(),
        }

    def latest(self, declaration_id: str, trigger: Optional[SnapshotTrigger] = None) -> Optional[Dict[str, Any]]:
        query = self.db.query(VersionSnapshotDB).filter(VersionSnapshotDB.declaration_id == declaration_id)
        if trigger is not None:
            query = query.filter(VersionSnapshotDB.trigger_event == SnapshotTrigger(trigger))
        row = query.order_by(VersionSnapshotDB.sequence.desc()).first()
        return self.get_snapshot(declaration_id, row.id) if row is not None else None
