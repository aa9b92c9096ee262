"""
Interaction Service

Time-period scoping of interaction logs and the unassigned-interaction
resolution gate.

RESOLUTION GATE:
- A log whose timestamp falls inside more than one assignment period is held
  as UNASSIGNED with no assignment. The system never guesses.
- Draft generation for an assignment refuses to run while any unassigned log
  falls inside that assignment's period.
- Resolution is one-way: the student picks the assignment, the log becomes
  STUDENT_TAGGED and the association is never rewritten.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Union
from uuid import uuid4

from dateutil.parser import isoparse
from sqlalchemy.orm import Session

from ...models.db_models import AssignmentDB, InteractionLogDB, OriginTag
from .errors import NotFound, StateConflict, UnresolvedInteractions, ValidationFailed

logger = logging.getLogger(__name__)

NEARBY_MARGIN_DAYS = 7


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """ISO-8601 string or datetime -> naive UTC datetime, the storage convention."""
    moment = isoparse(value) if isinstance(value, str) else value
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


class InteractionService:
    """Reads and resolves interaction logs."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def get_assignment(self, assignment_id: str) -> AssignmentDB:
        assignment = self.db.query(AssignmentDB).filter(AssignmentDB.id == assignment_id).first()
        if assignment is None:
            raise NotFound("Assignment", assignment_id)
        return assignment

    def get_interaction(self, interaction_id: str) -> InteractionLogDB:
        log = self.db.query(InteractionLogDB).filter(InteractionLogDB.id == interaction_id).first()
        if log is None:
            raise NotFound("Interaction", interaction_id)
        return log

    def list_all(self) -> List[InteractionLogDB]:
        return self.db.query(InteractionLogDB).order_by(InteractionLogDB.logged_at).all()

    def for_assignment(self, assignment_id: str) -> List[InteractionLogDB]:
        """Every log attributed to the assignment, regardless of period."""
        return (
            self.db.query(InteractionLogDB)
            .filter(InteractionLogDB.assignment_id == assignment_id)
            .order_by(InteractionLogDB.logged_at)
            .all()
        )

    def scoped_logs(self, assignment: AssignmentDB) -> List[InteractionLogDB]:
        """Logs attributed to the assignment within its period, inclusive."""
        return (
            self.db.query(InteractionLogDB)
            .filter(
                InteractionLogDB.assignment_id == assignment.id,
                InteractionLogDB.logged_at >= assignment.period_start,
                InteractionLogDB.logged_at <= assignment.period_end,
            )
            .order_by(InteractionLogDB.logged_at, InteractionLogDB.id)
            .all()
        )

    # =========================================================================
    # RECORDING
    # =========================================================================

    def candidate_assignments(self, logged_at: datetime) -> List[AssignmentDB]:
        """Assignments whose active period contains the timestamp."""
        return (
            self.db.query(AssignmentDB)
            .filter(AssignmentDB.period_start <= logged_at, AssignmentDB.period_end >= logged_at)
            .order_by(AssignmentDB.period_start)
            .all()
        )

    def record_interaction(
        self,
        tool_name: str,
        category: str,
        description: str,
        logged_at: Union[str, datetime],
        assignment_id: Optional[str] = None,
        interaction_id: Optional[str] = None,
    ) -> InteractionLogDB:
        """
        Store a log, attributing it only when that is unambiguous.

        An explicit assignment_id is a student tag. Otherwise exactly one
        covering period means INFERRED; zero or several mean UNASSIGNED.
        """
        moment = parse_timestamp(logged_at)

        if assignment_id is not None:
            self.get_assignment(assignment_id)
            origin_tag = OriginTag.STUDENT_TAGGED
        else:
            candidates = self.candidate_assignments(moment)
            if len(candidates) == 1:
                assignment_id = candidates[0].id
                origin_tag = OriginTag.INFERRED
            else:
                origin_tag = OriginTag.UNASSIGNED

        log = InteractionLogDB(
            id=interaction_id or str(uuid4()),
            assignment_id=assignment_id,
            tool_name=tool_name,
            category=category,
            description=description,
            logged_at=moment,
            origin_tag=origin_tag,
        )
        self.db.add(log)
        self.db.flush()
        return log

    # =========================================================================
    # RESOLUTION GATE
    # =========================================================================

    def unassigned(self) -> List[InteractionLogDB]:
        return (
            self.db.query(InteractionLogDB)
            .filter(
                InteractionLogDB.assignment_id.is_(None),
                InteractionLogDB.origin_tag == OriginTag.UNASSIGNED,
            )
            .order_by(InteractionLogDB.logged_at)
            .all()
        )

    def pending_for(self, assignment: AssignmentDB) -> List[InteractionLogDB]:
        """Unassigned logs inside the assignment's period."""
        return [log for log in self.unassigned() if assignment.covers(log.logged_at)]

    def nearby_unassigned(self, assignment: AssignmentDB, margin_days: int = NEARBY_MARGIN_DAYS) -> List[InteractionLogDB]:
        """Unassigned logs within the period widened by margin_days on each side."""
        if margin_days < 0:
            raise ValidationFailed([{"field": "margin_days", "message": "must not be negative"}])
        margin = timedelta(days=margin_days)
        start, end = assignment.period_start - margin, assignment.period_end + margin
        return [log for log in self.unassigned() if start <= log.logged_at <= end]

    def ensure_resolved(self, assignment: AssignmentDB) -> None:
        pending = self.pending_for(assignment)
        if pending:
            logger.info(
                f"Draft generation for assignment {assignment.id} blocked by "
                f"{len(pending)} unassigned interaction(s)"
            )
            raise UnresolvedInteractions([log.id for log in pending])

    def assign(self, interaction_id: str, assignment_id: str) -> InteractionLogDB:
        """Student resolution of an unassigned log. Commits."""
        log = self.get_interaction(interaction_id)
        if log.origin_tag != OriginTag.UNASSIGNED or log.assignment_id is not None:
            raise StateConflict(f"Interaction {interaction_id} is already assigned")
        self.get_assignment(assignment_id)

        log.assignment_id = assignment_id
        log.origin_tag = OriginTag.STUDENT_TAGGED
        self.db.commit()
        logger.info(f"Interaction {interaction_id} assigned to {assignment_id} by student")
        return log
