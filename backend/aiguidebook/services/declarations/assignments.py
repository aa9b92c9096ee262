"""
Assignment Service

Instructor-side assignment records and their active periods.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ...models.db_models import AssignmentDB, DeclarationDB
from .errors import AlreadyExists, ValidationFailed
from .interactions import InteractionService, parse_timestamp

logger = logging.getLogger(__name__)


class AssignmentService:

    def __init__(self, db: Session):
        self.db = db

    def list_assignments(self) -> List[AssignmentDB]:
        return self.db.query(AssignmentDB).order_by(AssignmentDB.period_start).all()

    def get_assignment(self, assignment_id: str) -> AssignmentDB:
        return InteractionService(self.db).get_assignment(assignment_id)

    def create_assignment(
        self,
        assignment_id: str,
        course_id: str,
        course_name: str,
        title: str,
        period_start: Union[str, datetime],
        period_end: Union[str, datetime],
        description: Optional[str] = None,
    ) -> AssignmentDB:
        start, end = parse_timestamp(period_start), parse_timestamp(period_end)
        if end < start:
            raise ValidationFailed([{"field": "period_end", "message": "must not be before period_start"}])
        if self.db.query(AssignmentDB).filter(AssignmentDB.id == assignment_id).first():
            raise AlreadyExists(f"Assignment {assignment_id} already exists", existing_id=assignment_id)

        assignment = AssignmentDB(
            id=assignment_id,
            course_id=course_id,
            course_name=course_name,
            title=title,
            description=description,
            period_start=start,
            period_end=end,
        )
        self.db.add(assignment)
        self.db.commit()
        return assignment

    def update_assignment(
        self,
        assignment_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        period_start: Optional[Union[str, datetime]] = None,
        period_end: Optional[Union[str, datetime]] = None,
    ) -> Dict[str, Any]:
        """
        Update title/description/period.

        Reports how many declarations already locked their time period so the
        caller can notify those students.
        """
        assignment = self.get_assignment(assignment_id)
        fields = {
            "title": title,
            "description": description,
            "period_start": period_start,
            "period_end": period_end,
        }
        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes:
            raise ValidationFailed([{"field": "body", "message": "No fields to update"}])

        for key in ("period_start", "period_end"):
            if key in changes:
                changes[key] = parse_timestamp(changes[key])
        start = changes.get("period_start", assignment.period_start)
        end = changes.get("period_end", assignment.period_end)
        if end < start:
            raise ValidationFailed([{"field": "period_end", "message": "must not be before period_start"}])

        in_progress = (
            self.db.query(DeclarationDB)
            .filter(
                DeclarationDB.assignment_id == assignment_id,
                DeclarationDB.time_period_locked_at.isnot(None),
            )
            .count()
        )

        for key, value in changes.items():
            setattr(assignment, key, value)
        self.db.commit()

        if in_progress:
            logger.info(f"Assignment {assignment_id} updated with {in_progress} declaration(s) in progress")

        return {"updated": True, "affected_declarations_in_progress": in_progress}
