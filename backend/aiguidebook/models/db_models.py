"""
AI Guidebook - SQLAlchemy ORM Models
Persistent storage for assignments, interaction logs, declarations and their audit trail
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import Column, String, Integer, DateTime, Text, ForeignKey, Boolean, JSON, Enum as SQLEnum, event
from sqlalchemy.orm import relationship

from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class OriginTag(str, Enum):
    """How an interaction log came to be attributed to an assignment."""
    STUDENT_TAGGED = "student_tagged"
    INFERRED = "inferred"
    UNASSIGNED = "unassigned"


class EntryOrigin(str, Enum):
    """Provenance of a declaration entry. Never discarded once assigned."""
    AUTO_GENERATED = "auto-generated"
    AUTO_GENERATED_MODIFIED = "auto-generated-modified"
    MANUAL = "manual"


class DeclarationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"


class ManualReason(str, Enum):
    """Why a usage was not captured by the interaction logger."""
    EXTERNAL_DEVICE = "external_device"
    UNINTEGRATED_TOOL = "unintegrated_tool"
    BEFORE_LOGGING = "before_logging"
    OTHER = "other"


class SnapshotTrigger(str, Enum):
    """Lifecycle points at which a version snapshot is captured."""
    INITIAL_OPEN = "initial_open"
    REVIEW_STEP = "review_step"
    SUBMISSION = "submission"
    MANUAL_SAVE = "manual_save"
    PRE_REGENERATION = "pre_regeneration"
    POST_REGENERATION = "post_regeneration"


def _value_enum(enum_cls):
    """Persist enum values (e.g. 'auto-generated') rather than member names."""
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=32,
    )


# =============================================================================
# ASSIGNMENTS AND INTERACTION LOGS
# =============================================================================

class AssignmentDB(Base):
    """Assignment with an instructor-defined active period."""
    __tablename__ = "assignments"

    id = Column(String(64), primary_key=True)
    course_id = Column(String(64), nullable=False)
    course_name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    period_start = Column(DateTime, nullable=False)
    period_end = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def covers(self, moment: datetime) -> bool:
        """Inclusive period check."""
        return self.period_start <= moment <= self.period_end


class InteractionLogDB(Base):
    """
    One logged use of an AI tool.

    assignment_id is NULL while origin_tag is UNASSIGNED. Once a student resolves
    the log it becomes STUDENT_TAGGED and the association is never rewritten.
    """
    __tablename__ = "interaction_logs"

    id = Column(String(64), primary_key=True)
    assignment_id = Column(String(64), ForeignKey("assignments.id"), nullable=True, index=True)
    tool_name = Column(String(255), nullable=False)  # e.g. "ChatGPT", "GitHub Copilot"
    category = Column(String(255), nullable=False)   # e.g. "code generation", "debugging"
    description = Column(Text, nullable=False)
    logged_at = Column(DateTime, nullable=False, index=True)
    origin_tag = Column(_value_enum(OriginTag), nullable=False, default=OriginTag.INFERRED)


# =============================================================================
# DECLARATIONS
# =============================================================================

class DeclarationDB(Base):
    """One declaration per assignment-student pair."""
    __tablename__ = "declarations"

    id = Column(String(36), primary_key=True)  # UUID
    assignment_id = Column(String(64), ForeignKey("assignments.id"), nullable=False, unique=True)
    student_id = Column(String(64), nullable=False)
    status = Column(_value_enum(DeclarationStatus), nullable=False, default=DeclarationStatus.DRAFT)
    time_period_locked_at = Column(DateTime, nullable=True)  # Set on first open
    submitted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    assignment = relationship("AssignmentDB")
    entries = relationship("DeclarationEntryDB", back_populates="declaration")
    manual_entries = relationship("ManualUsageEntryDB", back_populates="declaration")
    reflection = relationship("ReflectionDB", back_populates="declaration", uselist=False)


class DeclarationEntryDB(Base):
    """
    One declared field of AI usage.

    previous_content is written on the first edit only and then always holds the
    original pre-edit text. diff_delta is the character delta of the latest edit.
    """
    __tablename__ = "declaration_entries"

    id = Column(String(36), primary_key=True)  # UUID
    declaration_id = Column(String(36), ForeignKey("declarations.id"), nullable=False, index=True)
    interaction_log_id = Column(String(64), ForeignKey("interaction_logs.id"), nullable=True)
    field_name = Column(String(100), nullable=False)  # e.g. "usage_summary"
    content = Column(Text, nullable=False)
    origin = Column(_value_enum(EntryOrigin), nullable=False)
    previous_content = Column(Text, nullable=True)
    diff_delta = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    declaration = relationship("DeclarationDB", back_populates="entries")


class ManualUsageEntryDB(Base):
    """Student-authored usage record with no interaction log behind it."""
    __tablename__ = "manual_usage_entries"

    id = Column(String(36), primary_key=True)  # UUID
    declaration_id = Column(String(36), ForeignKey("declarations.id"), nullable=False, index=True)
    tool_name = Column(String(255), nullable=False)
    date_range = Column(String(255), nullable=False)  # Free text, e.g. "Nov 3-5"
    description = Column(Text, nullable=False)
    reason = Column(_value_enum(ManualReason), nullable=False)
    reason_other = Column(Text, nullable=True)  # Required only when reason = OTHER
    created_at = Column(DateTime, default=datetime.utcnow)

    declaration = relationship("DeclarationDB", back_populates="manual_entries")


class ReflectionDB(Base):
    """Two reflection prompts; is_valid is computed server-side on every write."""
    __tablename__ = "reflections"

    id = Column(String(36), primary_key=True)  # UUID
    declaration_id = Column(String(36), ForeignKey("declarations.id"), nullable=False, unique=True)
    prompt1 = Column(Text, nullable=False, default="")
    prompt2 = Column(Text, nullable=False, default="")
    is_valid = Column(Boolean, nullable=False, default=False)
    word_count_p1 = Column(Integer, nullable=False, default=0)
    word_count_p2 = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    declaration = relationship("DeclarationDB", back_populates="reflection")


# =============================================================================
# VERSION SNAPSHOTS (APPEND-ONLY)
# =============================================================================

class AppendOnlyViolation(Exception):
    """Raised when anything tries to update or delete a persisted snapshot."""
    pass


class VersionSnapshotDB(Base):
    """
    Immutable capture of full declaration state.

    Rows are INSERTed once and never UPDATEd or DELETEd. snapshot_data is the
    full self-contained document; readers get a deep copy, never the row value.
    """
    __tablename__ = "version_snapshots"

    id = Column(String(36), primary_key=True)  # UUID
    declaration_id = Column(String(36), ForeignKey("declarations.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)  # 1-based, per declaration
    trigger_event = Column(_value_enum(SnapshotTrigger), nullable=False)
    snapshot_data = Column(JSON, nullable=False)
    active_warnings = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


@event.listens_for(VersionSnapshotDB, "before_update")
def _reject_snapshot_update(_mapper, _connection, target):
    raise AppendOnlyViolation(f"Version snapshot {target.id} is append-only and cannot be updated")


@event.listens_for(VersionSnapshotDB, "before_delete")
def _reject_snapshot_delete(_mapper, _connection, target):
    raise AppendOnlyViolation(f"Version snapshot {target.id} is append-only and cannot be deleted")


# =============================================================================
# SERIALIZATION
# =============================================================================

def row_to_dict(row) -> Optional[Dict[str, Any]]:
    """Column values of an ORM row as plain JSON-friendly values."""
    if row is None:
        return None
    result = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        result[column.key] = value
    return result
