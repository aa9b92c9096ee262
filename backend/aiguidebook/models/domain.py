"""
AI Guidebook - Integrity Domain Values

Immutable values passed between the declaration services and the integrity
engine. The engine never touches the database: it only sees these.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .db_models import EntryOrigin, ManualReason


# =============================================================================
# WARNINGS
# =============================================================================

class WarningCondition(str, Enum):
    ENTRY_DELETED = "entry_deleted"    # AI-origin entry removed from the declaration
    SCOPE_REDUCED = "scope_reduced"    # Edit shrank the described AI involvement
    COVERAGE_LOW = "coverage_low"      # Declared count < 60% of logged interactions
    TOOL_MISSING = "tool_missing"      # Logged tool never mentioned in the declaration


def warning_id(declaration_id: str, condition: WarningCondition, related: Optional[str] = None) -> str:
    """
    Stable identity for a warning.

    The same declaration, condition and related entry/tool always produce the
    same id, so re-raising is idempotent and clearing can be targeted.
    """
    base = f"{condition.value}:{declaration_id}"
    return f"{base}:{related}" if related else base


@dataclass(frozen=True)
class IntegrityWarning:
    """Advisory finding. Replaced, never edited."""
    id: str
    condition: WarningCondition
    message: str
    raised_at: datetime
    related_entry_id: Optional[str] = None
    related_tool: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "condition": self.condition.value,
            "message": self.message,
            "raised_at": self.raised_at.isoformat(),
            "related_entry_id": self.related_entry_id,
            "related_tool": self.related_tool,
        }


# =============================================================================
# DECLARATION STATE
# =============================================================================

@dataclass(frozen=True)
class EntryState:
    """A declaration entry as seen by the integrity engine."""
    id: str
    field_name: str
    content: str
    origin: EntryOrigin
    interaction_log_id: Optional[str] = None
    previous_content: Optional[str] = None


@dataclass(frozen=True)
class ManualEntryState:
    """A manual usage entry as seen by the integrity engine."""
    id: str
    tool_name: str
    description: str
    date_range: str = ""
    reason: Optional[ManualReason] = None

    @property
    def searchable_text(self) -> str:
        return f"{self.tool_name} {self.description}"


@dataclass(frozen=True)
class DeclarationState:
    """
    Point-in-time view of a declaration and the logs it is measured against.

    logged_tools and total_logged come from the assignment's time-scoped
    interaction logs.
    """
    declaration_id: str
    entries: Tuple[EntryState, ...] = field(default_factory=tuple)
    manual_entries: Tuple[ManualEntryState, ...] = field(default_factory=tuple)
    logged_tools: Tuple[str, ...] = field(default_factory=tuple)
    total_logged: int = 0

    @property
    def declared_count(self) -> int:
        """Entries and manual entries count 1:1 against logged interactions."""
        return len(self.entries) + len(self.manual_entries)

    def declared_contents(self) -> List[str]:
        return [e.content for e in self.entries] + [m.searchable_text for m in self.manual_entries]

    def entry(self, entry_id: str) -> Optional[EntryState]:
        for e in self.entries:
            if e.id == entry_id:
                return e
        return None
