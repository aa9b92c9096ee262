"""
Integrity Monitor

Keeps the active warning set for one declaration in step with the events it
receives. Warnings are advisory: nothing here blocks or rolls back a mutation.

Event handling:
- EntryDeleted       -> deletion check, coverage, tool mentions
- EntryModified      -> scope reduction for that entry, tool mentions
- EntryAdded         -> coverage, tool mentions
- ManualEntryAdded   -> coverage, tool mentions
- ManualEntryRemoved -> coverage

Activation runs coverage and tool mentions once, unconditionally. refresh()
re-runs both whenever the scoped logs (count or tool set) differ from the ones
last evaluated, so logs recorded or assigned after activation are picked up.
"""
import logging
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from ...models.domain import (
    DeclarationState, IntegrityWarning, WarningCondition, warning_id,
)
from .coverage import (
    COVERAGE_THRESHOLD, check_scope_reduction, coverage_percent, coverage_ratio,
    deletion_triggers_warning, is_coverage_low, missing_tools,
)
from .events import (
    EntryAdded, EntryDeleted, EntryModified, EventChannel, ManualEntryAdded,
    ManualEntryRemoved, Subscription,
)
from .origin import is_ai_origin

logger = logging.getLogger(__name__)


# =============================================================================
# MESSAGES
# =============================================================================

ENTRY_DELETED_MESSAGE = (
    "An auto-generated entry was deleted. If this AI usage was real, add a manual "
    "entry to maintain an accurate declaration."
)
SCOPE_REDUCED_MESSAGE = (
    "An edit appears to reduce the described scope of AI involvement. Ensure your "
    "declaration still accurately represents your usage."
)


def coverage_message(ratio: float) -> str:
    return (
        f"Your declaration covers only {coverage_percent(ratio)}% of your logged interactions "
        f"(minimum recommended: {coverage_percent(COVERAGE_THRESHOLD)}%). Consider adding manual "
        f"entries for uncovered interactions."
    )


def tool_missing_message(tool: str) -> str:
    return (
        f'"{tool}" appears in your interaction logs but is not mentioned in your declaration. '
        f"Ensure all AI tools are accounted for."
    )


# =============================================================================
# RECONCILIATION (pure)
# =============================================================================

def reconcile(
    active: Mapping[str, IntegrityWarning],
    key: str,
    candidate: Optional[IntegrityWarning],
) -> Dict[str, IntegrityWarning]:
    """
    Next warning set after evaluating one condition.

    candidate is the warning to hold when the predicate is true, or None when
    it is false. A warning already present is kept as-is, timestamp included.
    """
    updated = dict(active)
    if candidate is None:
        updated.pop(key, None)
    elif key not in updated:
        updated[key] = candidate
    return updated


# =============================================================================
# MONITOR
# =============================================================================

class IntegrityMonitor:
    """Stateful warning tracker for a single active declaration."""

    def __init__(self, declaration_id: str, clock: Callable[[], datetime] = datetime.utcnow):
        self.declaration_id = declaration_id
        self._clock = clock
        self._warnings: Dict[str, IntegrityWarning] = {}
        self._subscriptions: List[Subscription] = []
        self._channel: Optional[EventChannel] = None
        self.activated = False
        self._evaluated_scope: Optional[Tuple[int, FrozenSet[str]]] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def attach(self, channel: EventChannel) -> None:
        self._channel = channel
        self._subscriptions = [
            channel.subscribe(EntryDeleted, self.on_entry_deleted),
            channel.subscribe(EntryModified, self.on_entry_modified),
            channel.subscribe(EntryAdded, self.on_entry_added),
            channel.subscribe(ManualEntryAdded, self.on_manual_entry_added),
            channel.subscribe(ManualEntryRemoved, self.on_manual_entry_removed),
        ]

    def detach(self) -> None:
        if self._channel is not None and not self._channel.closed:
            for subscription in self._subscriptions:
                self._channel.unsubscribe(subscription)
        self._subscriptions = []
        self._channel = None

    def activate(self, state: DeclarationState) -> None:
        """Initial check; catches discrepancies that exist before any edit."""
        self._check_coverage(state)
        self._check_tool_mentions(state)
        self.activated = True
        self._evaluated_scope = self._scope(state)
        logger.info(
            f"Integrity monitor active for declaration {self.declaration_id}: "
            f"{len(self._warnings)} warning(s)"
        )

    def refresh(self, state: DeclarationState) -> bool:
        """
        Re-run the log-dependent checks if the scoped logs changed since the
        last evaluation. Returns True when the checks ran.
        """
        scope = self._scope(state)
        if scope == self._evaluated_scope:
            return False
        self._check_coverage(state)
        self._check_tool_mentions(state)
        self._evaluated_scope = scope
        logger.info(
            f"Logged interactions changed for declaration {self.declaration_id} "
            f"({state.total_logged} in scope); coverage and tool mentions re-checked"
        )
        return True

    @staticmethod
    def _scope(state: DeclarationState) -> Tuple[int, FrozenSet[str]]:
        return state.total_logged, frozenset(state.logged_tools)

    def active_warnings(self) -> List[IntegrityWarning]:
        return sorted(self._warnings.values(), key=lambda w: (w.raised_at, w.id))

    def has_warnings(self) -> bool:
        return bool(self._warnings)

    def checkpoint(self) -> Mapping[str, IntegrityWarning]:
        """Current warning set; reconcile() never mutates it, so it can be restored later."""
        return self._warnings

    def restore(self, checkpoint: Mapping[str, IntegrityWarning]) -> None:
        self._warnings = dict(checkpoint)
        logger.info(f"Integrity warnings for declaration {self.declaration_id} restored to checkpoint")

    # -------------------------------------------------------------------------
    # Event handlers
    # -------------------------------------------------------------------------

    def on_entry_deleted(self, event: EntryDeleted) -> None:
        self._check_deletion(event)
        self._check_coverage(event.state)
        self._check_tool_mentions(event.state)

    def on_entry_modified(self, event: EntryModified) -> None:
        self._check_scope(event)
        self._check_tool_mentions(event.state)

    def on_entry_added(self, event: EntryAdded) -> None:
        self._check_coverage(event.state)
        self._check_tool_mentions(event.state)

    def on_manual_entry_added(self, event: ManualEntryAdded) -> None:
        self._check_coverage(event.state)
        self._check_tool_mentions(event.state)

    def on_manual_entry_removed(self, event: ManualEntryRemoved) -> None:
        self._check_coverage(event.state)

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def _apply(self, key: str, candidate: Optional[IntegrityWarning]) -> None:
        was_active = key in self._warnings
        self._warnings = reconcile(self._warnings, key, candidate)
        if candidate is not None and not was_active:
            logger.warning(f"Integrity warning raised [{candidate.condition.value}] {key}")
        elif candidate is None and was_active:
            logger.info(f"Integrity warning cleared {key}")

    def _make(self, condition: WarningCondition, message: str, related: Optional[str] = None,
              entry_id: Optional[str] = None, tool: Optional[str] = None) -> IntegrityWarning:
        return IntegrityWarning(
            id=warning_id(self.declaration_id, condition, related),
            condition=condition,
            message=message,
            raised_at=self._clock(),
            related_entry_id=entry_id,
            related_tool=tool,
        )

    def _check_deletion(self, event: EntryDeleted) -> None:
        # Deletion warnings record history; nothing later clears them
        if not deletion_triggers_warning(event.origin):
            return
        warning = self._make(
            WarningCondition.ENTRY_DELETED, ENTRY_DELETED_MESSAGE,
            related=event.entry_id, entry_id=event.entry_id,
        )
        self._apply(warning.id, warning)

    def _check_scope(self, event: EntryModified) -> None:
        # Manual entries are never subject to the scope heuristic
        if not is_ai_origin(event.previous_origin):
            return
        key = warning_id(self.declaration_id, WarningCondition.SCOPE_REDUCED, event.entry_id)
        check = check_scope_reduction(event.previous_content, event.new_content, event.state.logged_tools)
        candidate = None
        if check.triggered:
            candidate = self._make(
                WarningCondition.SCOPE_REDUCED, SCOPE_REDUCED_MESSAGE,
                related=event.entry_id, entry_id=event.entry_id,
            )
        self._apply(key, candidate)

    def _check_coverage(self, state: DeclarationState) -> None:
        key = warning_id(self.declaration_id, WarningCondition.COVERAGE_LOW)
        candidate = None
        if is_coverage_low(state.declared_count, state.total_logged):
            ratio = coverage_ratio(state.declared_count, state.total_logged)
            candidate = self._make(WarningCondition.COVERAGE_LOW, coverage_message(ratio))
        self._apply(key, candidate)

    def _check_tool_mentions(self, state: DeclarationState) -> None:
        missing = set(missing_tools(state.logged_tools, state.declared_contents()))
        for tool in state.logged_tools:
            key = warning_id(self.declaration_id, WarningCondition.TOOL_MISSING, tool)
            candidate = None
            if tool in missing:
                candidate = self._make(
                    WarningCondition.TOOL_MISSING, tool_missing_message(tool),
                    related=tool, tool=tool,
                )
            self._apply(key, candidate)

        # Tools that dropped out of the logged set no longer apply
        stale = [
            w.id for w in self._warnings.values()
            if w.condition == WarningCondition.TOOL_MISSING and w.related_tool not in state.logged_tools
        ]
        for key in stale:
            self._apply(key, None)
