"""
Tests for the Integrity Monitor and Integrity Registry.

Test Coverage:
1. Activation check (coverage + tool mentions)
2. Reconciliation: idempotent raise, timestamp kept, targeted clear
3. Per-event handling (deleted, modified, added, manual added/removed)
4. Deletion warnings are history and never auto-clear
5. Checkpoint / restore
6. Refresh when the scoped logs change
7. Registry session lifecycle
"""
from datetime import datetime, timedelta
from itertools import count
from unittest.mock import MagicMock

import pytest

from aiguidebook.models.db_models import EntryOrigin
from aiguidebook.models.domain import (
    DeclarationState, EntryState, ManualEntryState, WarningCondition, warning_id,
)
from aiguidebook.services.integrity import (
    EntryAdded, EntryDeleted, EntryModified, EventChannel, IntegrityMonitor, IntegrityRegistry,
    ManualEntryAdded, ManualEntryRemoved, reconcile,
)


DECL = "decl-1"


def ticking_clock(start=datetime(2025, 11, 1, 12, 0)):
    """Each call returns one second later than the previous."""
    ticks = count()
    return lambda: start + timedelta(seconds=next(ticks))


def entry(entry_id, content, origin=EntryOrigin.AUTO_GENERATED):
    return EntryState(id=entry_id, field_name="usage_summary", content=content, origin=origin)


def state(entries=(), manual=(), tools=("ChatGPT",), total=None):
    return DeclarationState(
        declaration_id=DECL,
        entries=tuple(entries),
        manual_entries=tuple(manual),
        logged_tools=tuple(tools),
        total_logged=len(entries) if total is None else total,
    )


@pytest.fixture
def monitor():
    channel = EventChannel(DECL)
    monitor = IntegrityMonitor(DECL, clock=ticking_clock())
    monitor.attach(channel)
    monitor.channel = channel
    return monitor


def conditions(monitor):
    return sorted(w.condition.value for w in monitor.active_warnings())


# =============================================================================
# TEST: ACTIVATION
# =============================================================================

class TestActivation:

    def test_initial_check_raises_existing_discrepancies(self, monitor):
        """Low coverage present before any edit is caught on activation"""
        monitor.activate(state([entry("e1", "ChatGPT was used")], total=5))

        warnings = monitor.active_warnings()
        assert [w.condition for w in warnings] == [WarningCondition.COVERAGE_LOW]
        assert warnings[0].id == warning_id(DECL, WarningCondition.COVERAGE_LOW)
        assert "20%" in warnings[0].message
        assert monitor.activated is True

    def test_nothing_logged_means_no_warnings(self, monitor):
        monitor.activate(state(tools=(), total=0))
        assert monitor.active_warnings() == []

    def test_one_warning_per_missing_tool(self, monitor):
        monitor.activate(state(
            [entry("e1", "ChatGPT once"), entry("e2", "ChatGPT twice")],
            tools=("ChatGPT", "Claude", "GitHub Copilot"),
        ))

        tool_warnings = [w for w in monitor.active_warnings() if w.condition == WarningCondition.TOOL_MISSING]
        assert sorted(w.related_tool for w in tool_warnings) == ["Claude", "GitHub Copilot"]
        assert {w.id for w in tool_warnings} == {
            warning_id(DECL, WarningCondition.TOOL_MISSING, "Claude"),
            warning_id(DECL, WarningCondition.TOOL_MISSING, "GitHub Copilot"),
        }


# =============================================================================
# TEST: RECONCILIATION
# =============================================================================

class TestReconcile:

    def test_reconcile_does_not_mutate_input(self):
        warning = MagicMock()
        active = {}
        updated = reconcile(active, "k", warning)

        assert active == {}
        assert updated == {"k": warning}

    def test_existing_warning_kept_as_is(self):
        original, replacement = MagicMock(), MagicMock()
        assert reconcile({"k": original}, "k", replacement)["k"] is original

    def test_none_clears(self):
        assert reconcile({"k": MagicMock()}, "k", None) == {}

    def test_reraise_keeps_timestamp(self, monitor):
        """Still-true predicate → no duplicate, original raised_at kept"""
        low = state([entry("e1", "ChatGPT")], total=5)
        monitor.activate(low)
        first = monitor.active_warnings()[0]

        monitor.channel.publish(EntryAdded(declaration_id=DECL, state=low, entry_id="e1",
                                           origin=EntryOrigin.AUTO_GENERATED))

        warnings = monitor.active_warnings()
        assert len(warnings) == 1
        assert warnings[0].raised_at == first.raised_at

    def test_clears_when_predicate_false(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT")], total=5))
        fixed = state([entry(f"e{i}", "ChatGPT") for i in range(3)], total=5)

        monitor.channel.publish(EntryAdded(declaration_id=DECL, state=fixed, entry_id="e2",
                                           origin=EntryOrigin.MANUAL))

        assert monitor.active_warnings() == []


# =============================================================================
# TEST: EVENTS
# =============================================================================

class TestEntryDeleted:

    def test_auto_generated_deletion_warns(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT"), entry("e2", "ChatGPT")]))
        after = state([entry("e1", "ChatGPT")], total=2)

        monitor.channel.publish(EntryDeleted(declaration_id=DECL, state=after, entry_id="e2",
                                             origin=EntryOrigin.AUTO_GENERATED, content="ChatGPT"))

        deleted = [w for w in monitor.active_warnings() if w.condition == WarningCondition.ENTRY_DELETED]
        assert len(deleted) == 1
        assert deleted[0].related_entry_id == "e2"

    def test_modified_deletion_warns(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT")]))
        monitor.channel.publish(EntryDeleted(declaration_id=DECL, state=state(total=0, tools=()),
                                             entry_id="e1", origin=EntryOrigin.AUTO_GENERATED_MODIFIED,
                                             content="ChatGPT"))
        assert conditions(monitor) == ["entry_deleted"]

    def test_manual_deletion_never_warns(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT")], tools=("ChatGPT",), total=1))
        after = state([entry("e1", "ChatGPT")], total=1)

        monitor.channel.publish(EntryDeleted(declaration_id=DECL, state=after, entry_id="m1",
                                             origin=EntryOrigin.MANUAL, content="typed"))

        assert monitor.active_warnings() == []

    def test_deletion_warning_survives_replacement(self, monitor):
        """A manual replacement does not resolve the deletion record"""
        monitor.activate(state([entry("e1", "ChatGPT")]))
        monitor.channel.publish(EntryDeleted(declaration_id=DECL, state=state(total=1), entry_id="e1",
                                             origin=EntryOrigin.AUTO_GENERATED, content="ChatGPT"))

        replaced = state(manual=[ManualEntryState(id="m1", tool_name="ChatGPT", description="same usage")],
                         total=1)
        monitor.channel.publish(ManualEntryAdded(declaration_id=DECL, state=replaced,
                                                 manual_entry_id="m1", tool_name="ChatGPT"))

        assert conditions(monitor) == ["entry_deleted"]

    def test_deletion_rechecks_coverage_and_tools(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT"), entry("e2", "Claude")], tools=("ChatGPT", "Claude")))
        after = state([entry("e1", "ChatGPT")], tools=("ChatGPT", "Claude"), total=2)

        monitor.channel.publish(EntryDeleted(declaration_id=DECL, state=after, entry_id="e2",
                                             origin=EntryOrigin.AUTO_GENERATED, content="Claude"))

        assert conditions(monitor) == ["coverage_low", "entry_deleted", "tool_missing"]


class TestEntryModified:

    LONG = "ChatGPT was used for code generation with extensive detail about the approach."

    def modified(self, new_content, previous_content=LONG, previous_origin=EntryOrigin.AUTO_GENERATED,
                 tools=("ChatGPT",)):
        new_origin = (EntryOrigin.MANUAL if previous_origin == EntryOrigin.MANUAL
                      else EntryOrigin.AUTO_GENERATED_MODIFIED)
        return EntryModified(
            declaration_id=DECL,
            state=state([entry("e1", new_content, new_origin)], tools=tools, total=1),
            entry_id="e1",
            previous_content=previous_content,
            new_content=new_content,
            previous_origin=previous_origin,
            new_origin=new_origin,
            diff_delta=len(new_content) - len(previous_content),
        )

    def test_shrinking_ai_entry_raises_scope_warning(self, monitor):
        monitor.activate(state([entry("e1", self.LONG)], tools=(), total=1))
        monitor.channel.publish(self.modified("AI was used.", tools=()))

        warnings = monitor.active_warnings()
        assert [w.condition for w in warnings] == [WarningCondition.SCOPE_REDUCED]
        assert warnings[0].id == warning_id(DECL, WarningCondition.SCOPE_REDUCED, "e1")

    def test_tool_removal_raises_scope_and_tool_warning(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT helped")], total=1))
        monitor.channel.publish(self.modified("An assistant helped a lot", previous_content="ChatGPT helped"))

        assert conditions(monitor) == ["scope_reduced", "tool_missing"]

    def test_later_edit_restoring_scope_clears(self, monitor):
        monitor.activate(state([entry("e1", self.LONG)], tools=(), total=1))
        monitor.channel.publish(self.modified("AI was used.", tools=()))
        monitor.channel.publish(self.modified(
            self.LONG, previous_content="AI was used.",
            previous_origin=EntryOrigin.AUTO_GENERATED_MODIFIED, tools=(),
        ))

        assert monitor.active_warnings() == []

    def test_manual_entry_edit_never_scope_checked(self, monitor):
        monitor.activate(state([entry("e1", self.LONG, EntryOrigin.MANUAL)], tools=(), total=1))
        monitor.channel.publish(self.modified("AI was used.", previous_origin=EntryOrigin.MANUAL, tools=()))

        assert monitor.active_warnings() == []

    def test_modification_does_not_recheck_coverage(self, monitor):
        """Edits change content, not counts"""
        monitor.activate(state([entry("e1", self.LONG)], tools=(), total=1))
        event = self.modified(self.LONG + " More.", tools=())
        low_state = state(event.state.entries, tools=(), total=10)
        monitor.channel.publish(EntryModified(**{**event.__dict__, "state": low_state}))

        assert monitor.active_warnings() == []


class TestManualEntries:

    def test_manual_entry_mentioning_tool_clears_tool_warning(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT")], tools=("ChatGPT", "Claude"), total=2))
        assert "tool_missing" in conditions(monitor)

        after = state([entry("e1", "ChatGPT")],
                      manual=[ManualEntryState(id="m1", tool_name="Claude", description="on my phone")],
                      tools=("ChatGPT", "Claude"), total=2)
        monitor.channel.publish(ManualEntryAdded(declaration_id=DECL, state=after,
                                                 manual_entry_id="m1", tool_name="Claude"))

        assert monitor.active_warnings() == []

    def test_removal_rechecks_coverage_only(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT")], total=1))
        after = state([entry("e1", "an assistant")], tools=("ChatGPT",), total=3)

        monitor.channel.publish(ManualEntryRemoved(declaration_id=DECL, state=after, manual_entry_id="m1"))

        assert conditions(monitor) == ["coverage_low"]


# =============================================================================
# TEST: REFRESH ON CHANGED LOG SCOPE
# =============================================================================

class TestRefresh:

    def test_unchanged_scope_is_not_rechecked(self, monitor):
        current = state([entry("e1", "ChatGPT was used")])
        monitor.activate(current)
        assert monitor.refresh(current) is False

    def test_more_logs_raise_coverage(self, monitor):
        entries = [entry("e1", "ChatGPT was used")]
        monitor.activate(state(entries, total=1))

        assert monitor.refresh(state(entries, total=4)) is True
        assert conditions(monitor) == ["coverage_low"]

    def test_fewer_logs_clear_coverage(self, monitor):
        entries = [entry("e1", "ChatGPT was used")]
        monitor.activate(state(entries, total=4))
        assert conditions(monitor) == ["coverage_low"]

        monitor.refresh(state(entries, total=1))
        assert conditions(monitor) == []

    def test_new_tool_raises_tool_missing(self, monitor):
        entries = [entry("e1", "ChatGPT was used")]
        monitor.activate(state(entries))

        monitor.refresh(state(entries, tools=("ChatGPT", "Gemini"), total=1))

        warnings = monitor.active_warnings()
        assert [(w.condition, w.related_tool) for w in warnings] == [(WarningCondition.TOOL_MISSING, "Gemini")]
        # Same scope again: nothing to redo
        assert monitor.refresh(state(entries, tools=("Gemini", "ChatGPT"), total=1)) is False


# =============================================================================
# TEST: CHECKPOINT & DETACH
# =============================================================================

class TestCheckpoint:

    def test_restore_discards_later_changes(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT")]))
        checkpoint = monitor.checkpoint()

        monitor.channel.publish(EntryDeleted(declaration_id=DECL, state=state(total=1), entry_id="e1",
                                             origin=EntryOrigin.AUTO_GENERATED, content="ChatGPT"))
        assert monitor.has_warnings()

        monitor.restore(checkpoint)
        assert monitor.active_warnings() == []

    def test_detach_stops_delivery(self, monitor):
        monitor.activate(state([entry("e1", "ChatGPT")]))
        monitor.detach()

        monitor.channel.publish(EntryDeleted(declaration_id=DECL, state=state(total=1), entry_id="e1",
                                             origin=EntryOrigin.AUTO_GENERATED, content="ChatGPT"))

        assert monitor.active_warnings() == []


# =============================================================================
# TEST: REGISTRY
# =============================================================================

class TestIntegrityRegistry:

    def test_ensure_activates_once(self):
        registry = IntegrityRegistry()
        load_state = MagicMock(return_value=state([entry("e1", "ChatGPT")], total=5))

        first = registry.ensure(DECL, load_state)
        second = registry.ensure(DECL, load_state)

        assert first is second
        load_state.assert_called_once()
        assert DECL in registry
        assert [w.condition for w in first.active_warnings()] == [WarningCondition.COVERAGE_LOW]

    def test_session_routes_events_to_monitor(self):
        registry = IntegrityRegistry()
        session = registry.ensure(DECL, lambda: state([entry("e1", "ChatGPT")]))

        session.publish(EntryDeleted(declaration_id=DECL, state=state(total=1), entry_id="e1",
                                     origin=EntryOrigin.AUTO_GENERATED, content="ChatGPT"))

        assert WarningCondition.ENTRY_DELETED in {w.condition for w in session.active_warnings()}

    def test_close_tears_down_session(self):
        registry = IntegrityRegistry()
        session = registry.ensure(DECL, lambda: state())

        registry.close(DECL)

        assert DECL not in registry
        assert session.channel.closed is True
        assert registry.get(DECL) is None

    def test_close_all(self):
        registry = IntegrityRegistry()
        registry.ensure("a", lambda: DeclarationState(declaration_id="a"))
        registry.ensure("b", lambda: DeclarationState(declaration_id="b"))

        registry.close_all()

        assert "a" not in registry and "b" not in registry
