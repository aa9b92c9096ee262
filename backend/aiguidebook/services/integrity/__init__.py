"""
Integrity Engine

Pure provenance, reflection and coverage rules plus the event-driven monitor
that turns them into advisory warnings.
"""

from .origin import (
    AI_ORIGINS, EditOutcome, apply_edit, is_ai_origin, origin_after_edit, origin_label,
)
from .reflection import (
    MIN_WORDS, PromptValidation, ReflectionValidation, count_words, has_repetition,
    validate_prompt, validate_reflection,
)
from .coverage import (
    COVERAGE_THRESHOLD, SCOPE_REDUCTION_CHAR_THRESHOLD, CoverageSummary, ScopeCheck,
    check_scope_reduction, coverage_ratio, deletion_triggers_warning, is_coverage_low,
    mentions_tool, missing_tools, summarize_coverage,
)
from .events import (
    ChannelClosedError, DeclarationEvent, EntryAdded, EntryDeleted, EntryModified,
    EventChannel, ManualEntryAdded, ManualEntryRemoved,
)
from .monitor import IntegrityMonitor, reconcile
from .registry import DeclarationSession, IntegrityRegistry

__all__ = [
    'AI_ORIGINS', 'EditOutcome', 'apply_edit', 'is_ai_origin', 'origin_after_edit', 'origin_label',
    'MIN_WORDS', 'PromptValidation', 'ReflectionValidation', 'count_words', 'has_repetition',
    'validate_prompt', 'validate_reflection',
    'COVERAGE_THRESHOLD', 'SCOPE_REDUCTION_CHAR_THRESHOLD', 'CoverageSummary', 'ScopeCheck',
    'check_scope_reduction', 'coverage_ratio', 'deletion_triggers_warning', 'is_coverage_low',
    'mentions_tool', 'missing_tools', 'summarize_coverage',
    'ChannelClosedError', 'DeclarationEvent', 'EntryAdded', 'EntryDeleted', 'EntryModified',
    'EventChannel', 'ManualEntryAdded', 'ManualEntryRemoved',
    'IntegrityMonitor', 'reconcile',
    'DeclarationSession', 'IntegrityRegistry',
]
