"""
Coverage & Scope Evaluator

Stateless heuristics comparing what a declaration says against what was logged.
Matching is case-insensitive substring matching, nothing smarter: false
positives and negatives are accepted.

COVERAGE: declared / logged, where declared counts entries and manual entries
1:1. Nothing logged means nothing to miss, so the ratio is 1.

SCOPE REDUCTION: an edit that shortens content by more than
SCOPE_REDUCTION_CHAR_THRESHOLD characters, or drops the name of a logged tool.
"""
import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from ...models.db_models import EntryOrigin
from .origin import is_ai_origin


COVERAGE_THRESHOLD = 0.6
SCOPE_REDUCTION_CHAR_THRESHOLD = 20


# =============================================================================
# COVERAGE
# =============================================================================

def coverage_ratio(declared_count: int, total_logged: int) -> float:
    if total_logged == 0:
        return 1.0
    return declared_count / total_logged


def is_coverage_low(declared_count: int, total_logged: int) -> bool:
    """The threshold itself is on the non-warning side."""
    return coverage_ratio(declared_count, total_logged) < COVERAGE_THRESHOLD


def coverage_percent(ratio: float) -> int:
    """Half-up rounding to a whole percent."""
    return int(math.floor(ratio * 100 + 0.5))


@dataclass(frozen=True)
class CoverageSummary:
    """Read-only coverage figures; uses the same formula as the warning."""
    total_logged: int
    declared_count: int
    ratio: float
    percent: int
    below_threshold: bool
    threshold: float = COVERAGE_THRESHOLD

    def to_dict(self) -> dict:
        return {
            "total_logged": self.total_logged,
            "declared_count": self.declared_count,
            "ratio": self.ratio,
            "percent": self.percent,
            "below_threshold": self.below_threshold,
            "threshold": self.threshold,
        }


def summarize_coverage(declared_count: int, total_logged: int) -> CoverageSummary:
    ratio = coverage_ratio(declared_count, total_logged)
    return CoverageSummary(
        total_logged=total_logged,
        declared_count=declared_count,
        ratio=ratio,
        percent=coverage_percent(ratio),
        below_threshold=is_coverage_low(declared_count, total_logged),
    )


# =============================================================================
# TOOL MENTIONS
# =============================================================================

def mentions_tool(tool_name: str, text: str) -> bool:
    """The full tool name must appear somewhere, ignoring case."""
    return tool_name.lower() in (text or "").lower()


def missing_tools(logged_tools: Iterable[str], contents: Sequence[str]) -> List[str]:
    """Logged tools not mentioned anywhere in the declared content."""
    haystack = " ".join(contents)
    return [tool for tool in logged_tools if not mentions_tool(tool, haystack)]


# =============================================================================
# SCOPE REDUCTION
# =============================================================================

@dataclass(frozen=True)
class ScopeCheck:
    delta: int
    removed_tools: Tuple[str, ...]

    @property
    def tool_mention_removed(self) -> bool:
        return bool(self.removed_tools)

    @property
    def triggered(self) -> bool:
        return self.delta < -SCOPE_REDUCTION_CHAR_THRESHOLD or self.tool_mention_removed


def check_scope_reduction(previous: str, new: str, logged_tools: Iterable[str]) -> ScopeCheck:
    removed = tuple(
        tool for tool in logged_tools
        if mentions_tool(tool, previous) and not mentions_tool(tool, new)
    )
    return ScopeCheck(delta=len(new) - len(previous), removed_tools=removed)


# =============================================================================
# DELETION
# =============================================================================

def deletion_triggers_warning(origin: EntryOrigin) -> bool:
    """Deleting any AI-origin entry is recorded, replacement or not."""
    return is_ai_origin(origin)
