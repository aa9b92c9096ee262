"""
Origin Model

Provenance transitions for declaration entries. Transitions only move forward:
an auto-generated entry becomes auto-generated-modified on its first edit and
stays there. Manual entries stay manual. The badge itself is never removed,
only its display text changes.
"""
from dataclasses import dataclass
from typing import Optional

from ...models.db_models import EntryOrigin


AI_ORIGINS = frozenset({EntryOrigin.AUTO_GENERATED, EntryOrigin.AUTO_GENERATED_MODIFIED})

ORIGIN_LABELS = {
    EntryOrigin.AUTO_GENERATED: "Auto-generated",
    EntryOrigin.AUTO_GENERATED_MODIFIED: "Auto-generated (modified)",
    EntryOrigin.MANUAL: "Manual",
}


def is_ai_origin(origin: EntryOrigin) -> bool:
    return EntryOrigin(origin) in AI_ORIGINS


def origin_after_edit(origin: EntryOrigin) -> EntryOrigin:
    """Origin an entry carries after any edit. Total and pure."""
    if is_ai_origin(origin):
        return EntryOrigin.AUTO_GENERATED_MODIFIED
    return EntryOrigin.MANUAL


def origin_label(origin: EntryOrigin) -> str:
    return ORIGIN_LABELS[EntryOrigin(origin)]


@dataclass(frozen=True)
class EditOutcome:
    """Field values an entry takes after an edit."""
    new_origin: EntryOrigin
    content: str
    previous_content: str
    diff_delta: int


def apply_edit(
    origin: EntryOrigin,
    current_content: str,
    previous_content: Optional[str],
    new_content: str,
) -> EditOutcome:
    """
    Compute an entry's state after an edit.

    previous_content keeps the text from before the very first edit;
    diff_delta is measured against the content being replaced.
    """
    return EditOutcome(
        new_origin=origin_after_edit(origin),
        content=new_content,
        previous_content=previous_content if previous_content is not None else current_content,
        diff_delta=len(new_content) - len(current_content),
    )
