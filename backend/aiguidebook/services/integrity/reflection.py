"""
Reflection Validator

Pure checks for the two free-text reflection prompts. The same functions back
the live-feedback endpoint and the submission gate, so the two can never
disagree.

Rules:
- At least MIN_WORDS whitespace-separated words per prompt
- No word trigram may occur MIN_REPETITIONS or more times
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


MIN_WORDS = 25
NGRAM_SIZE = 3
MIN_REPETITIONS = 2


def count_words(text: Optional[str]) -> int:
    """Whitespace runs separate words; empty tokens are dropped."""
    return len((text or "").split())


def has_repetition(
    text: Optional[str],
    min_repetitions: int = MIN_REPETITIONS,
    ngram_size: int = NGRAM_SIZE,
) -> bool:
    """
    True if any run of ngram_size consecutive words occurs min_repetitions times.

    Texts shorter than ngram_size * min_repetitions words never flag.
    """
    words = (text or "").lower().split()
    if len(words) < ngram_size * min_repetitions:
        return False

    seen: Dict[Tuple[str, ...], int] = {}
    for i in range(len(words) - ngram_size + 1):
        ngram = tuple(words[i:i + ngram_size])
        seen[ngram] = seen.get(ngram, 0) + 1
        if seen[ngram] >= min_repetitions:
            return True
    return False


@dataclass(frozen=True)
class PromptValidation:
    word_count: int
    meets_minimum: bool
    has_repetition: bool
    valid: bool
    errors: Tuple[str, ...]

    def to_dict(self) -> dict:
        return {
            "word_count": self.word_count,
            "meets_minimum": self.meets_minimum,
            "has_repetition": self.has_repetition,
            "valid": self.valid,
            "errors": list(self.errors),
        }


def validate_prompt(text: Optional[str]) -> PromptValidation:
    """Validate a single prompt. Word-count message first, repetition second."""
    word_count = count_words(text)
    meets_minimum = word_count >= MIN_WORDS
    repetition = has_repetition(text)

    errors = []
    if not meets_minimum:
        errors.append(f"Please write at least {MIN_WORDS} words (currently {word_count}).")
    if repetition:
        errors.append("Your response appears to contain repeated phrases. Please write a genuine reflection.")

    return PromptValidation(
        word_count=word_count,
        meets_minimum=meets_minimum,
        has_repetition=repetition,
        valid=meets_minimum and not repetition,
        errors=tuple(errors),
    )


@dataclass(frozen=True)
class ReflectionValidation:
    prompt1: PromptValidation
    prompt2: PromptValidation

    @property
    def valid(self) -> bool:
        return self.prompt1.valid and self.prompt2.valid

    def field_errors(self) -> List[Dict[str, str]]:
        return [
            {"field": name, "message": message}
            for name, result in (("prompt1", self.prompt1), ("prompt2", self.prompt2))
            for message in result.errors
        ]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "prompt1": self.prompt1.to_dict(),
            "prompt2": self.prompt2.to_dict(),
            "errors": self.field_errors(),
        }


def validate_reflection(prompt1: Optional[str], prompt2: Optional[str]) -> ReflectionValidation:
    """Both prompts must be individually valid."""
    return ReflectionValidation(prompt1=validate_prompt(prompt1), prompt2=validate_prompt(prompt2))
