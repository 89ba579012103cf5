"""Lexical review heuristics over engine output.

Decides whether a translated string needs a human to look at it. The decision is driven by two
phrase tables (justification vs. warning wording in the model's note) and a sensitive-term list,
all supplied as configuration.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from lexibatch.core.config import (
    DEFAULT_JUSTIFICATION_PHRASES,
    DEFAULT_SENSITIVE_TERMS,
    DEFAULT_WARNING_PHRASES,
    AppSettings,
)

UNTRANSLATED = "Untranslated"
UNTRANSLATED_CRITICAL = "Untranslated Critical Term"
AI_ADAPTATION = "AI Adaptation"
AI_WARNING = "AI Warning"

IDENTICAL_REASON = "Identical to source (no note provided)."
CRITICAL_REASON = "Term kept in source language or identical to source."


@dataclass(frozen=True, slots=True)
class ReviewDecision:
    classification: str
    reason: str


@dataclass(frozen=True, slots=True)
class PhraseTable:
    """Phrase lists used to tell a self-congratulating note from a real warning."""

    justification: tuple[str, ...] = field(default=tuple(DEFAULT_JUSTIFICATION_PHRASES))
    warning: tuple[str, ...] = field(default=tuple(DEFAULT_WARNING_PHRASES))

    @classmethod
    def from_settings(cls, settings: AppSettings) -> PhraseTable:
        return cls(
            justification=_lowered(settings.review_justification_phrases),
            warning=_lowered(settings.review_warning_phrases),
        )

    def is_false_alarm(self, note: str | None) -> bool:
        """A note is a false alarm when it only justifies the translation."""
        if not note:
            return True
        lowered = note.lower()
        justified = any(phrase in lowered for phrase in self.justification)
        warned = any(phrase in lowered for phrase in self.warning)
        return justified and not warned


class ReviewClassifier:
    """Pure, deterministic classifier for (source, translation, note) triples.

    ``flag_identical`` controls whether an unchanged, non-numeric source string is reported on its
    own; ``note_label`` is the classification given to genuine model notes.
    """

    def __init__(
        self,
        *,
        phrases: PhraseTable | None = None,
        sensitive_terms: Iterable[str] | None = None,
        note_label: str = AI_ADAPTATION,
        flag_identical: bool = True,
    ) -> None:
        self._phrases = phrases or PhraseTable()
        terms = DEFAULT_SENSITIVE_TERMS if sensitive_terms is None else sensitive_terms
        self._sensitive_terms = _lowered(terms)
        self._note_label = note_label
        self._flag_identical = flag_identical

    @classmethod
    def for_new_language(cls, settings: AppSettings) -> ReviewClassifier:
        return cls(
            phrases=PhraseTable.from_settings(settings),
            sensitive_terms=settings.sensitive_terms,
            note_label=AI_ADAPTATION,
            flag_identical=True,
        )

    @classmethod
    def for_import(cls, settings: AppSettings) -> ReviewClassifier:
        return cls(
            phrases=PhraseTable.from_settings(settings),
            sensitive_terms=settings.sensitive_terms,
            note_label=AI_WARNING,
            flag_identical=False,
        )

    def contains_sensitive_term(self, source: str) -> bool:
        lowered = source.lower()
        return any(term in lowered for term in self._sensitive_terms)

    def classify(
        self,
        source: str,
        translated: str,
        note: str | None = None,
        *,
        is_sensitive_term: bool = False,
    ) -> ReviewDecision | None:
        identical = is_identical_to_source(source, translated)
        note = note.strip() if note else None

        if is_sensitive_term and identical:
            return ReviewDecision(UNTRANSLATED_CRITICAL, note or CRITICAL_REASON)
        if identical and self._flag_identical:
            return ReviewDecision(UNTRANSLATED, note or IDENTICAL_REASON)
        if note and not self._phrases.is_false_alarm(note):
            return ReviewDecision(self._note_label, note)
        return None


def is_identical_to_source(source: str, translated: str) -> bool:
    """Unchanged text counts only when the source is longer than one char and not a number."""
    return translated == source and len(source) > 1 and not _is_numeric(source)


def _is_numeric(text: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return True
    try:
        value = float(stripped)
    except ValueError:
        return False
    return not math.isnan(value)


def _lowered(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(value.lower() for value in values if value and value.strip())
