from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, Sequence

from lexibatch.integrations.llm import ParsedOutput
from lexibatch.schemas.translation import ReviewItem
from lexibatch.services.chunking import Batch, EntryMeta
from lexibatch.services.review import ReviewClassifier
from lexibatch.services.store import translation_row

logger = logging.getLogger(__name__)


class TranslationSink(Protocol):
    async def upsert_translations(self, rows: Sequence[dict[str, Any]]) -> int:
        """Insert or overwrite rows keyed on (translation_key, language_code)."""


@dataclass(slots=True)
class Reconciliation:
    payload: list[dict[str, Any]] = field(default_factory=list)
    review_items: list[ReviewItem] = field(default_factory=list)
    ignored_keys: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UnitOutcome:
    written: int
    review_items: list[ReviewItem]
    warning: str | None = None


class ReconciliationUpserter:
    """Match engine output back to the batch, persist it in one bulk upsert, and flag reviews."""

    def __init__(
        self,
        store: TranslationSink,
        classifier: ReviewClassifier,
        *,
        check_sensitive_terms: bool = False,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._check_sensitive_terms = check_sensitive_terms
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def reconcile(self, batch: Batch, output: ParsedOutput, language_code: str) -> Reconciliation:
        lookup = batch.lookup
        folded = _casefold_index(lookup)
        notes = _index_notes(output.notes, lookup, folded)
        timestamp = self._clock()
        payload: dict[str, dict[str, Any]] = {}
        reviews: dict[str, ReviewItem] = {}
        ignored: list[str] = []

        for raw_key, translated in output.translations.items():
            key = _resolve_key(raw_key, lookup, folded)
            if key is None:
                ignored.append(raw_key)
                continue
            meta = lookup[key]
            payload[key] = translation_row(
                key, language_code, translated, meta.category, timestamp=timestamp
            )

            note = output.notes.get(raw_key) or notes.get(key)
            review = self._review(key, meta, translated, note, language_code)
            if review is None:
                reviews.pop(key, None)
            else:
                reviews[key] = review

        if ignored:
            logger.info(
                "Ignored %d engine keys not present in batch %d (%s)",
                len(ignored),
                batch.number,
                language_code,
            )
        return Reconciliation(
            payload=list(payload.values()),
            review_items=list(reviews.values()),
            ignored_keys=ignored,
        )

    async def apply(
        self,
        batch: Batch,
        output: ParsedOutput,
        language_code: str,
        *,
        unit: str,
    ) -> UnitOutcome:
        result = self.reconcile(batch, output, language_code)
        if not result.payload:
            return UnitOutcome(written=0, review_items=result.review_items)
        try:
            written = await self._store.upsert_translations(result.payload)
        except Exception as exc:
            logger.warning("Persisting %s failed; continuing with next unit", unit, exc_info=exc)
            return UnitOutcome(
                written=0,
                review_items=result.review_items,
                warning=f"Persistence failed: {exc}",
            )
        return UnitOutcome(written=written, review_items=result.review_items)

    def _review(
        self,
        key: str,
        meta: EntryMeta,
        translated: str,
        note: str | None,
        language_code: str,
    ) -> ReviewItem | None:
        sensitive = self._check_sensitive_terms and self._classifier.contains_sensitive_term(
            meta.source_text
        )
        decision = self._classifier.classify(
            meta.source_text, translated, note, is_sensitive_term=sensitive
        )
        if decision is None:
            return None
        return ReviewItem(
            language_code=language_code,
            key=key,
            source_text=meta.source_text,
            translated_text=translated,
            reason=decision.reason,
            classification=decision.classification,
        )


def _casefold_index(lookup: dict[str, EntryMeta]) -> dict[str, str]:
    index: dict[str, str] = {}
    ambiguous: set[str] = set()
    for key in lookup:
        folded = key.casefold()
        if folded in index:
            ambiguous.add(folded)
        index[folded] = key
    for folded in ambiguous:
        index.pop(folded, None)
    return index


def _resolve_key(
    raw_key: str,
    lookup: dict[str, EntryMeta],
    folded: dict[str, str],
) -> str | None:
    key = raw_key.strip()
    if key in lookup:
        return key
    return folded.get(key.casefold())


def _index_notes(
    notes: dict[str, str],
    lookup: dict[str, EntryMeta],
    folded: dict[str, str],
) -> dict[str, str]:
    """Re-key engine notes onto batch keys with the same matching rules as translations."""
    indexed: dict[str, str] = {}
    for raw_key, note in notes.items():
        key = _resolve_key(raw_key, lookup, folded)
        if key is not None and note:
            indexed.setdefault(key, note)
    return indexed
