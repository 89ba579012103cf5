"""Job orchestration for the batch translation pipeline.

Two jobs are supported:

* new language: translate every source entry into one language. Runs against a wall-clock budget
  and returns a cursor (``next_offset``) so the caller can resume where the call stopped.
* new import: upsert freshly imported source rows, then translate them into every active
  target language in a single call.

Per-unit failures become report warnings. Only failures of the initiating steps (language lookup,
prompt lookup, fetching or seeding the work set) raise ``FatalJobError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from lexibatch.core.config import AppSettings
from lexibatch.models import Language
from lexibatch.schemas.translation import ImportRow, Report, SourceEntry
from lexibatch.services.chunking import Batch, batch_count, chunk
from lexibatch.services.reconciliation import ReconciliationUpserter
from lexibatch.services.requester import RequestResult, Sleeper, TranslationRequester
from lexibatch.services.review import ReviewClassifier
from lexibatch.services.store import TranslationStore, translation_row

logger = logging.getLogger(__name__)


class FatalJobError(RuntimeError):
    """The job could not start; nothing beyond already-committed batches was persisted."""

    status_code = 500


class LanguageNotFoundError(FatalJobError):
    status_code = 404


class InvalidJobError(FatalJobError):
    status_code = 400


@dataclass(slots=True)
class NewLanguageJobResult:
    finished: bool
    next_offset: int | None
    total: int
    report: Report


@dataclass(slots=True)
class ImportJobResult:
    report: Report
    languages: list[str]


class PipelineOrchestrator:
    """Drive chunking, engine requests and reconciliation for one job invocation.

    Holds no state between calls; resumption is entirely described by the offset the caller
    passes back.
    """

    def __init__(
        self,
        store: TranslationStore,
        requester: TranslationRequester,
        settings: AppSettings,
        *,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._requester = requester
        self._settings = settings
        self._sleep = sleep
        self._clock = clock

    async def translate_new_language(
        self,
        language_code: str,
        *,
        offset: int = 0,
    ) -> NewLanguageJobResult:
        settings = self._settings
        language = await self._resolve_language(language_code)
        system_prompt = await self._load_prompt(settings.new_language_prompt_name)

        try:
            total = await self._store.count_source_entries()
            entries = (
                await self._store.fetch_source_entries(offset=offset) if offset < total else []
            )
        except Exception as exc:
            raise FatalJobError(f"Failed to fetch source entries: {exc}") from exc

        report = Report()
        if offset >= total:
            logger.info(
                "Nothing left to translate for %s (offset=%d, total=%d)", language.code, offset, total
            )
            return NewLanguageJobResult(finished=True, next_offset=None, total=total, report=report)

        budget = settings.job_time_budget_seconds
        deadline = self._clock() + budget
        descriptor = _describe_target(language)
        upserter = ReconciliationUpserter(
            self._store, ReviewClassifier.for_new_language(settings)
        )
        batches = list(chunk(entries, settings.batch_size, start_offset=offset))
        total_batches = batch_count(total, settings.batch_size)
        logger.info(
            "Translating %d of %d entries to %s (%s) from offset %d",
            len(entries),
            total,
            language.name,
            language.code,
            offset,
        )

        processed = 0
        for index, batch in enumerate(batches):
            remaining = deadline - self._clock()
            if index > 0 and remaining <= 0:
                logger.info("Execution budget spent; suspending at offset %d", offset + processed)
                break

            unit = f"batch {batch.number}"
            logger.info("Processing %s/%d (%d items)", unit, total_batches, len(batch))
            timeout = remaining if index > 0 else max(remaining, budget)
            try:
                result = await asyncio.wait_for(
                    self._requester.request(system_prompt, descriptor, batch.input_map, unit=unit),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                if index > 0:
                    logger.warning("Execution budget hit while requesting %s; suspending", unit)
                    break
                # A first batch that outlives a full budget is skipped so the cursor still advances.
                logger.warning("Giving up on %s after spending the whole execution budget", unit)
                report.warn(unit, "Execution budget exhausted before the batch completed; skipped.")
                report.total_processed += len(batch)
                processed += len(batch)
                break

            await self._absorb(report, upserter, batch, result, language.code, unit)
            processed += len(batch)

            is_last = index == len(batches) - 1
            if not is_last and deadline - self._clock() > 0:
                await self._sleep(settings.batch_delay_seconds)

        next_offset = offset + processed
        finished = next_offset >= total
        if not finished:
            logger.info("Suspended %s job at offset %d/%d", language.code, next_offset, total)
        return NewLanguageJobResult(
            finished=finished,
            next_offset=None if finished else next_offset,
            total=total,
            report=report,
        )

    async def translate_new_import(
        self,
        rows: Iterable[ImportRow | Mapping[str, Any]],
        *,
        languages: Sequence[str] | None = None,
    ) -> ImportJobResult:
        settings = self._settings
        entries = clean_import_rows(rows)
        if not entries:
            raise InvalidJobError(
                "Invalid input: at least one row with translation_key and source_text is required."
            )
        system_prompt = await self._load_prompt(settings.import_prompt_name)

        source_rows = [
            translation_row(
                entry.translation_key,
                self._store.source_language,
                entry.source_text,
                entry.category,
            )
            for entry in entries
        ]
        try:
            await self._store.upsert_translations(source_rows)
        except Exception as exc:
            raise FatalJobError(f"Failed to upsert source records: {exc}") from exc

        try:
            targets = await self._store.list_target_languages(restrict_to=languages)
        except Exception as exc:
            raise FatalJobError(f"Failed to load target languages: {exc}") from exc

        logger.info(
            "Imported %d source entries; translating into %d languages", len(entries), len(targets)
        )
        report = Report()
        upserter = ReconciliationUpserter(
            self._store,
            ReviewClassifier.for_import(settings),
            check_sensitive_terms=True,
        )
        batches = list(chunk(entries, settings.batch_size))

        for lang_index, language in enumerate(targets):
            descriptor = _describe_target(language)
            warnings_before = len(report.warnings)
            written_before = report.translations_written
            for batch_index, batch in enumerate(batches):
                unit = language.code if len(batches) == 1 else f"{language.code} batch {batch.number}"
                result = await self._requester.request(
                    system_prompt, descriptor, batch.input_map, unit=unit
                )
                await self._absorb(report, upserter, batch, result, language.code, unit, track=False)
                if batch_index < len(batches) - 1:
                    await self._sleep(settings.batch_delay_seconds)

            wrote = report.translations_written > written_before
            if wrote and len(report.warnings) == warnings_before:
                report.processed_units.append(language.code)
            if lang_index < len(targets) - 1:
                await self._sleep(settings.language_delay_seconds)

        return ImportJobResult(report=report, languages=[language.code for language in targets])

    async def _absorb(
        self,
        report: Report,
        upserter: ReconciliationUpserter,
        batch: Batch,
        result: RequestResult,
        language_code: str,
        unit: str,
        *,
        track: bool = True,
    ) -> None:
        if not result.ok:
            report.warn(unit, result.error)
        outcome = await upserter.apply(batch, result.output, language_code, unit=unit)
        if outcome.warning:
            report.warn(unit, outcome.warning)
        report.review_items.extend(outcome.review_items)
        report.translations_written += outcome.written
        report.total_processed += len(batch)
        if track and result.ok and outcome.warning is None:
            report.processed_units.append(unit)

    async def _resolve_language(self, code: str) -> Language:
        try:
            language = await self._store.get_language(code)
        except Exception as exc:
            raise FatalJobError(f"Failed to look up language '{code}': {exc}") from exc
        if language is None:
            raise LanguageNotFoundError(f"Language code '{code}' not found.")
        return language

    async def _load_prompt(self, name: str) -> str:
        try:
            prompt = await self._store.get_prompt(name)
        except Exception as exc:
            raise FatalJobError(f"Database error fetching prompt '{name}': {exc}") from exc
        if not prompt or not prompt.strip():
            raise FatalJobError(f"Prompt '{name}' is missing or empty.")
        return prompt


def clean_import_rows(rows: Iterable[ImportRow | Mapping[str, Any]]) -> list[SourceEntry]:
    """Trim keys, drop rows without key or text, and keep the last row per key."""
    cleaned: dict[str, SourceEntry] = {}
    for row in rows:
        if not isinstance(row, ImportRow):
            row = ImportRow.model_validate(row)
        key = (row.translation_key or "").strip()
        text = row.source_text or ""
        if not key or not text.strip():
            continue
        category = (row.category or "").strip() or None
        cleaned[key] = SourceEntry(translation_key=key, source_text=text, category=category)
    return list(cleaned.values())


def _describe_target(language: Language) -> str:
    return f'"{language.name}" (Code: {language.code})'
