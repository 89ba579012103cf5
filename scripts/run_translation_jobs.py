"""Operator CLI that drives the translation job endpoints until they finish."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

from lexibatch.core.config import get_settings
from lexibatch.schemas.translation import ImportJobResponse, NewLanguageJobResponse, Report
from lexibatch.services.file_parser import FormatError, parse_upload

logger = logging.getLogger("lexibatch.jobs")

Sleeper = Callable[[float], Awaitable[None]]


class JobFailedError(RuntimeError):
    """The server rejected the job or kept failing past the retry allowance."""


@dataclass(slots=True)
class LanguageRunSummary:
    language: str
    calls: int = 0
    total: int = 0
    finished: bool = False
    reports: list[Report] = field(default_factory=list)

    def merged(self) -> Report:
        merged = Report()
        for report in self.reports:
            merged.total_processed += report.total_processed
            merged.translations_written += report.translations_written
            merged.processed_units.extend(report.processed_units)
            merged.warnings.extend(report.warnings)
            merged.review_items.extend(report.review_items)
        return merged


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lexibatch-jobs",
        description="Run batch translation jobs against the Lexibatch API.",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Base URL of the API including the /api prefix (default: LEXIBATCH_API_URL).",
    )
    parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format for the final report (default: text).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    language_parser = subparsers.add_parser(
        "language",
        help="Translate every source entry into one language, resuming until finished.",
    )
    language_parser.add_argument("code", help="Target language code, e.g. 'de'.")
    language_parser.add_argument(
        "--offset",
        type=int,
        default=0,
        help="Offset to start from when resuming an interrupted run (default: 0).",
    )
    language_parser.add_argument(
        "--max-failures",
        type=int,
        default=5,
        help="Consecutive failed calls tolerated before giving up (default: 5).",
    )
    language_parser.set_defaults(command="language")

    import_parser = subparsers.add_parser(
        "import",
        help="Parse a CSV, TSV or XML file and submit it as an import job.",
    )
    import_parser.add_argument(
        "path",
        type=Path,
        help="File with columns translation_key, source_text and optional category.",
    )
    import_parser.add_argument(
        "--languages",
        default=None,
        help="Comma-separated language codes to restrict translation to.",
    )
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and print rows without calling the API.",
    )
    import_parser.set_defaults(command="import")

    return parser


def _is_retryable(response: httpx.Response) -> bool:
    return response.status_code >= 500


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(payload, dict):
        return str(payload.get("error") or payload.get("detail") or payload)
    return str(payload)


async def run_language_job(
    client: httpx.AsyncClient,
    code: str,
    *,
    offset: int = 0,
    max_failures: int = 5,
    retry_delay: float = 30.0,
    sleep: Sleeper = asyncio.sleep,
) -> LanguageRunSummary:
    """Call the new-language endpoint with each returned offset until the job reports finished.

    Transport errors and 5xx responses wait ``retry_delay`` and retry the same offset. Client
    errors (4xx) abort immediately.
    """
    summary = LanguageRunSummary(language=code)
    failures = 0
    current = offset

    while True:
        summary.calls += 1
        try:
            response = await client.post(
                "/jobs/new-language", json={"target_language": code, "offset": current}
            )
        except httpx.HTTPError as exc:
            response = None
            error = f"{exc.__class__.__name__}: {exc}"
        else:
            error = None if response.is_success else _error_message(response)

        if error is not None:
            if response is not None and not _is_retryable(response):
                raise JobFailedError(f"Job for '{code}' rejected ({response.status_code}): {error}")
            failures += 1
            if failures >= max_failures:
                raise JobFailedError(
                    f"Job for '{code}' failed {failures} times in a row at offset {current}: {error}"
                )
            logger.warning(
                "Call for %s at offset %d failed (%d/%d): %s; retrying in %.0fs",
                code,
                current,
                failures,
                max_failures,
                error,
                retry_delay,
            )
            await sleep(retry_delay)
            continue

        failures = 0
        result = NewLanguageJobResponse.model_validate(response.json())
        summary.reports.append(result.report)
        summary.total = result.total
        if result.finished or result.next_offset is None:
            summary.finished = True
            return summary

        if result.next_offset <= current:
            raise JobFailedError(
                f"Job for '{code}' made no progress at offset {current}; aborting."
            )
        logger.info("Resuming %s at offset %d/%d", code, result.next_offset, result.total)
        current = result.next_offset


async def run_import_job(
    client: httpx.AsyncClient,
    rows: list[dict[str, Any]],
    *,
    languages: list[str] | None = None,
) -> ImportJobResponse:
    body: dict[str, Any] = {"rows": rows}
    if languages:
        body["languages"] = languages
    response = await client.post("/jobs/import", json=body)
    if not response.is_success:
        raise JobFailedError(
            f"Import job failed ({response.status_code}): {_error_message(response)}"
        )
    return ImportJobResponse.model_validate(response.json())


def render_report(report: Report, *, title: str) -> str:
    lines = [
        title,
        "=" * len(title),
        f"Entries processed: {report.total_processed}",
        f"Translations written: {report.translations_written}",
        f"Units completed: {', '.join(report.processed_units) or 'none'}",
    ]
    if report.warnings:
        lines.append("")
        lines.append(f"Warnings ({len(report.warnings)}):")
        lines.extend(f"- [{warning.unit}] {warning.message}" for warning in report.warnings)
    if report.review_items:
        lines.append("")
        lines.append(f"Needs review ({len(report.review_items)}):")
        for item in report.review_items:
            lines.append(
                f"- {item.language_code}:{item.key} [{item.classification}] "
                f"{item.source_text!r} -> {item.translated_text!r} ({item.reason})"
            )
    return "\n".join(lines)


def _split_codes(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    codes = [code.strip() for code in raw.split(",")]
    return [code for code in codes if code] or None


async def handle_language(
    args: argparse.Namespace,
    client: httpx.AsyncClient,
    *,
    sleep: Sleeper = asyncio.sleep,
) -> int:
    settings = get_settings()
    try:
        summary = await run_language_job(
            client,
            args.code,
            offset=args.offset,
            max_failures=args.max_failures,
            retry_delay=settings.client_retry_delay_seconds,
            sleep=sleep,
        )
    except JobFailedError as exc:
        print(f"Error: {exc}")
        return 1

    report = summary.merged()
    if args.format == "json":
        payload = {
            "language": summary.language,
            "calls": summary.calls,
            "total": summary.total,
            "finished": summary.finished,
            "report": report.model_dump(),
        }
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        print(
            render_report(
                report,
                title=f"Language {summary.language}: {summary.total} entries in {summary.calls} call(s)",
            )
        )
    return 0


async def handle_import(args: argparse.Namespace, client: httpx.AsyncClient) -> int:
    try:
        parsed = parse_upload(args.path.read_bytes(), args.path.name)
    except FormatError as exc:
        print(f"Error: {exc}")
        return 2

    rows = [row.model_dump() for row in parsed]
    if args.dry_run:
        if args.format == "json":
            print(json.dumps(rows, indent=2, ensure_ascii=False))
        else:
            for row in rows:
                print(f"{row['translation_key']}\t{row['source_text']}\t{row['category'] or ''}")
            print(f"\nParsed {len(rows)} row(s) (dry run).")
        return 0

    try:
        result = await run_import_job(client, rows, languages=_split_codes(args.languages))
    except JobFailedError as exc:
        print(f"Error: {exc}")
        return 1

    if args.format == "json":
        print(json.dumps(result.model_dump(), indent=2, ensure_ascii=False))
    else:
        print(render_report(result.report, title=f"Import of {len(rows)} row(s)"))
    return 0


async def dispatch(
    args: argparse.Namespace,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Sleeper = asyncio.sleep,
) -> int:
    settings = get_settings()
    base_url = (args.api_url or settings.api_base_url).rstrip("/")
    # Each call may run for the full server-side job budget.
    timeout = httpx.Timeout(settings.job_time_budget_seconds + 60.0)
    async with httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport) as client:
        if args.command == "language":
            return await handle_language(args, client, sleep=sleep)
        if args.command == "import":
            return await handle_import(args, client)
    raise ValueError(f"Unsupported command {args.command}")


def cli() -> int:
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    try:
        return asyncio.run(dispatch(args))
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        return 130


if __name__ == "__main__":
    raise SystemExit(cli())
