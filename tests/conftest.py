from __future__ import annotations

import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any


def _ensure_local_package_on_path() -> None:
    root_dir = Path(__file__).resolve().parents[1]
    if str(root_dir) not in sys.path:
        sys.path.insert(0, str(root_dir))


_ensure_local_package_on_path()

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from lexibatch.core.config import AppSettings
from lexibatch.integrations.llm import ParsedOutput
from lexibatch.models import Base
from lexibatch.services.store import TranslationStore, translation_row

NEW_LANGUAGE_PROMPT = "You are a careful game localizer. Reply with JSON."
IMPORT_PROMPT = "Translate new UI strings. Reply with JSON."


class StubEngine:
    """Scripted stand-in for TranslationEngine.

    Each call consumes the next scripted item: an exception is raised, a ParsedOutput is returned
    as-is, and a callable is invoked with the input map. Once the script runs out, ``default`` is
    used (uppercasing every source text unless replaced).
    """

    def __init__(
        self,
        script: list[Any] | None = None,
        *,
        default: Callable[[Mapping[str, str]], ParsedOutput] | None = None,
        on_call: Callable[[], None] | None = None,
    ) -> None:
        self.script = list(script or [])
        self.default = default or uppercase_output
        self.on_call = on_call
        self.calls: list[dict[str, Any]] = []

    async def translate(
        self,
        system_prompt: str,
        instructions: str,
        input_map: Mapping[str, str],
    ) -> ParsedOutput:
        self.calls.append(
            {"system_prompt": system_prompt, "instructions": instructions, "input": dict(input_map)}
        )
        if self.on_call is not None:
            self.on_call()
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, ParsedOutput):
            return item
        return item(input_map)


class RecordingSleeper:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


def uppercase_output(input_map: Mapping[str, str]) -> ParsedOutput:
    return ParsedOutput(translations={key: text.upper() for key, text in input_map.items()})


@pytest.fixture()
def settings() -> AppSettings:
    return AppSettings(
        database_url=None,
        batch_size=2,
        max_attempts=3,
        retry_delay_seconds=2.0,
        rate_limit_delay_seconds=25.0,
        rate_limit_max_retries=5,
        batch_delay_seconds=2.0,
        language_delay_seconds=5.0,
        job_time_budget_seconds=120.0,
    )


@pytest_asyncio.fixture()
async def session_factory() -> async_sessionmaker[AsyncSession]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory

    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture()
async def store(db_session: AsyncSession) -> TranslationStore:
    return TranslationStore(db_session, source_language="en")


async def seed_store(
    store: TranslationStore,
    *,
    sources: Mapping[str, str] | None = None,
    languages: Mapping[str, str] | None = None,
    inactive: tuple[str, ...] = (),
    prompts: Mapping[str, str] | None = None,
    category: str | None = "ui",
) -> None:
    """Populate languages, source rows and prompts for a pipeline test."""
    language_rows = [{"code": "en", "name": "English", "is_active": True}]
    for code, name in (languages or {}).items():
        language_rows.append({"code": code, "name": name, "is_active": code not in inactive})
    await store.upsert_languages(language_rows)

    if sources:
        await store.upsert_translations(
            [translation_row(key, "en", text, category) for key, text in sources.items()]
        )

    default_prompts = {
        "New Language Prompt": NEW_LANGUAGE_PROMPT,
        "Import words": IMPORT_PROMPT,
    }
    for name, prompt in (default_prompts if prompts is None else prompts).items():
        await store.save_prompt(name, prompt)
