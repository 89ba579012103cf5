from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from lexibatch.models import Language, Prompt, Translation
from lexibatch.schemas.translation import SourceEntry

logger = logging.getLogger(__name__)

_UPSERT_CHUNK = 500


class TranslationStore:
    """Upsert-only access to the languages / translations / prompts tables.

    Every write commits immediately so a job's completed batches stay durable even if a later
    batch fails or the job is suspended.
    """

    def __init__(self, session: AsyncSession, *, source_language: str = "en"):
        self._session = session
        self._source_language = source_language

    @property
    def source_language(self) -> str:
        return self._source_language

    async def get_language(self, code: str) -> Language | None:
        return await self._session.get(Language, code, populate_existing=True)

    async def list_languages(self) -> list[Language]:
        result = await self._session.execute(
            select(Language).order_by(Language.code).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_target_languages(
        self,
        *,
        restrict_to: Sequence[str] | None = None,
    ) -> list[Language]:
        """Active languages other than the source language, optionally restricted."""
        stmt = (
            select(Language)
            .where(Language.code != self._source_language, Language.is_active.is_(True))
            .order_by(Language.code)
        )
        if restrict_to:
            stmt = stmt.where(Language.code.in_(list(restrict_to)))
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def get_prompt(self, name: str) -> str | None:
        result = await self._session.execute(
            select(Prompt.prompt).where(Prompt.name == name).limit(1)
        )
        return result.scalar_one_or_none()

    async def save_prompt(self, name: str, prompt: str) -> None:
        result = await self._session.execute(select(Prompt).where(Prompt.name == name).limit(1))
        existing = result.scalar_one_or_none()
        if existing is None:
            self._session.add(Prompt(name=name, prompt=prompt))
        else:
            existing.prompt = prompt
        await self._session.commit()

    async def count_source_entries(self) -> int:
        result = await self._session.execute(
            select(func.count(Translation.id)).where(
                Translation.language_code == self._source_language
            )
        )
        return int(result.scalar_one() or 0)

    async def fetch_source_entries(
        self,
        *,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[SourceEntry]:
        """Source rows ordered by key, so offsets mean the same thing across calls."""
        stmt = (
            select(Translation.translation_key, Translation.translated_text, Translation.category)
            .where(Translation.language_code == self._source_language)
            .order_by(Translation.translation_key)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self._session.execute(stmt)
        return [
            SourceEntry(translation_key=key, source_text=text, category=category)
            for key, text, category in result.all()
        ]

    async def upsert_translations(self, rows: Sequence[dict[str, Any]]) -> int:
        """Insert or overwrite rows keyed on (translation_key, language_code)."""
        if not rows:
            return 0
        insert = self._insert_factory()
        try:
            for start in range(0, len(rows), _UPSERT_CHUNK):
                values = [
                    {"id": uuid.uuid4(), **row} for row in rows[start : start + _UPSERT_CHUNK]
                ]
                stmt = insert(Translation).values(values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[Translation.translation_key, Translation.language_code],
                    set_={
                        "translated_text": stmt.excluded.translated_text,
                        "category": stmt.excluded.category,
                        "last_updated": stmt.excluded.last_updated,
                    },
                )
                await self._session.execute(stmt)
            await self.refresh_percentages()
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return len(rows)

    async def upsert_languages(self, rows: Sequence[dict[str, Any]]) -> int:
        if not rows:
            return 0
        insert = self._insert_factory()
        stmt = insert(Language).values(list(rows))
        stmt = stmt.on_conflict_do_update(
            index_elements=[Language.code],
            set_={"name": stmt.excluded.name, "is_active": stmt.excluded.is_active},
        )
        try:
            await self._session.execute(stmt)
            await self.refresh_percentages()
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return len(rows)

    async def delete_language(self, code: str) -> bool:
        try:
            await self._session.execute(
                delete(Translation).where(Translation.language_code == code)
            )
            result = await self._session.execute(delete(Language).where(Language.code == code))
            await self.refresh_percentages()
            await self._session.commit()
        except Exception:
            await self._session.rollback()
            raise
        return bool(result.rowcount)

    async def refresh_percentages(self) -> None:
        """Recompute percent_translated for every language from current row counts."""
        source_count = await self.count_source_entries()
        if source_count == 0:
            stmt = update(Language).values(percent_translated=0.0)
        else:
            translated = (
                select(func.count(Translation.id))
                .where(Translation.language_code == Language.code)
                .scalar_subquery()
            )
            stmt = update(Language).values(
                percent_translated=translated * 100.0 / source_count
            )
        await self._session.execute(stmt.execution_options(synchronize_session=False))

    def _insert_factory(self):
        dialect = self._session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert
        if dialect == "sqlite":
            return sqlite.insert
        raise RuntimeError(f"Upserts are not supported for the '{dialect}' dialect.")


def translation_row(
    translation_key: str,
    language_code: str,
    translated_text: str,
    category: str | None,
    *,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    return {
        "translation_key": translation_key,
        "language_code": language_code,
        "translated_text": translated_text,
        "category": category,
        "last_updated": timestamp or datetime.now(timezone.utc),
    }
