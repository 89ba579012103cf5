from __future__ import annotations

import pytest
from sqlalchemy import func, select

from conftest import seed_store
from lexibatch.models import Translation
from lexibatch.services.store import TranslationStore, translation_row


@pytest.mark.asyncio
async def test_fetch_source_entries_is_ordered_by_key(store: TranslationStore) -> None:
    await seed_store(store, sources={"b_key": "B", "a_key": "A", "c_key": "C"})

    entries = await store.fetch_source_entries(offset=1)

    assert [entry.translation_key for entry in entries] == ["b_key", "c_key"]
    assert await store.count_source_entries() == 3
    limited = await store.fetch_source_entries(limit=1)
    assert [entry.translation_key for entry in limited] == ["a_key"]


@pytest.mark.asyncio
async def test_upsert_translations_overwrites_on_key_and_language(store: TranslationStore) -> None:
    await seed_store(store, sources={"hello": "Hello"}, languages={"de": "German"})

    await store.upsert_translations([translation_row("hello", "de", "Hallo", "ui")])
    await store.upsert_translations([translation_row("hello", "de", "Servus", "greeting")])

    result = await store._session.execute(
        select(Translation.translated_text, Translation.category).where(
            Translation.language_code == "de"
        )
    )
    assert result.all() == [("Servus", "greeting")]


@pytest.mark.asyncio
async def test_percentages_follow_translation_writes(store: TranslationStore) -> None:
    await seed_store(
        store,
        sources={"one": "One", "two": "Two", "three": "Three", "four": "Four"},
        languages={"fr": "French"},
    )

    await store.upsert_translations([translation_row("one", "fr", "Un", None)])

    french = await store.get_language("fr")
    assert french is not None
    assert french.percent_translated == pytest.approx(25.0)
    english = await store.get_language("en")
    assert english is not None
    assert english.percent_translated == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_list_target_languages_skips_source_and_inactive(store: TranslationStore) -> None:
    await seed_store(
        store,
        languages={"fr": "French", "de": "German", "es": "Spanish"},
        inactive=("es",),
    )

    targets = await store.list_target_languages()
    restricted = await store.list_target_languages(restrict_to=["fr", "es"])

    assert [language.code for language in targets] == ["de", "fr"]
    assert [language.code for language in restricted] == ["fr"]


@pytest.mark.asyncio
async def test_delete_language_removes_its_rows(store: TranslationStore) -> None:
    await seed_store(store, sources={"hello": "Hello"}, languages={"de": "German"})
    await store.upsert_translations([translation_row("hello", "de", "Hallo", None)])

    assert await store.delete_language("de") is True
    assert await store.delete_language("de") is False

    count = await store._session.execute(
        select(func.count(Translation.id)).where(Translation.language_code == "de")
    )
    assert count.scalar_one() == 0
    assert await store.get_language("de") is None


@pytest.mark.asyncio
async def test_prompts_are_saved_and_replaced(store: TranslationStore) -> None:
    assert await store.get_prompt("New Language Prompt") is None

    await store.save_prompt("New Language Prompt", "v1")
    await store.save_prompt("New Language Prompt", "v2")

    assert await store.get_prompt("New Language Prompt") == "v2"
