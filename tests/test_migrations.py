from __future__ import annotations

import pytest
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import create_async_engine

from lexibatch.core import migrations
from lexibatch.core.config import AppSettings
from lexibatch.core.migrations import build_alembic_config, migrate_database


def test_build_alembic_config_requires_a_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(migrations, "get_settings", lambda: AppSettings(database_url=None))

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        build_alembic_config()


@pytest.mark.asyncio
async def test_migrate_database_creates_translation_schema(tmp_path) -> None:
    url = f"sqlite+aiosqlite:///{tmp_path / 'lexibatch.db'}"

    await migrate_database(database_url=url)

    engine = create_async_engine(url)
    async with engine.connect() as conn:
        tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
        columns = await conn.run_sync(
            lambda sync_conn: {column["name"] for column in inspect(sync_conn).get_columns("translations")}
        )
    await engine.dispose()

    assert {"languages", "translations", "prompts", "alembic_version"} <= set(tables)
    assert {"translation_key", "language_code", "translated_text", "category", "last_updated"} <= columns
