from __future__ import annotations

import asyncio
from pathlib import Path

from alembic import command
from alembic.config import Config

from lexibatch.core.config import get_settings

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def build_alembic_config(database_url: str | None = None) -> Config:
    """Return an Alembic config pointing at the bundled translation schema revisions."""
    alembic_ini = PROJECT_ROOT / "alembic.ini"
    if not alembic_ini.exists():
        raise RuntimeError(f"Alembic configuration not found at {alembic_ini}")

    url = database_url or get_settings().database_url
    if not url:
        raise RuntimeError("DATABASE_URL must be configured to run migrations.")

    config = Config(str(alembic_ini))
    config.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", url)
    config.attributes["configure_logger"] = False
    return config


async def migrate_database(revision: str = "head", *, database_url: str | None = None) -> None:
    """Upgrade the languages/translations/prompts schema to ``revision``.

    Alembic drives its own event loop for async engines, so the upgrade runs in a worker thread.
    """
    config = build_alembic_config(database_url)
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, command.upgrade, config, revision)
