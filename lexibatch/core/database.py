import ssl
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.util import immutabledict

from lexibatch.core.config import get_settings
from lexibatch.core.migrations import migrate_database


class StoreUnavailableError(RuntimeError):
    """Raised when the translation store has not been configured."""


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

# Hosted Postgres providers hand out sync-style URLs; the store always talks asyncpg.
_SYNC_POSTGRES_DRIVERS = {"postgres", "postgresql", "postgresql+psycopg2"}


def prepare_engine_arguments(database_url: str) -> tuple[str, dict[str, Any]]:
    """Point Postgres URLs at asyncpg and move ``sslmode`` into connect_args."""
    url = make_url(database_url)
    if url.drivername in _SYNC_POSTGRES_DRIVERS:
        url = url.set(drivername="postgresql+asyncpg")
    if "asyncpg" not in url.drivername:
        return url.render_as_string(hide_password=False), {}

    query = dict(url.query)
    sslmode = query.pop("sslmode", None)
    connect_args: dict[str, Any] = {}
    if sslmode:
        ssl_value = _sslmode_to_asyncpg_ssl(sslmode)
        if ssl_value is not None:
            connect_args["ssl"] = ssl_value

    sanitized = url.set(query=immutabledict(query))
    return sanitized.render_as_string(hide_password=False), connect_args


def _sslmode_to_asyncpg_ssl(sslmode: str) -> Any:
    normalized = sslmode.lower()
    if normalized == "disable":
        return False
    if normalized in {"allow", "prefer"}:
        return None
    if normalized in {"require", "verify-full"}:
        return True
    if normalized == "verify-ca":
        context = ssl.create_default_context()
        context.check_hostname = False
        return context
    raise ValueError(f"Unsupported sslmode '{sslmode}' for asyncpg.")


def _init_engine() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    settings = get_settings()
    if not settings.database_url:
        raise StoreUnavailableError("DATABASE_URL is not configured.")

    database_url, connect_args = prepare_engine_arguments(settings.database_url)
    engine_kwargs: dict[str, Any] = {"future": True, "pool_pre_ping": True}
    if connect_args:
        engine_kwargs["connect_args"] = connect_args

    engine = create_async_engine(database_url, **engine_kwargs)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return engine, session_factory


def get_engine() -> AsyncEngine:
    global _engine, _session_factory
    if _engine is None or _session_factory is None:
        _engine, _session_factory = _init_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _engine, _session_factory
    if _engine is None or _session_factory is None:
        _engine, _session_factory = _init_engine()
    return _session_factory


async def init_database() -> None:
    """Upgrade the translation schema and warm up the engine."""
    get_engine()
    await migrate_database()


async def dispose_database() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
