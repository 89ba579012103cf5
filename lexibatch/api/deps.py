from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lexibatch.core.config import get_settings
from lexibatch.core.database import get_session_factory
from lexibatch.integrations.llm import TranslationEngine
from lexibatch.services.pipeline import PipelineOrchestrator
from lexibatch.services.requester import RetryPolicy, TranslationRequester
from lexibatch.services.store import TranslationStore

_engine: TranslationEngine | None = None


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an AsyncSession."""
    session = get_session_factory()()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_store(
    session: AsyncSession = Depends(get_db_session),
) -> TranslationStore:
    """Provide a TranslationStore bound to the request session."""
    settings = get_settings()
    return TranslationStore(session, source_language=settings.source_language)


async def get_translation_engine() -> TranslationEngine:
    """Provide the TranslationEngine singleton."""
    global _engine
    if _engine is None:
        _engine = TranslationEngine(get_settings())
    return _engine


async def get_orchestrator(
    store: TranslationStore = Depends(get_store),
    engine: TranslationEngine = Depends(get_translation_engine),
) -> PipelineOrchestrator:
    settings = get_settings()
    requester = TranslationRequester(engine, RetryPolicy.from_settings(settings))
    return PipelineOrchestrator(store, requester, settings)
