import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from lexibatch.api.deps import get_orchestrator
from lexibatch.schemas.translation import (
    ImportJobRequest,
    ImportJobResponse,
    JobErrorResponse,
    NewLanguageJobRequest,
    NewLanguageJobResponse,
)
from lexibatch.services.pipeline import FatalJobError, PipelineOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()

_ERROR_RESPONSES = {
    400: {"model": JobErrorResponse},
    404: {"model": JobErrorResponse},
    500: {"model": JobErrorResponse},
}


def _fatal_response(exc: FatalJobError) -> JSONResponse:
    logger.error("Job aborted: %s", exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=JobErrorResponse(error=str(exc)).model_dump(),
    )


@router.post(
    "/new-language",
    response_model=NewLanguageJobResponse,
    responses=_ERROR_RESPONSES,
    summary="Translate the source catalogue into one language, resumable by offset.",
)
async def run_new_language_job(
    payload: NewLanguageJobRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> NewLanguageJobResponse | JSONResponse:
    try:
        result = await orchestrator.translate_new_language(
            payload.target_language.strip(), offset=payload.offset
        )
    except FatalJobError as exc:
        return _fatal_response(exc)
    return NewLanguageJobResponse(
        finished=result.finished,
        next_offset=result.next_offset,
        total=result.total,
        report=result.report,
    )


@router.post(
    "/import",
    response_model=ImportJobResponse,
    responses=_ERROR_RESPONSES,
    summary="Store imported source rows and translate them into every active language.",
)
async def run_import_job(
    payload: ImportJobRequest,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
) -> ImportJobResponse | JSONResponse:
    try:
        result = await orchestrator.translate_new_import(
            payload.rows, languages=payload.languages
        )
    except FatalJobError as exc:
        return _fatal_response(exc)
    return ImportJobResponse(report=result.report)
