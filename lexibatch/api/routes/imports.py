from fastapi import APIRouter, File, HTTPException, UploadFile

from lexibatch.schemas.translation import ParsedRowsResponse
from lexibatch.services.file_parser import FormatError, parse_upload

router = APIRouter()


@router.post(
    "/parse",
    response_model=ParsedRowsResponse,
    summary="Parse a CSV, TSV or XML upload into import rows.",
)
async def parse_import_file(file: UploadFile = File(...)) -> ParsedRowsResponse:
    content = await file.read()
    try:
        rows = parse_upload(content, file.filename)
    except FormatError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ParsedRowsResponse(count=len(rows), rows=rows)
