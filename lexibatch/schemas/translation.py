from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SourceEntry(BaseModel):
    """Source-language text awaiting translation."""

    model_config = ConfigDict(frozen=True)

    translation_key: str = Field(..., description="Key, unique within the source language.")
    source_text: str = Field(..., description="Text in the source language.")
    category: str | None = Field(default=None, description="Optional grouping label.")


class ImportRow(BaseModel):
    """Row submitted for import; blank keys or texts are dropped during cleaning."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    translation_key: str | None = Field(default=None)
    source_text: str | None = Field(default=None)
    category: str | None = Field(default=None)


class ReviewItem(BaseModel):
    language_code: str
    key: str
    source_text: str
    translated_text: str
    reason: str
    classification: str


class UnitWarning(BaseModel):
    unit: str = Field(..., description="Batch or language the failure belongs to.")
    message: str


class Report(BaseModel):
    """Accumulated outcome of one job invocation."""

    total_processed: int = Field(default=0, description="Source entries handed to the engine.")
    translations_written: int = Field(default=0, description="Rows upserted into the store.")
    processed_units: list[str] = Field(
        default_factory=list,
        description="Batches (new-language job) or languages (import job) that completed.",
    )
    warnings: list[UnitWarning] = Field(default_factory=list)
    review_items: list[ReviewItem] = Field(default_factory=list)

    def warn(self, unit: str, message: str) -> None:
        self.warnings.append(UnitWarning(unit=unit, message=message))


class NewLanguageJobRequest(BaseModel):
    target_language: str = Field(..., min_length=1, description="Language code to translate into.")
    offset: int = Field(default=0, ge=0, description="Cursor returned by the previous call.")


class NewLanguageJobResponse(BaseModel):
    success: bool = True
    finished: bool
    next_offset: int | None = Field(
        default=None, description="Offset to resume from; null once the job has finished."
    )
    total: int = Field(default=0, description="Size of the source work set.")
    report: Report


class ImportJobRequest(BaseModel):
    rows: list[ImportRow] = Field(..., min_length=1)
    languages: list[str] | None = Field(
        default=None,
        description="Restrict translation to these language codes; defaults to every active language.",
    )


class ImportJobResponse(BaseModel):
    success: bool = True
    report: Report


class JobErrorResponse(BaseModel):
    success: bool = False
    error: str


class ParsedRowsResponse(BaseModel):
    count: int
    rows: list[ImportRow]
