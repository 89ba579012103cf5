from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class LanguageUpsert(BaseModel):
    code: str = Field(..., min_length=2, max_length=5, description="Language code, e.g. 'de'.")
    name: str = Field(..., min_length=1, description="Display name passed to the engine.")
    is_active: bool = Field(default=True)


class LanguageItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    name: str
    is_active: bool
    percent_translated: float = Field(default=0.0)
