from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SENSITIVE_TERMS: list[str] = [
    "Deck",
    "Driver",
    "Live Table",
    "Chest",
    "E-Power",
    "D-Power",
    "Checkpoint",
    "Gate",
]

DEFAULT_JUSTIFICATION_PHRASES: list[str] = [
    "consistent",
    "adhere",
    "reflect",
    "followed",
    "according to",
    "standard translation",
    "glossary",
    "referring to",
]

DEFAULT_WARNING_PHRASES: list[str] = [
    "untranslated",
    "kept in english",
    "ambiguous",
    "conflict",
    "unsure",
    "difficult",
    "literal",
    "imply",
    "implies",
    "anatomy",
]


class AppSettings(BaseSettings):
    """Application configuration loaded from environment or .env."""

    app_name: str = Field(default="Lexibatch Translation API")
    app_env: str = Field(default="dev", alias="APP_ENV")
    debug: bool = Field(default=False, alias="APP_DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"], alias="CORS_ALLOW_ORIGINS"
    )

    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")

    llm_api_key: Optional[SecretStr] = Field(default=None, alias="GROQ_API_KEY")
    llm_base_url: str = Field(
        default="https://api.groq.com/openai/v1", alias="LLM_BASE_URL"
    )
    llm_model: str = Field(
        default="meta-llama/llama-4-scout-17b-16e-instruct", alias="LLM_MODEL"
    )
    llm_timeout_seconds: float = Field(default=60.0, alias="LLM_TIMEOUT_SECONDS")

    source_language: str = Field(default="en", alias="SOURCE_LANGUAGE")
    batch_size: int = Field(default=60, ge=1, alias="TRANSLATION_BATCH_SIZE")
    max_attempts: int = Field(default=5, ge=1, alias="TRANSLATION_MAX_ATTEMPTS")
    retry_delay_seconds: float = Field(default=2.0, ge=0, alias="TRANSLATION_RETRY_DELAY")
    rate_limit_delay_seconds: float = Field(default=25.0, ge=0, alias="RATE_LIMIT_DELAY")
    rate_limit_max_retries: int = Field(default=5, ge=0, alias="RATE_LIMIT_MAX_RETRIES")
    batch_delay_seconds: float = Field(default=2.0, ge=0, alias="BATCH_DELAY")
    language_delay_seconds: float = Field(default=5.0, ge=0, alias="LANGUAGE_DELAY")
    job_time_budget_seconds: float = Field(default=120.0, gt=0, alias="JOB_TIME_BUDGET_SECONDS")
    new_language_prompt_name: str = Field(
        default="New Language Prompt", alias="NEW_LANGUAGE_PROMPT_NAME"
    )
    import_prompt_name: str = Field(default="Import words", alias="IMPORT_PROMPT_NAME")

    sensitive_terms: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SENSITIVE_TERMS), alias="SENSITIVE_TERMS"
    )
    review_justification_phrases: list[str] = Field(
        default_factory=lambda: list(DEFAULT_JUSTIFICATION_PHRASES),
        alias="REVIEW_JUSTIFICATION_PHRASES",
    )
    review_warning_phrases: list[str] = Field(
        default_factory=lambda: list(DEFAULT_WARNING_PHRASES),
        alias="REVIEW_WARNING_PHRASES",
    )

    api_base_url: str = Field(default="http://127.0.0.1:8000/api", alias="LEXIBATCH_API_URL")
    client_retry_delay_seconds: float = Field(default=30.0, ge=0, alias="CLIENT_RETRY_DELAY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
    )


@lru_cache
def get_settings() -> AppSettings:
    """Return cached application settings."""
    return AppSettings()  # type: ignore[call-arg]
