from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI, RateLimitError

from lexibatch.core.config import AppSettings


logger = logging.getLogger(__name__)


class EngineError(RuntimeError):
    """Raised when the translation engine call does not produce a usable response."""


class RateLimited(EngineError):
    """The engine signalled throttling (HTTP 429)."""


class TransientFailure(EngineError):
    """Network error, non-2xx response, or any other failure during the call."""


@dataclass(slots=True)
class ParsedOutput:
    """Decoded engine payload; ``malformed`` outputs carry empty maps."""

    translations: dict[str, str] = field(default_factory=dict)
    notes: dict[str, str] = field(default_factory=dict)
    malformed: bool = False

    @classmethod
    def empty(cls) -> ParsedOutput:
        return cls(malformed=True)


def parse_engine_content(content: str | None) -> ParsedOutput:
    """Decode the JSON blob returned by the model into translations and notes.

    Anything that is not ``{"translations": {...}, "notes": {...}}`` degrades to an empty output.
    """
    if not content:
        return ParsedOutput.empty()
    try:
        payload = json.loads(content)
    except (TypeError, ValueError):
        logger.warning("Engine returned non-JSON content (%d chars); treating as empty", len(content))
        return ParsedOutput.empty()
    if not isinstance(payload, dict):
        return ParsedOutput.empty()

    raw_translations = payload.get("translations")
    if not isinstance(raw_translations, dict):
        return ParsedOutput.empty()

    translations: dict[str, str] = {}
    for key, value in raw_translations.items():
        if isinstance(value, str):
            translations[str(key)] = value
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            translations[str(key)] = str(value)

    notes: dict[str, str] = {}
    raw_notes = payload.get("notes")
    if isinstance(raw_notes, dict):
        for key, value in raw_notes.items():
            flattened = flatten_note(value)
            if flattened:
                notes[str(key)] = flattened

    return ParsedOutput(translations=translations, notes=notes)


def flatten_note(value: Any) -> str | None:
    """Notes may be plain strings or objects of strings; objects are joined with '. '."""
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        parts = [str(part).strip() for part in value.values() if part is not None and str(part).strip()]
        return ". ".join(parts) or None
    return None


def build_instructions(target_descriptor: str, *, source_name: str = "English") -> str:
    return f"TASK: Translate JSON from {source_name} to {target_descriptor}."


class TranslationEngine:
    """Chat-completions client for an OpenAI-compatible endpoint (Groq by default)."""

    def __init__(
        self,
        settings: AppSettings,
        *,
        client: AsyncOpenAI | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._model = settings.llm_model
        if client is not None:
            self._client = client
        else:
            api_key = settings.llm_api_key.get_secret_value() if settings.llm_api_key else None
            # Retries are owned by TranslationRequester, so the SDK must not add its own.
            self._client = AsyncOpenAI(
                api_key=api_key or "missing-api-key",
                base_url=settings.llm_base_url,
                timeout=settings.llm_timeout_seconds,
                max_retries=0,
                http_client=http_client,
            )

    async def translate(
        self,
        system_prompt: str,
        instructions: str,
        input_map: Mapping[str, str],
    ) -> ParsedOutput:
        """Send one batch and return the parsed payload.

        Raises RateLimited on HTTP 429 and TransientFailure on any other transport or API error.
        """
        user_content = f"{instructions}\nJSON INPUT:\n{json.dumps(dict(input_map), ensure_ascii=False)}"
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                response_format={"type": "json_object"},
            )
        except RateLimitError as exc:
            raise RateLimited(str(exc)) from exc
        except (APITimeoutError, APIConnectionError) as exc:
            raise TransientFailure(f"Engine unreachable: {exc}") from exc
        except APIStatusError as exc:
            raise TransientFailure(f"Engine returned status {exc.status_code}: {exc.message}") from exc
        except Exception as exc:
            raise TransientFailure(str(exc) or exc.__class__.__name__) from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            return ParsedOutput.empty()
        content = getattr(choices[0].message, "content", None)
        return parse_engine_content(content)
