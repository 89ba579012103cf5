from __future__ import annotations

import json

import httpx
import pytest

from lexibatch.core.config import AppSettings
from lexibatch.integrations.llm import (
    RateLimited,
    TransientFailure,
    TranslationEngine,
    flatten_note,
    parse_engine_content,
)


def _completion(content: str | None) -> dict:
    return {
        "id": "chatcmpl-test",
        "object": "chat.completion",
        "created": 1_700_000_000,
        "model": "test-model",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
    }


def _engine(handler) -> TranslationEngine:
    settings = AppSettings(
        database_url=None,
        llm_api_key="test-key",
        llm_base_url="https://llm.test/v1",
        llm_model="test-model",
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TranslationEngine(settings, http_client=http_client)


@pytest.mark.asyncio
async def test_translate_posts_prompt_and_parses_payload() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["body"] = json.loads(request.content)
        content = json.dumps(
            {
                "translations": {"greeting": "Hallo", "count": 3},
                "notes": {"greeting": {"tone": "Informal", "reason": "Game UI"}},
            }
        )
        return httpx.Response(200, json=_completion(content))

    engine = _engine(handler)
    output = await engine.translate("SYSTEM", "TASK: Translate", {"greeting": "Hello"})

    assert captured["url"] == "https://llm.test/v1/chat/completions"
    assert captured["auth"] == "Bearer test-key"
    body = captured["body"]
    assert body["model"] == "test-model"
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"][0] == {"role": "system", "content": "SYSTEM"}
    assert body["messages"][1]["content"] == 'TASK: Translate\nJSON INPUT:\n{"greeting": "Hello"}'
    assert output.translations == {"greeting": "Hallo", "count": "3"}
    assert output.notes == {"greeting": "Informal. Game UI"}
    assert not output.malformed


@pytest.mark.asyncio
async def test_rate_limit_response_raises_rate_limited() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "slow down"}})

    with pytest.raises(RateLimited):
        await _engine(handler).translate("SYSTEM", "TASK", {"a": "b"})


@pytest.mark.asyncio
async def test_server_error_raises_transient_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": {"message": "overloaded"}})

    with pytest.raises(TransientFailure):
        await _engine(handler).translate("SYSTEM", "TASK", {"a": "b"})


@pytest.mark.asyncio
async def test_network_error_raises_transient_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientFailure):
        await _engine(handler).translate("SYSTEM", "TASK", {"a": "b"})


@pytest.mark.asyncio
async def test_non_json_content_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion("Sure! Here are your translations:"))

    output = await _engine(handler).translate("SYSTEM", "TASK", {"a": "b"})

    assert output.malformed
    assert output.translations == {}


@pytest.mark.parametrize(
    "content",
    [None, "", "[]", '{"notes": {}}', '{"translations": ["a"]}', "{not json"],
)
def test_parse_engine_content_degrades_to_empty(content: str | None) -> None:
    output = parse_engine_content(content)

    assert output.malformed
    assert output.translations == {}
    assert output.notes == {}


def test_parse_engine_content_skips_non_text_values() -> None:
    output = parse_engine_content(
        json.dumps({"translations": {"a": "A", "b": None, "c": True, "d": ["x"]}, "notes": "n/a"})
    )

    assert output.translations == {"a": "A"}
    assert output.notes == {}


def test_flatten_note_handles_strings_and_objects() -> None:
    assert flatten_note("  Kept brand name. ") == "Kept brand name."
    assert flatten_note({"a": "First", "b": "", "c": None, "d": "Second"}) == "First. Second"
    assert flatten_note({}) is None
    assert flatten_note(12) is None
