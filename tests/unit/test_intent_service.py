# tests/unit/test_intent_service.py
import asyncio
import pytest
from unittest.mock import AsyncMock

from flowbot.services.intent_service import IntentService, NO_MATCH

OPTIONS = [
    {"label": "billing", "keywords": ["bill", "invoice"]},
    {"label": "support", "keywords": ["help", "broken"]},
]


@pytest.fixture
def openai_service():
    return IntentService(openai_api_key="sk-test")


@pytest.mark.asyncio
async def test_keyword_matching_without_ai_keys():
    service = IntentService()
    assert service.has_ai_provider is False

    result = await service.classify("I have a question about my INVOICE", OPTIONS)

    assert result.matched
    assert result.label == "billing"
    assert result.provider == "keyword"


@pytest.mark.asyncio
async def test_keyword_matching_no_match():
    result = await IntentService().classify("weather today", OPTIONS)

    assert not result.matched
    assert result.reason == "no-match"


@pytest.mark.asyncio
async def test_openai_label_is_returned_verbatim(openai_service, mocker):
    mocker.patch.object(openai_service, "_classify_openai", AsyncMock(return_value=' "support"\n'))

    result = await openai_service.classify("it is broken", OPTIONS)

    assert result.label == "support"
    assert result.provider == "openai"


@pytest.mark.asyncio
async def test_out_of_vocabulary_answer_is_no_match(openai_service, mocker):
    mocker.patch.object(openai_service, "_classify_openai", AsyncMock(return_value="refunds"))

    result = await openai_service.classify("I want my money back", OPTIONS)

    assert not result.matched
    assert result.reason == "out-of-vocabulary"


@pytest.mark.asyncio
async def test_explicit_no_match_answer(openai_service, mocker):
    mocker.patch.object(openai_service, "_classify_openai", AsyncMock(return_value=NO_MATCH))

    result = await openai_service.classify("hello", OPTIONS)

    assert result.reason == "no-match"


@pytest.mark.asyncio
async def test_provider_error_never_raises(openai_service, mocker):
    mocker.patch.object(openai_service, "_classify_openai", AsyncMock(side_effect=RuntimeError("boom")))

    result = await openai_service.classify("my bill", OPTIONS)

    assert not result.matched
    assert result.reason == "error"


@pytest.mark.asyncio
async def test_falls_over_to_gemini(mocker):
    service = IntentService(openai_api_key="sk-test", gemini_api_key="gm-test")
    mocker.patch.object(service, "_classify_openai", AsyncMock(side_effect=RuntimeError("rate limited")))
    gemini = mocker.patch.object(service, "_classify_gemini", AsyncMock(return_value="billing"))

    result = await service.classify("my bill", OPTIONS)

    assert result.label == "billing"
    assert result.provider == "gemini"
    gemini.assert_awaited_once()


@pytest.mark.asyncio
async def test_timeout_is_a_no_match(openai_service, mocker):
    async def slow(prompt):
        await asyncio.sleep(1)
        return "billing"

    mocker.patch.object(openai_service, "_classify_openai", slow)

    result = await openai_service.classify("my bill", OPTIONS, timeout=0.05)

    assert not result.matched
    assert result.reason == "timeout"


@pytest.mark.asyncio
async def test_empty_options_short_circuit(openai_service, mocker):
    call = mocker.patch.object(openai_service, "_classify_openai", AsyncMock(return_value="billing"))

    result = await openai_service.classify("my bill", [])

    assert result.reason == "no-options"
    call.assert_not_awaited()


def test_prompt_lists_every_intent_with_keywords():
    prompt = IntentService().create_intent_prompt("my bill", OPTIONS)

    assert "my bill" in prompt
    assert "billing" in prompt and "bill, invoice" in prompt
    assert "support" in prompt and "help, broken" in prompt
    assert NO_MATCH in prompt
