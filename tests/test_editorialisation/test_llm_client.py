"""Tests for the OpenAI completion client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from curator.editorialisation.circuit_breaker import CircuitOpenError
from curator.editorialisation.config import EditorialisationConfig
from curator.editorialisation.llm_client import LLMClient
from curator.errors import (
    AIApiError,
    AIConfigurationError,
    AIInvalidResponseError,
    AIRateLimitError,
    AITimeoutError,
)

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def chat_response(content, prompt_tokens=120, completion_tokens=40, total_tokens=160):
    return SimpleNamespace(
        model="gpt-4o-mini-2024-07-18",
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
        ),
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=chat_response('{"summary": "s"}'))
    client.close = AsyncMock()
    return client


@pytest.fixture
def llm(editorialisation_config, openai_client) -> LLMClient:
    llm = LLMClient(editorialisation_config)
    llm._client = openai_client
    return llm


class TestComplete:
    @pytest.mark.asyncio
    async def test_returns_content_and_usage(self, llm, openai_client):
        result = await llm.complete("system", "user")

        assert result.content == '{"summary": "s"}'
        assert (result.tokens_in, result.tokens_out, result.tokens_used) == (120, 40, 160)
        assert result.model == "gpt-4o-mini-2024-07-18"
        assert result.duration_ms >= 0

        kwargs = openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_model_override(self, llm, openai_client):
        await llm.complete("system", "user", model="gpt-4o")

        assert openai_client.chat.completions.create.await_args.kwargs["model"] == "gpt-4o"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", [None, "", "   "])
    async def test_empty_content(self, llm, openai_client, content):
        openai_client.chat.completions.create.return_value = chat_response(content)

        with pytest.raises(AIInvalidResponseError):
            await llm.complete("system", "user")

    @pytest.mark.asyncio
    async def test_total_derived_when_missing(self, llm, openai_client):
        openai_client.chat.completions.create.return_value = chat_response("{}", 10, 5, 0)

        result = await llm.complete("system", "user")

        assert result.tokens_used == 15


class TestErrorMapping:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,expected",
        [
            (openai.APITimeoutError(request=REQUEST), AITimeoutError),
            (
                openai.RateLimitError(
                    "Too many requests", response=httpx.Response(429, request=REQUEST), body=None
                ),
                AIRateLimitError,
            ),
            (
                openai.AuthenticationError(
                    "Invalid key", response=httpx.Response(401, request=REQUEST), body=None
                ),
                AIConfigurationError,
            ),
            (openai.APIConnectionError(request=REQUEST), AIApiError),
        ],
    )
    async def test_provider_errors(self, llm, openai_client, error, expected):
        openai_client.chat.completions.create.side_effect = error

        with pytest.raises(expected):
            await llm.complete("system", "user")

    @pytest.mark.asyncio
    async def test_missing_key(self):
        llm = LLMClient(EditorialisationConfig(openai_api_key=None))

        assert llm.configured is False
        with pytest.raises(AIConfigurationError):
            await llm.complete("system", "user")

    @pytest.mark.asyncio
    async def test_breaker_opens_on_repeated_failures(self, openai_client):
        llm = LLMClient(EditorialisationConfig(openai_api_key="sk-test", circuit_failure_threshold=2))
        llm._client = openai_client
        openai_client.chat.completions.create.side_effect = openai.APIConnectionError(request=REQUEST)

        for _ in range(2):
            with pytest.raises(AIApiError):
                await llm.complete("system", "user")

        with pytest.raises(AIApiError, match="provider unavailable") as excinfo:
            await llm.complete("system", "user")
        assert isinstance(excinfo.value.__cause__, CircuitOpenError)
        assert openai_client.chat.completions.create.await_count == 2


@pytest.mark.asyncio
async def test_close(llm, openai_client):
    await llm.close()

    openai_client.close.assert_awaited_once()
