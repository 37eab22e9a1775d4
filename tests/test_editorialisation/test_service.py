"""Tests for EditorialisationService."""

import json
from unittest.mock import AsyncMock

import pytest

from curator.editorialisation.llm_client import CompletionResult
from curator.editorialisation.prompts import PROMPT_VERSION
from curator.editorialisation.schemas import EditorialisationStatus
from curator.editorialisation.service import EditorialisationService, parse_response
from curator.editorialisation.usage import AIUsageTracker
from curator.errors import AIInvalidResponseError, AIRateLimitError

BODY = "Researchers published a detailed benchmark of open models. " * 8


def completion(content: str) -> CompletionResult:
    return CompletionResult(
        content=content, tokens_used=500, tokens_in=400, tokens_out=100, model="gpt-4o-mini", duration_ms=800
    )


@pytest.fixture
def llm():
    mock = AsyncMock()
    mock.complete.return_value = completion(
        json.dumps({"summary": "Benchmarks are out.", "why_it_matters": "Model choice.", "quality_score": 6})
    )
    return mock


@pytest.fixture
def service(entries, editorialisations, llm, editorialisation_config):
    usage = AIUsageTracker(editorialisations, editorialisation_config)
    return EditorialisationService(entries, editorialisations, llm, usage, editorialisation_config)


@pytest.fixture
def source(make_source):
    return make_source(config={"editorialise": True})


class TestParseResponse:
    def test_valid(self):
        result = parse_response('{"summary": "s", "why_it_matters": "w"}')

        assert result.summary == "s"

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"summary": "only"}'])
    def test_invalid(self, content):
        with pytest.raises(AIInvalidResponseError):
            parse_response(content)


class TestSkipReason:
    @pytest.mark.asyncio
    async def test_reasons(self, service, make_entry, make_source, source):
        disabled = make_source(config={"editorialise": "yes"})

        assert await service.skip_reason(make_entry(body_text=BODY), None) == "source_disabled"
        assert await service.skip_reason(make_entry("https://e.com/1", body_text=BODY), disabled) == "source_disabled"
        assert await service.skip_reason(make_entry("https://e.com/2", body_text="short"), source) == "insufficient_text"
        assert await service.skip_reason(make_entry("https://e.com/3", body_text=BODY), source) is None

    @pytest.mark.asyncio
    async def test_description_counts_as_text(self, service, make_entry, source):
        entry = make_entry(description=BODY)

        assert await service.skip_reason(entry, source) is None

    @pytest.mark.asyncio
    async def test_prior_completed_record(self, service, make_entry, source, editorialisations, llm):
        entry = make_entry(body_text=BODY)
        await service.editorialise(entry, source)

        assert await service.skip_reason(entry, source) == "already_editorialised"


class TestEditorialise:
    @pytest.mark.asyncio
    async def test_success(self, service, entries, editorialisations, llm, make_entry, source):
        entry = make_entry(title="Open model benchmark", body_text=BODY)

        record = await service.editorialise(entry, source)

        assert record.status == EditorialisationStatus.COMPLETED
        assert record.prompt_version == PROMPT_VERSION
        assert "Open model benchmark" in record.prompt_text
        assert record.parsed_response["summary"] == "Benchmarks are out."
        assert record.tokens_used == 500
        assert record.estimated_cost_cents is not None

        stored = entries.entries[entry.id]
        assert stored.ai_summary == "Benchmarks are out."
        assert stored.why_it_matters == "Model choice."
        assert stored.quality_score == 6.0
        assert stored.editorialised_at is not None

    @pytest.mark.asyncio
    async def test_already_editorialised_entry_skipped(self, service, llm, make_entry, source):
        entry = make_entry(body_text=BODY)
        await service.editorialise(entry, source)

        assert await service.editorialise(entry, source) is None
        assert llm.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_json_marks_failed(self, service, entries, llm, make_entry, source):
        entry = make_entry(body_text=BODY)
        llm.complete.return_value = completion('{"summary": "missing why"}')

        record = await service.editorialise(entry, source)

        assert record.status == EditorialisationStatus.FAILED
        assert "validation" in record.error_message
        assert record.raw_response == '{"summary": "missing why"}'
        assert entries.entries[entry.id].ai_summary is None

    @pytest.mark.asyncio
    async def test_empty_completion_marks_failed(self, service, llm, make_entry, source):
        entry = make_entry(body_text=BODY)
        llm.complete.side_effect = AIInvalidResponseError("Empty response from AI API")

        record = await service.editorialise(entry, source)

        assert record.status == EditorialisationStatus.FAILED
        assert record.error_message == "Empty response from AI API"

    @pytest.mark.asyncio
    async def test_provider_error_propagates(self, service, editorialisations, llm, make_entry, source):
        entry = make_entry(body_text=BODY)
        llm.complete.side_effect = AIRateLimitError("AI rate limit: slow down")

        with pytest.raises(AIRateLimitError):
            await service.editorialise(entry, source)

        (record,) = editorialisations.records.values()
        assert record.status == EditorialisationStatus.FAILED
        assert record.error_message == "AI rate limit: slow down"
