"""AI editorialisation of a single entry.

One call produces at most one Editorialisation record. Malformed model
output fails the record and is returned to the caller; transport failures
fail the record and propagate so the job policy can retry.
"""

import json
import logging
from datetime import datetime, timezone

from pydantic import ValidationError

from curator.editorialisation.config import EditorialisationConfig
from curator.editorialisation.llm_client import LLMClient
from curator.editorialisation.prompts import PROMPT_VERSION, SYSTEM_PROMPT, build_prompt
from curator.editorialisation.repository import EditorialisationRepository
from curator.editorialisation.schemas import Editorialisation, EditorialResult
from curator.editorialisation.usage import AIUsageTracker
from curator.entries.repository import EntryRepository
from curator.entries.schemas import Entry
from curator.errors import AIError, AIInvalidResponseError
from curator.sources.schemas import Source

logger = logging.getLogger(__name__)


def parse_response(content: str) -> EditorialResult:
    """Parse a JSON completion into an EditorialResult.

    Raises:
        AIInvalidResponseError: content is not a JSON object or lacks the
            required fields
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise AIInvalidResponseError(f"Response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise AIInvalidResponseError("Response is not a JSON object")
    try:
        return EditorialResult.model_validate(data)
    except ValidationError as e:
        raise AIInvalidResponseError(f"Response failed validation: {e.error_count()} errors") from e


class EditorialisationService:
    def __init__(
        self,
        entries: EntryRepository,
        repository: EditorialisationRepository,
        llm: LLMClient,
        usage: AIUsageTracker,
        config: EditorialisationConfig | None = None,
    ) -> None:
        self._entries = entries
        self._repo = repository
        self._llm = llm
        self._usage = usage
        self._config = config or EditorialisationConfig()

    async def skip_reason(self, entry: Entry, source: Source | None) -> str | None:
        if entry.editorialised:
            return "already_editorialised"
        if source is None or not source.editorialisation_enabled:
            return "source_disabled"
        if len(entry.text_for_editorialisation) < self._config.min_text_length:
            return "insufficient_text"
        if await self._repo.has_completed(entry.id):
            return "already_editorialised"
        return None

    async def editorialise(self, entry: Entry, source: Source | None) -> Editorialisation | None:
        """Editorialise ``entry``; None when it is skipped.

        Raises:
            AIError: the model call failed in a retryable or fatal way
                (the record is marked failed first)
        """
        reason = await self.skip_reason(entry, source)
        if reason is not None:
            logger.info("Skipping editorialisation of entry %s: %s", entry.id, reason)
            return None

        prompt = build_prompt(
            title=entry.title,
            url=entry.url_canonical,
            description=entry.description,
            text=entry.text_for_editorialisation,
            max_text_length=self._config.max_prompt_text_length,
        )
        record = await self._repo.create_pending(
            Editorialisation(
                entry_id=entry.id,
                tenant_id=entry.tenant_id,
                site_id=entry.site_id,
                prompt_version=PROMPT_VERSION,
                prompt_text=prompt,
            )
        )

        try:
            completion = await self._llm.complete(SYSTEM_PROMPT, prompt)
        except AIInvalidResponseError as e:
            failed = await self._repo.mark_failed(record.id, str(e))
            logger.warning("Editorialisation %s returned no content: %s", record.id, e)
            return failed or record
        except AIError as e:
            await self._repo.mark_failed(record.id, str(e))
            raise

        try:
            result = parse_response(completion.content)
        except AIInvalidResponseError as e:
            failed = await self._repo.mark_failed(record.id, str(e), completion.content)
            logger.warning("Editorialisation %s response rejected: %s", record.id, e)
            return failed or record

        completed = await self._repo.mark_completed(
            record.id,
            raw_response=completion.content,
            parsed_response=result.model_dump(),
            tokens_in=completion.tokens_in,
            tokens_out=completion.tokens_out,
            tokens_used=completion.tokens_used,
            model_name=completion.model,
            duration_ms=completion.duration_ms,
        )

        await self._entries.update_fields(
            entry.id,
            {
                "ai_summary": result.summary,
                "why_it_matters": result.why_it_matters,
                "ai_suggested_tags": result.suggested_tags,
                "key_takeaways": result.key_takeaways,
                "audience_tags": result.audience_tags,
                "quality_score": result.quality_score,
                "editorialised_at": datetime.now(timezone.utc),
            },
        )
        await self._usage.track(
            record.id,
            completion.tokens_in,
            completion.tokens_out,
            completion.model,
            tokens_used=completion.tokens_used,
        )
        logger.info(
            "Editorialised entry %s (%d tokens, %d ms)",
            entry.id, completion.tokens_used, completion.duration_ms,
        )
        return completed or record
