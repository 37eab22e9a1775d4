"""AI editorial summaries for enriched entries."""

from curator.editorialisation.config import EditorialisationConfig
from curator.editorialisation.llm_client import CompletionResult, LLMClient
from curator.editorialisation.repository import EditorialisationRepository
from curator.editorialisation.schemas import (
    Editorialisation,
    EditorialisationStatus,
    EditorialResult,
)
from curator.editorialisation.service import EditorialisationService
from curator.editorialisation.usage import AIUsageTracker

__all__ = [
    "AIUsageTracker",
    "CompletionResult",
    "EditorialResult",
    "Editorialisation",
    "EditorialisationConfig",
    "EditorialisationRepository",
    "EditorialisationService",
    "EditorialisationStatus",
    "LLMClient",
]
