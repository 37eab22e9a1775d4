"""Entries: canonical content records and their enrichment state."""

from curator.entries.repository import CategoryRepository, EntryRepository
from curator.entries.schemas import (
    Category,
    EnrichmentStatus,
    Entry,
    EntryKind,
    merge_non_blank,
)

__all__ = [
    "Category",
    "CategoryRepository",
    "EnrichmentStatus",
    "Entry",
    "EntryKind",
    "EntryRepository",
    "merge_non_blank",
]
