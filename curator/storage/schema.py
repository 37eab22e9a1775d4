"""Idempotent creation of every table the pipeline owns."""

import logging

from curator.storage.database import Database

logger = logging.getLogger(__name__)


async def create_all_tables(database: Database) -> None:
    """Create all tables and indexes, in foreign-key order."""
    # Imported here so repositories can depend on curator.storage freely.
    from curator.editorialisation.repository import EditorialisationRepository
    from curator.entries.repository import CategoryRepository, EntryRepository
    from curator.sources.repository import ImportRunRepository, SourcesRepository
    from curator.workflow.repository import WorkflowPauseRepository

    await SourcesRepository(database).create_table()
    await ImportRunRepository(database).create_table()
    await CategoryRepository(database).create_table()
    await EntryRepository(database).create_table()
    await EditorialisationRepository(database).create_table()
    await WorkflowPauseRepository(database).create_table()
    logger.info("All curator tables ensured")
