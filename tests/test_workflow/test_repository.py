"""Tests for WorkflowPauseRepository."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from curator.workflow.repository import WorkflowPauseRepository
from curator.workflow.schemas import WorkflowPause, WorkflowType

NOW = datetime(2026, 3, 15, tzinfo=timezone.utc)


def row(**overrides) -> dict:
    data = {
        "id": 1,
        "workflow_type": "rss_ingestion",
        "tenant_id": None,
        "paused_by": "ops",
        "reason": None,
        "paused_at": NOW,
        "resumed_at": None,
        "resumed_by": None,
    }
    data.update(overrides)
    return data


@pytest.fixture
def repo(mock_database: AsyncMock) -> WorkflowPauseRepository:
    return WorkflowPauseRepository(mock_database)


class TestCreate:
    @pytest.mark.asyncio
    async def test_insert(self, repo, mock_database):
        mock_database.fetchrow.return_value = row(tenant_id=4, reason="feed broken")

        pause = await repo.create(
            WorkflowPause(WorkflowType.RSS_INGESTION, "ops", tenant_id=4, reason="feed broken")
        )

        sql, *args = mock_database.fetchrow.call_args[0]
        assert "ON CONFLICT" in sql
        assert args == ["rss_ingestion", 4, "ops", "feed broken"]
        assert pause.workflow_type is WorkflowType.RSS_INGESTION
        assert pause.active

    @pytest.mark.asyncio
    async def test_conflict_returns_existing(self, repo, mock_database):
        mock_database.fetchrow.side_effect = [None, row(id=9, paused_by="first")]

        pause = await repo.create(WorkflowPause(WorkflowType.RSS_INGESTION, "second"))

        assert pause.id == 9
        assert pause.paused_by == "first"
        assert mock_database.fetchrow.call_args[0][1:] == ("rss_ingestion", None)

    @pytest.mark.asyncio
    async def test_gives_up_when_neither_insert_nor_find_succeeds(self, repo, mock_database):
        with pytest.raises(RuntimeError):
            await repo.create(WorkflowPause(WorkflowType.ENRICHMENT, "ops"))

        assert mock_database.fetchrow.await_count == 4


class TestQueries:
    @pytest.mark.asyncio
    async def test_list_active(self, repo, mock_database):
        mock_database.fetch.return_value = [row(), row(id=2, workflow_type="ai_processing", tenant_id=3)]

        pauses = await repo.list_active()

        assert "resumed_at IS NULL" in mock_database.fetch.call_args[0][0]
        assert [(p.workflow_type, p.tenant_id) for p in pauses] == [
            (WorkflowType.RSS_INGESTION, None),
            (WorkflowType.AI_PROCESSING, 3),
        ]

    @pytest.mark.asyncio
    async def test_resume(self, repo, mock_database):
        mock_database.fetchrow.return_value = row(resumed_at=NOW, resumed_by="ops")

        pause = await repo.resume(1, "ops")

        sql, *args = mock_database.fetchrow.call_args[0]
        assert "resumed_at IS NULL" in sql
        assert args == [1, "ops"]
        assert not pause.active

    @pytest.mark.asyncio
    async def test_resume_inactive(self, repo):
        assert await repo.resume(1, "ops") is None
        assert await repo.get_by_id(1) is None

    @pytest.mark.asyncio
    async def test_create_table(self, repo, mock_database):
        await repo.create_table()

        assert "idx_workflow_pauses_one_active" in mock_database.execute.call_args[0][0]
