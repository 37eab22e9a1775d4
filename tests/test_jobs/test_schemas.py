"""Tests for job messages and queue routing."""

import json

import pytest

from curator.jobs.schemas import DEFAULT_QUEUE, Job, queue_for


@pytest.mark.parametrize(
    "name,queue",
    [
        ("run_source", "ingestion"),
        ("scrape_metadata", "enrichment"),
        ("enrich_link", "enrichment"),
        ("editorialise", "editorialisation"),
        ("capture_screenshot", "screenshots"),
        ("sweep_stale", "low"),
        ("process_due_sources", "low"),
        ("process_backlog", "low"),
        ("something_new", DEFAULT_QUEUE),
    ],
)
def test_queue_for(name, queue):
    assert queue_for(name) == queue
    assert Job(name=name).queue == queue


class TestFields:
    def test_to_fields(self):
        job = Job(name="run_source", record_id=12, params={"force": True}, attempt=2, job_id="j1")

        fields = job.to_fields()

        assert fields["job"] == "run_source"
        assert fields["record_id"] == "12"
        assert json.loads(fields["params"]) == {"force": True}
        assert fields["attempt"] == "2"
        assert fields["job_id"] == "j1"
        assert float(fields["enqueued_at"]) > 0
        assert all(isinstance(v, str) for v in fields.values())

    def test_sweep_without_record(self):
        fields = Job(name="sweep_stale").to_fields()

        assert fields["record_id"] == ""
        assert Job.from_fields("1-0", fields).record_id is None

    def test_from_fields(self):
        job = Job.from_fields(
            "1700000000000-0",
            {"job": "enrich_link", "record_id": "7", "params": '{"a": 1}', "attempt": "1", "job_id": "j2"},
        )

        assert job.name == "enrich_link"
        assert job.record_id == 7
        assert job.params == {"a": 1}
        assert job.attempt == 1
        assert job.job_id == "j2"
        assert job.message_id == "1700000000000-0"

    def test_from_minimal_fields(self):
        job = Job.from_fields("1-0", {"job": "sweep_stale"})

        assert job.params == {}
        assert job.attempt == 0
        assert job.job_id

    def test_missing_job_name_raises(self):
        with pytest.raises(KeyError):
            Job.from_fields("1-0", {"record_id": "1"})


def test_next_attempt_keeps_identity():
    job = Job(name="editorialise", record_id=3, params={"x": 1}, message_id="1-0", delivery_count=2)

    retry = job.next_attempt()

    assert retry.attempt == 1
    assert retry.job_id == job.job_id
    assert retry.params == {"x": 1}
    assert retry.message_id == ""
    assert retry.delivery_count == 0
    assert job.attempt == 0
