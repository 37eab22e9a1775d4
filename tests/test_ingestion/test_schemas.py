"""Tests for adapter output schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from curator.ingestion.schemas import NormalizedItem, parse_datetime, slugify


class TestParseDatetime:
    def test_iso_with_z(self):
        assert parse_datetime("2026-03-01T08:00:00Z") == datetime(2026, 3, 1, 8, tzinfo=timezone.utc)

    def test_naive_values_become_utc(self):
        assert parse_datetime("2026-03-01 08:00:00").tzinfo == timezone.utc
        assert parse_datetime(datetime(2026, 3, 1)).tzinfo == timezone.utc

    def test_unix_timestamp(self):
        assert parse_datetime(0) == datetime(1970, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "yesterday", "3 hours ago"])
    def test_unparseable(self, value):
        assert parse_datetime(value) is None


class TestNormalizedItem:
    def test_blank_strings_become_none(self):
        item = NormalizedItem(url="https://example.com/a", title="  ", description=" text ")

        assert item.title is None
        assert item.description == "text"

    def test_tags_deduplicated_in_order(self):
        item = NormalizedItem(url="https://example.com/a", tags=["b", "a", "b", ""])

        assert item.tags == ["b", "a"]

    def test_url_required(self):
        with pytest.raises(ValidationError):
            NormalizedItem(url="")


def test_slugify():
    assert slugify("Ars  Technica") == "ars-technica"
