"""Unit tests for kadisync.identifier."""

import re
from datetime import datetime, timedelta, timezone

from kadisync.identifier import SLUG_MAX_LENGTH, generate_identifier, isoformat_utc, slugify

MOMENT = datetime(2024, 5, 1, 9, 30, 12, 345000, tzinfo=timezone.utc)


class TestSlugify:
    def test_collapses_runs(self):
        assert slugify("My Run #42!") == "my-run-42"

    def test_strips_edges(self):
        assert slugify("  --Hello--  ") == "hello"

    def test_truncates(self):
        assert slugify("a" * 80) == "a" * SLUG_MAX_LENGTH

    def test_non_ascii_letters_are_separators(self):
        assert slugify("Größe Messung") == "gr-e-messung"


class TestGenerateIdentifier:
    def test_slug_and_timestamp(self):
        assert generate_identifier("My Run #42!", MOMENT) == "my-run-42-2024-05-01-09-30-12-345"

    def test_empty_slug_uses_fallback(self):
        assert generate_identifier("!!!", MOMENT) == "note-2024-05-01-09-30-12-345"

    def test_charset(self):
        identifier = generate_identifier("Ünïcødé & Symbols: 100%", MOMENT)
        assert re.fullmatch(r"[a-z0-9-]+", identifier)

    def test_distinct_milliseconds_give_distinct_ids(self):
        later = MOMENT + timedelta(milliseconds=1)
        assert generate_identifier("x", MOMENT) != generate_identifier("x", later)


class TestIsoformat:
    def test_millisecond_z_format(self):
        assert isoformat_utc(MOMENT) == "2024-05-01T09:30:12.345Z"

    def test_naive_is_utc(self):
        assert isoformat_utc(datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02T03:04:05.000Z"

    def test_converts_offsets(self):
        cet = timezone(timedelta(hours=1))
        assert isoformat_utc(datetime(2024, 1, 2, 3, 4, 5, tzinfo=cet)) == "2024-01-02T02:04:05.000Z"

    def test_default_is_now(self):
        assert re.fullmatch(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z", isoformat_utc())
