"""
Tests for flexible date parsing and report-date extraction from free text.
"""
from datetime import date, datetime

import pytest

from import_engine.utils.date import (
    extract_report_date,
    parse_flexible_datetime,
    resolve_ambiguous_date,
    shift_date,
)

REFERENCE = date(2024, 6, 10)


class TestParseFlexibleDatetime:
    def test_iso_with_zulu_suffix(self):
        assert parse_flexible_datetime("2024-09-04T23:09:18Z") == datetime(2024, 9, 4, 23, 9, 18)

    def test_date_objects_pass_through(self):
        assert parse_flexible_datetime(date(2024, 1, 2)) == datetime(2024, 1, 2)

    def test_blank_and_unparseable_values(self):
        assert parse_flexible_datetime("   ") is None
        assert parse_flexible_datetime(None) is None
        assert parse_flexible_datetime("definitely not a date", log_context="test") is None


class TestResolveAmbiguousDate:
    def test_iso_token_is_unambiguous(self):
        assert resolve_ambiguous_date("2024/6/1", REFERENCE) == date(2024, 6, 1)

    def test_prefers_closest_date_on_or_before_reference(self):
        # 06/05 could be June 5 or May 6; June 5 is closer to June 10.
        assert resolve_ambiguous_date("06/05", REFERENCE) == date(2024, 6, 5)

    def test_only_calendar_valid_reading_is_used(self):
        # 13/05 can only be read day-first.
        assert resolve_ambiguous_date("13/05", REFERENCE) == date(2024, 5, 13)

    def test_past_reading_beats_a_closer_future_one(self):
        assert resolve_ambiguous_date("13/06", REFERENCE) == date(2023, 6, 13)

    def test_two_digit_year(self):
        assert resolve_ambiguous_date("6/5/23", REFERENCE) == date(2023, 6, 5)

    def test_yearless_token_can_fall_in_previous_year(self):
        assert resolve_ambiguous_date("12/28", date(2024, 1, 3)) == date(2023, 12, 28)

    def test_impossible_token(self):
        assert resolve_ambiguous_date("31/31", REFERENCE) is None
        assert resolve_ambiguous_date("", REFERENCE) is None


class TestExtractReportDate:
    @pytest.mark.parametrize(
        "note, expected",
        [
            ("Worked on billing yesterday", date(2024, 6, 9)),
            ("Today: deploys", REFERENCE),
            ("EOD report for 2024-06-07", date(2024, 6, 7)),
            ("Report 06/07 - fixed bugs", date(2024, 6, 7)),
            ("for June 3 tasks", date(2024, 6, 3)),
            ("closed 2024/06/04 tickets", date(2024, 6, 4)),
            ("done 6/8", date(2024, 6, 8)),
        ],
    )
    def test_dates_found_in_notes(self, note, expected):
        assert extract_report_date(note, REFERENCE) == expected

    def test_note_without_date(self):
        assert extract_report_date("Refactored the parser", REFERENCE) is None
        assert extract_report_date("", REFERENCE) is None


def test_shift_date():
    assert shift_date(date(2024, 3, 1), -1) == date(2024, 2, 29)
