"""
Tests for per-field value coercion.
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from import_engine.domain.imports.coercion import (
    match_enum,
    normalize_type_of_work,
    parse_boolean,
    parse_check_status,
    parse_date,
    parse_datetime,
    parse_decimal,
    parse_integer,
    parse_json_items,
    parse_list,
    split_full_name,
)
from import_engine.domain.imports.entities.candidates import CANDIDATE_STAGES
from import_engine.domain.imports.errors import ParseError, RowError


class TestDates:
    def test_iso_date(self):
        assert parse_date("2024-03-15") == date(2024, 3, 15)

    def test_day_first_when_first_part_exceeds_twelve(self):
        assert parse_date("25/12/2024") == date(2024, 12, 25)

    def test_month_first_when_second_part_exceeds_twelve(self):
        assert parse_date("12/25/2024") == date(2024, 12, 25)

    def test_empty_is_none(self):
        assert parse_date(None) is None
        assert parse_date("") is None

    def test_garbage_raises_row_scoped_error(self):
        with pytest.raises(ParseError) as exc_info:
            parse_date("not a date")
        assert isinstance(exc_info.value, RowError)
        assert exc_info.value.raw_value == "not a date"

    def test_datetime_with_timezone_is_normalized_to_utc(self):
        assert parse_datetime("2024-09-04T23:09:18+02:00") == datetime(2024, 9, 4, 21, 9, 18)


class TestNumbers:
    def test_currency_symbols_and_units_are_ignored(self):
        assert parse_decimal("$ 1200") == Decimal("1200")
        assert parse_decimal("7.5h") == Decimal("7.5")

    def test_first_comma_is_decimal_separator(self):
        assert parse_decimal("1200,50") == Decimal("1200.50")

    def test_text_without_digits_is_none(self):
        assert parse_decimal("n/a") is None

    def test_malformed_number_raises(self):
        with pytest.raises(ParseError, match="salary"):
            parse_decimal("1.2.3", "salary")

    def test_integer_truncates(self):
        assert parse_integer("4.9") == 4
        assert parse_integer(None) is None


class TestBooleans:
    @pytest.mark.parametrize("value", ["true", "TRUE", "1", "yes", "Y"])
    def test_truthy(self, value):
        assert parse_boolean(value) is True

    @pytest.mark.parametrize("value", ["false", "0", "No", "n"])
    def test_falsy(self, value):
        assert parse_boolean(value) is False

    def test_unknown_value_raises(self):
        with pytest.raises(ParseError):
            parse_boolean("maybe")

    def test_empty_is_none(self):
        assert parse_boolean("") is None


class TestLists:
    def test_mixed_separators_and_duplicates(self):
        assert parse_list("Python, SQL; Go|Python") == ["Python", "SQL", "Go"]

    def test_json_array(self):
        assert parse_list('["React", "Node", "React"]') == ["React", "Node"]

    def test_bracketed_text(self):
        assert parse_list("[a, b]") == ["a", "b"]

    def test_json_items_or_lines(self):
        assert parse_json_items('[{"sku": 1}]') == [{"sku": 1}]
        assert parse_json_items("first\n\n second ") == ["first", "second"]
        assert parse_json_items(None) == []


class TestEnums:
    def test_exact_and_underscored_matches(self):
        assert match_enum("hired", CANDIDATE_STAGES) == "HIRED"
        assert match_enum("Technical Interview", CANDIDATE_STAGES) == "TECHNICAL_INTERVIEW"

    def test_unknown_value_uses_default(self):
        assert match_enum("somewhere", CANDIDATE_STAGES, default="VALIDATION") == "VALIDATION"
        assert match_enum(None, CANDIDATE_STAGES, default="VALIDATION") == "VALIDATION"

    def test_type_of_work_synonyms(self):
        assert normalize_type_of_work("Development") == "IMPLEMENTATION"
        assert normalize_type_of_work("QA pass") == "TESTING"
        assert normalize_type_of_work("research") == "RESEARCH"
        assert normalize_type_of_work(None) == "PLANNING"

    def test_check_status_labels(self):
        assert parse_check_status("Division 5-1 In") == "IN"
        assert parse_check_status("out") == "OUT"
        assert parse_check_status("Door 2 OUT") == "OUT"
        assert parse_check_status("") is None
        assert parse_check_status("unknown") is None


def test_split_full_name():
    assert split_full_name("Ada King Lovelace") == ("Ada", "King Lovelace")
    assert split_full_name("Cher") == ("Cher", "Cher")
    assert split_full_name("  ") == (None, None)
