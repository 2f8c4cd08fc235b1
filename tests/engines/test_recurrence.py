"""
Tests for the recurrence expander.

Covers:
- Weekly / biweekly stepping from the first matching day
- Monthly by date, skipping months without that date
- Monthly by nth weekday, skipping months without that occurrence
- Window edges and rule payload parsing
"""

from datetime import date

import pytest

from cleanops_engines.recurrence import (
    Biweekly,
    MonthlyByDate,
    MonthlyByWeekday,
    Weekday,
    Weekly,
    expand,
    nth_weekday_of_month,
    parse_rule,
)
from cleanops_kernel.exceptions import InvalidInputError


class TestWeekly:
    def test_wednesdays_of_january(self):
        assert expand(Weekly(Weekday.WEDNESDAY), date(2024, 1, 1), date(2024, 1, 31)) == [
            date(2024, 1, 3),
            date(2024, 1, 10),
            date(2024, 1, 17),
            date(2024, 1, 24),
            date(2024, 1, 31),
        ]

    def test_start_on_matching_day_is_included(self):
        dates = expand(Weekly(Weekday.MONDAY), date(2024, 1, 1), date(2024, 1, 8))
        assert dates == [date(2024, 1, 1), date(2024, 1, 8)]

    def test_biweekly(self):
        assert expand(Biweekly(Weekday.FRIDAY), date(2024, 1, 1), date(2024, 1, 31)) == [
            date(2024, 1, 5),
            date(2024, 1, 19),
        ]


class TestMonthlyByDate:
    def test_february_skipped_for_day_30(self):
        assert expand(MonthlyByDate(30), date(2024, 1, 1), date(2024, 4, 1)) == [
            date(2024, 1, 30),
            date(2024, 3, 30),
        ]

    def test_leap_day_included(self):
        assert expand(MonthlyByDate(29), date(2024, 1, 1), date(2024, 3, 31)) == [
            date(2024, 1, 29),
            date(2024, 2, 29),
            date(2024, 3, 29),
        ]

    def test_start_month_already_past(self):
        assert expand(MonthlyByDate(10), date(2024, 1, 15), date(2024, 3, 1)) == [
            date(2024, 2, 10),
        ]

    def test_year_boundary(self):
        assert expand(MonthlyByDate(31), date(2024, 11, 1), date(2025, 1, 31)) == [
            date(2024, 12, 31),
            date(2025, 1, 31),
        ]

    def test_day_out_of_range(self):
        with pytest.raises(ValueError):
            MonthlyByDate(32)


class TestMonthlyByWeekday:
    def test_first_monday(self):
        assert expand(
            MonthlyByWeekday(1, Weekday.MONDAY), date(2024, 1, 1), date(2024, 3, 31)
        ) == [date(2024, 1, 1), date(2024, 2, 5), date(2024, 3, 4)]

    def test_missing_fifth_monday_contributes_nothing(self):
        assert expand(
            MonthlyByWeekday(5, Weekday.MONDAY), date(2024, 1, 1), date(2024, 4, 30)
        ) == [date(2024, 1, 29), date(2024, 4, 29)]

    def test_second_tuesday(self):
        assert nth_weekday_of_month(2024, 1, 2, Weekday.TUESDAY) == date(2024, 1, 9)

    def test_nth_out_of_range(self):
        with pytest.raises(ValueError):
            MonthlyByWeekday(6, Weekday.MONDAY)


class TestWindow:
    @pytest.mark.parametrize(
        "rule",
        [
            Weekly(Weekday.MONDAY),
            Biweekly(Weekday.MONDAY),
            MonthlyByDate(1),
            MonthlyByWeekday(1, Weekday.MONDAY),
        ],
    )
    def test_start_after_end_is_empty(self, rule):
        assert expand(rule, date(2024, 2, 1), date(2024, 1, 1)) == []

    @pytest.mark.parametrize(
        "rule",
        [
            Weekly(Weekday.SUNDAY),
            Biweekly(Weekday.THURSDAY),
            MonthlyByDate(15),
            MonthlyByWeekday(3, Weekday.SATURDAY),
        ],
    )
    def test_dates_inside_window_and_ascending(self, rule):
        start, end = date(2024, 1, 10), date(2024, 12, 20)
        dates = expand(rule, start, end)
        assert dates
        assert all(start <= d <= end for d in dates)
        assert dates == sorted(set(dates))

    def test_expansion_is_traced(self, captured_logs):
        expand(Weekly(Weekday.MONDAY), date(2024, 1, 1), date(2024, 1, 31))
        traces = [r for r in captured_logs() if r["message"] == "ENGINE_TRACE"]
        assert traces
        assert traces[-1]["engine_name"] == "recurrence"
        assert len(traces[-1]["input_fingerprint"]) == 16


class TestParseRule:
    def test_weekly_by_name(self):
        assert parse_rule({"type": "weekly", "weekday": "wednesday"}) == Weekly(Weekday.WEDNESDAY)

    def test_biweekly_by_number(self):
        assert parse_rule({"type": "biweekly", "weekday": 4}) == Biweekly(Weekday.FRIDAY)

    def test_camel_case_type(self):
        assert parse_rule({"type": "monthlyByDate", "day": 30}) == MonthlyByDate(30)

    def test_monthly_by_weekday(self):
        assert parse_rule(
            {"type": "monthly_by_weekday", "nth": 2, "weekday": "TUESDAY"}
        ) == MonthlyByWeekday(2, Weekday.TUESDAY)

    def test_unknown_type(self):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_rule({"type": "daily"})
        assert exc_info.value.field == "rule.type"

    def test_missing_field(self):
        with pytest.raises(InvalidInputError) as exc_info:
            parse_rule({"type": "weekly"})
        assert exc_info.value.field == "rule.weekday"

    def test_out_of_range_field(self):
        with pytest.raises(InvalidInputError):
            parse_rule({"type": "monthly_by_date", "day": 0})

    def test_unknown_weekday(self):
        with pytest.raises(InvalidInputError):
            parse_rule({"type": "weekly", "weekday": "funday"})
