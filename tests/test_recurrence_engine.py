# tests/test_recurrence_engine.py
from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest
from dateutil.rrule import rrulestr
from pydantic import ValidationError as PydanticValidationError

from roomboard.schemas.recurrence import (
    CanonicalPattern,
    EndDateRange,
    EndOption,
    Frequency,
    NoEndRange,
    NumberedRange,
    RecurrenceSelection,
)
from roomboard.services.recurrence_engine import (
    RecurrenceEditor,
    default_end_date,
    derive_pattern,
    derive_rule_string,
    derive_summary,
    format_until,
    join_naturally,
    mask_to_weekdays,
    propose_end_time,
    weekdays_to_mask,
)

MONDAY = date(2024, 1, 1)


def test_weekly_series_with_count():
    editor = RecurrenceEditor.weekly(MONDAY)
    editor.set_end_option(EndOption.AFTER)
    editor.set_occurrences(5)

    pattern = editor.finalize()

    assert pattern.pattern_type == Frequency.WEEKLY
    assert pattern.days_of_week_mask == 2
    assert pattern.range == NumberedRange(number_of_occurrences=5)
    assert derive_rule_string(MONDAY, pattern) == "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO;COUNT=5"
    assert derive_summary(MONDAY, pattern) == "Every week on Monday, for 5 occurrences"


def test_canonical_pattern_serializes_with_camel_case_keys():
    pattern = derive_pattern(
        MONDAY,
        RecurrenceSelection(frequency="weekly", by_weekdays=["MO"], end_option="after", occurrences=5),
    )

    assert pattern.model_dump(by_alias=True, mode="json") == {
        "patternType": "weekly",
        "interval": 1,
        "dayOfMonth": 1,
        "month": 1,
        "daysOfWeekMask": 2,
        "range": {"type": "numbered", "numberOfOccurrences": 5},
    }


def test_canonical_pattern_is_immutable():
    pattern = derive_pattern(MONDAY, RecurrenceSelection())

    with pytest.raises(PydanticValidationError):
        pattern.interval = 3  # type: ignore[misc]


def test_selection_clamps_numeric_fields():
    selection = RecurrenceSelection(interval=45, occurrences=500)
    assert selection.interval == 30
    assert selection.occurrences == 100

    selection.interval = 0
    selection.occurrences = -4
    assert selection.interval == 1
    assert selection.occurrences == 1

    # non-numeric input falls back to the lower bound
    selection.interval = "abc"
    assert selection.interval == 1

    # infinities clamp to the matching bound, NaN to the lower one
    selection = RecurrenceSelection(interval=float("inf"), occurrences=float("-inf"))
    assert selection.interval == 30
    assert selection.occurrences == 1

    selection.occurrences = float("nan")
    selection.interval = 10**400
    assert selection.occurrences == 1
    assert selection.interval == 30


def test_selection_upper_cases_weekday_codes():
    assert RecurrenceSelection(by_weekdays=["mo", " we"]).by_weekdays == ["MO", "WE"]


def test_switching_to_weekly_seeds_anchor_weekday():
    editor = RecurrenceEditor(date(2024, 1, 3))  # Wednesday
    assert editor.selection.frequency == Frequency.DAILY
    assert editor.selection.by_weekdays == []

    editor.set_frequency("weekly")

    assert editor.selection.by_weekdays == ["WE"]


def test_removing_last_weekday_is_ignored():
    editor = RecurrenceEditor.weekly(MONDAY)

    editor.toggle_weekday("MO")

    assert editor.selection.by_weekdays == ["MO"]


def test_toggle_weekday_keeps_canonical_order_and_ignores_unknown_codes():
    editor = RecurrenceEditor.weekly(MONDAY)

    editor.toggle_weekday("fr")
    editor.toggle_weekday("SU")
    editor.toggle_weekday("XX")

    assert editor.selection.by_weekdays == ["SU", "MO", "FR"]

    editor.toggle_weekday("MO")
    assert editor.selection.by_weekdays == ["SU", "FR"]


def test_weekly_selection_without_weekdays_falls_back_to_anchor():
    pattern = derive_pattern(date(2024, 1, 3), RecurrenceSelection(frequency=Frequency.WEEKLY))

    assert pattern.days_of_week_mask == 1 << 3
    assert mask_to_weekdays(pattern.days_of_week_mask) == ["WE"]


def test_weekday_mask_round_trip_and_unknown_codes():
    assert weekdays_to_mask(["MO", "WE"]) == 10
    assert weekdays_to_mask(["SU", "SA"]) == 1 | 64
    assert weekdays_to_mask(["XX"]) == 0
    assert mask_to_weekdays(10) == ["MO", "WE"]


def test_choosing_end_date_proposes_three_months_once():
    editor = RecurrenceEditor(date(2024, 1, 31))

    editor.set_end_option(EndOption.DATE)
    assert editor.selection.end_date == date(2024, 4, 30)

    editor.set_end_date(date(2024, 2, 15))
    editor.set_end_option(EndOption.NEVER)
    editor.set_end_option(EndOption.DATE)

    assert editor.selection.end_date == date(2024, 2, 15)


def test_default_end_date_is_three_calendar_months_later():
    assert default_end_date(date(2024, 1, 15)) == date(2024, 4, 15)
    assert default_end_date(date(2024, 11, 30)) == date(2025, 2, 28)


def test_until_is_end_of_local_day_in_utc():
    assert format_until(date(2024, 3, 31), ZoneInfo("Asia/Kolkata")) == "20240331T182959Z"
    assert format_until(date(2024, 3, 31)) == "20240331T235959Z"


def test_daily_rule_with_end_date_expands_as_expected():
    anchor = date(2024, 3, 25)
    pattern = derive_pattern(
        anchor,
        RecurrenceSelection(interval=2, end_option=EndOption.DATE, end_date=date(2024, 3, 31)),
    )

    rule = derive_rule_string(anchor, pattern, ZoneInfo("Asia/Kolkata"))
    assert rule == "FREQ=DAILY;INTERVAL=2;UNTIL=20240331T182959Z"

    occurrences = list(rrulestr(rule, dtstart=datetime(2024, 3, 25, 9, 0, tzinfo=timezone.utc)))
    assert [o.day for o in occurrences] == [25, 27, 29, 31]


def test_count_rule_expands_to_requested_occurrences():
    editor = RecurrenceEditor.weekly(MONDAY)
    editor.toggle_weekday("WE")
    editor.set_end_option("after")
    editor.set_occurrences(4)
    rule = derive_rule_string(MONDAY, editor.finalize())

    assert rule == "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=4"
    occurrences = list(rrulestr(rule, dtstart=datetime(2024, 1, 1, 9, 0)))
    assert [o.date() for o in occurrences] == [
        date(2024, 1, 1),
        date(2024, 1, 3),
        date(2024, 1, 8),
        date(2024, 1, 10),
    ]


def test_monthly_and_yearly_rules_use_anchor_fields():
    anchor = date(2024, 1, 15)

    monthly = derive_pattern(anchor, RecurrenceSelection(frequency=Frequency.MONTHLY))
    assert derive_rule_string(anchor, monthly) == "FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY=15"
    assert derive_summary(anchor, monthly) == "Every month on day 15"
    assert monthly.range == NoEndRange()

    yearly = derive_pattern(anchor, RecurrenceSelection(frequency=Frequency.YEARLY, interval=2))
    assert derive_rule_string(anchor, yearly) == "FREQ=YEARLY;INTERVAL=2;BYMONTH=1;BYMONTHDAY=15"
    assert derive_summary(anchor, yearly) == "Every 2 years on January 15"


def test_summary_variants():
    anchor = date(2024, 3, 25)
    daily_until = CanonicalPattern(
        pattern_type=Frequency.DAILY,
        interval=2,
        day_of_month=25,
        month=3,
        range=EndDateRange(end_date=date(2024, 4, 1)),
    )
    assert derive_summary(anchor, daily_until) == "Every 2 days, until 2024-04-01"

    single = daily_until.model_copy(update={"interval": 1, "range": NumberedRange(number_of_occurrences=1)})
    assert derive_summary(anchor, single) == "Every day, for 1 occurrence"

    weekly = CanonicalPattern(
        pattern_type=Frequency.WEEKLY,
        interval=1,
        day_of_month=25,
        month=3,
        days_of_week_mask=weekdays_to_mask(["MO", "WE", "FR"]),
    )
    assert derive_summary(anchor, weekly) == "Every week on Monday, Wednesday, and Friday"


def test_join_naturally():
    assert join_naturally([]) == ""
    assert join_naturally(["A"]) == "A"
    assert join_naturally(["A", "B"]) == "A and B"
    assert join_naturally(["A", "B", "C"]) == "A, B, and C"


def test_propose_end_time():
    assert propose_end_time(time(9, 0), None) == time(9, 30)
    assert propose_end_time(time(23, 45), None) == time(0, 15)
    # an explicit end time is never overwritten
    assert propose_end_time(time(9, 0), time(11, 0)) == time(11, 0)
    assert propose_end_time(time(9, 0), None, is_all_day=True) is None
