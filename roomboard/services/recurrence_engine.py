# roomboard/services/recurrence_engine.py
"""
Recurrence pattern engine.

Turns a user's `RecurrenceSelection` (anchored at the first occurrence's
date) into:

- a `CanonicalPattern` consumed by the bookings backend,
- an iCalendar RRULE string,
- a one-line human readable summary.

All derivations are pure functions of their arguments. `RecurrenceEditor`
holds an in-progress selection and keeps its invariants across edits.
"""
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterable

from roomboard.schemas.recurrence import (
    CanonicalPattern,
    EndDateRange,
    EndOption,
    Frequency,
    NoEndRange,
    NumberedRange,
    RecurrenceSelection,
)
from roomboard.services.calendar_utils import (
    WEEKDAY_CODES,
    WEEKDAY_NAMES,
    add_months,
    format_ymd,
    weekday_code,
)

logger = logging.getLogger(__name__)

DEFAULT_END_DATE_MONTHS = 3
DEFAULT_MEETING_LENGTH = timedelta(minutes=30)

_UNITS = {
    Frequency.DAILY: "day",
    Frequency.WEEKLY: "week",
    Frequency.MONTHLY: "month",
    Frequency.YEARLY: "year",
}


def weekdays_to_mask(codes: Iterable[str]) -> int:
    """
    Fold weekday codes into a bitmask (bit i == WEEKDAY_CODES[i]).

    Unknown codes are ignored.
    """
    mask = 0
    for code in codes:
        try:
            mask |= 1 << WEEKDAY_CODES.index(str(code).upper())
        except ValueError:
            continue
    return mask


def mask_to_weekdays(mask: int) -> list[str]:
    return [code for i, code in enumerate(WEEKDAY_CODES) if mask & (1 << i)]


def default_end_date(anchor: date) -> date:
    return add_months(anchor, DEFAULT_END_DATE_MONTHS)


def derive_pattern(anchor: date, selection: RecurrenceSelection) -> CanonicalPattern:
    """
    Freeze a selection into the backend's canonical pattern.

    `day_of_month` and `month` always come from the anchor date. A weekly
    selection without any (known) weekday falls back to the anchor's weekday,
    and a date-terminated selection without an end date uses the default
    three-month proposal.
    """
    mask = 0
    if selection.frequency == Frequency.WEEKLY:
        mask = weekdays_to_mask(selection.by_weekdays) or weekdays_to_mask([weekday_code(anchor)])

    if selection.end_option == EndOption.DATE:
        range_ = EndDateRange(end_date=selection.end_date or default_end_date(anchor))
    elif selection.end_option == EndOption.AFTER:
        range_ = NumberedRange(number_of_occurrences=selection.occurrences)
    else:
        range_ = NoEndRange()

    return CanonicalPattern(
        pattern_type=selection.frequency,
        interval=selection.interval,
        day_of_month=anchor.day,
        month=anchor.month,
        days_of_week_mask=mask,
        range=range_,
    )


def format_until(end_date: date, tz: tzinfo | None = None) -> str:
    """
    UNTIL value for an end date: 23:59:59 local time on that day, in UTC.
    """
    local_end = datetime.combine(end_date, time(23, 59, 59), tzinfo=tz or timezone.utc)
    return local_end.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def derive_rule_string(
    anchor: date,
    pattern: CanonicalPattern,
    tz: tzinfo | None = None,
) -> str:
    """
    Build the RRULE value for a canonical pattern.

    Field order is fixed: FREQ, INTERVAL, the frequency specific BY* parts,
    then at most one terminator (UNTIL or COUNT; none for a `noEnd` range).
    """
    parts = [
        f"FREQ={pattern.pattern_type.value.upper()}",
        f"INTERVAL={pattern.interval}",
    ]

    if pattern.pattern_type == Frequency.WEEKLY:
        days = mask_to_weekdays(pattern.days_of_week_mask) or [weekday_code(anchor)]
        parts.append(f"BYDAY={','.join(days)}")
    elif pattern.pattern_type == Frequency.MONTHLY:
        parts.append(f"BYMONTHDAY={pattern.day_of_month}")
    elif pattern.pattern_type == Frequency.YEARLY:
        parts.append(f"BYMONTH={pattern.month}")
        parts.append(f"BYMONTHDAY={pattern.day_of_month}")

    if isinstance(pattern.range, EndDateRange):
        parts.append(f"UNTIL={format_until(pattern.range.end_date, tz)}")
    elif isinstance(pattern.range, NumberedRange):
        parts.append(f"COUNT={pattern.range.number_of_occurrences}")

    return ";".join(parts)


def join_naturally(items: list[str]) -> str:
    """
    'A' / 'A and B' / 'A, B, and C'.
    """
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def derive_summary(anchor: date, pattern: CanonicalPattern) -> str:
    """
    Human readable summary, e.g.
    "Every 2 weeks on Monday and Wednesday, for 5 occurrences".
    """
    unit = _UNITS[pattern.pattern_type]
    if pattern.interval == 1:
        text = f"Every {unit}"
    else:
        text = f"Every {pattern.interval} {unit}s"

    if pattern.pattern_type == Frequency.WEEKLY:
        days = mask_to_weekdays(pattern.days_of_week_mask) or [weekday_code(anchor)]
        text += " on " + join_naturally([WEEKDAY_NAMES[code] for code in days])
    elif pattern.pattern_type == Frequency.MONTHLY:
        text += f" on day {pattern.day_of_month}"
    elif pattern.pattern_type == Frequency.YEARLY:
        text += f" on {calendar.month_name[pattern.month]} {pattern.day_of_month}"

    if isinstance(pattern.range, EndDateRange):
        text += f", until {format_ymd(pattern.range.end_date)}"
    elif isinstance(pattern.range, NumberedRange):
        count = pattern.range.number_of_occurrences
        noun = "occurrence" if count == 1 else "occurrences"
        text += f", for {count} {noun}"

    return text


def propose_end_time(
    start_time: time,
    end_time: time | None,
    is_all_day: bool = False,
) -> time | None:
    """
    Suggest an end time after the start time changed.

    Only fills in an end time that has not been set explicitly, and never for
    all-day events. Wraps around midnight like a wall clock.
    """
    if end_time is not None or is_all_day:
        return end_time
    moved = datetime.combine(date(2000, 1, 1), start_time) + DEFAULT_MEETING_LENGTH
    return moved.time().replace(second=0, microsecond=0)


class RecurrenceEditor:
    """
    Holds the selection for one recurring booking while it is being edited.

    Created from an anchor date when a recurring booking is started, mutated
    by the edit methods below and finalized with `finalize()`.

    Invariants kept on every edit:
    - a weekly selection always has at least one weekday;
    - interval and occurrences stay within their bounds;
    - choosing an end date proposes anchor + 3 months once, never
      overriding a date the user picked.
    """

    def __init__(self, anchor: date, selection: RecurrenceSelection | None = None) -> None:
        self.anchor = anchor
        self.selection = (
            selection.model_copy(deep=True) if selection is not None else RecurrenceSelection()
        )
        self._apply_invariants()

    @classmethod
    def weekly(cls, anchor: date) -> "RecurrenceEditor":
        return cls(anchor, RecurrenceSelection(frequency=Frequency.WEEKLY))

    def _apply_invariants(self) -> None:
        selection = self.selection
        if selection.frequency == Frequency.WEEKLY:
            known = [code for code in WEEKDAY_CODES if code in selection.by_weekdays]
            selection.by_weekdays = known or [weekday_code(self.anchor)]
        if selection.end_option == EndOption.DATE and selection.end_date is None:
            selection.end_date = default_end_date(self.anchor)

    def set_frequency(self, frequency: Frequency | str) -> None:
        self.selection.frequency = frequency
        self._apply_invariants()

    def set_interval(self, value: object) -> None:
        self.selection.interval = value

    def set_occurrences(self, value: object) -> None:
        self.selection.occurrences = value

    def toggle_weekday(self, code: str) -> None:
        """
        Add or remove a weekday. Removing the last selected day is a no-op.
        """
        code = code.strip().upper()
        if code not in WEEKDAY_CODES:
            logger.debug("Ignoring unknown weekday code %r", code)
            return

        days = list(self.selection.by_weekdays)
        if code in days:
            if len(days) == 1:
                return
            days.remove(code)
        else:
            days.append(code)
        self.selection.by_weekdays = [c for c in WEEKDAY_CODES if c in days]

    def set_end_option(self, option: EndOption | str) -> None:
        self.selection.end_option = option
        self._apply_invariants()

    def set_end_date(self, value: date | None) -> None:
        self.selection.end_date = value
        self._apply_invariants()

    def finalize(self) -> CanonicalPattern:
        return derive_pattern(self.anchor, self.selection)
