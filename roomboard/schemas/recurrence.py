# roomboard/schemas/recurrence.py
import math
from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

INTERVAL_MIN, INTERVAL_MAX = 1, 30
OCCURRENCES_MIN, OCCURRENCES_MAX = 1, 100


def _clamp(value: Any, low: int, high: int) -> int:
    if isinstance(value, int):
        return max(low, min(high, value))
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return low
    if math.isnan(number):
        return low
    if math.isinf(number):
        return high if number > 0 else low
    return max(low, min(high, int(number)))


class Frequency(str, Enum):
    """
    How often a recurring booking repeats.
    """

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class EndOption(str, Enum):
    """
    Which termination condition applies to a recurring booking.
    """

    NEVER = "never"
    DATE = "date"
    AFTER = "after"


class RecurrenceSelection(BaseModel):
    """
    The user's recurrence choices while editing a recurring booking.

    Numeric fields are clamped (never rejected) both on construction and on
    assignment, so an edit can never leave the selection out of range.
    Weekday invariants that depend on the anchor date are enforced by
    `RecurrenceEditor`.
    """

    model_config = ConfigDict(validate_assignment=True)

    frequency: Frequency = Field(
        Frequency.DAILY,
        description="Repeat unit.",
        examples=["weekly"],
    )
    interval: int = Field(
        1,
        description="Repeat every N units, clamped to [1, 30].",
        examples=[1],
    )
    by_weekdays: list[str] = Field(
        default_factory=list,
        description="Sunday-first weekday codes (SU..SA); only used for weekly recurrence.",
        examples=[["MO", "WE"]],
    )
    end_option: EndOption = Field(
        EndOption.NEVER,
        description="never / date / after.",
    )
    end_date: date | None = Field(
        None,
        description="Last day of the series when end_option is 'date'.",
    )
    occurrences: int = Field(
        10,
        description="Number of occurrences when end_option is 'after', clamped to [1, 100].",
    )

    @field_validator("interval", mode="before")
    @classmethod
    def _clamp_interval(cls, value: Any) -> int:
        return _clamp(value, INTERVAL_MIN, INTERVAL_MAX)

    @field_validator("occurrences", mode="before")
    @classmethod
    def _clamp_occurrences(cls, value: Any) -> int:
        return _clamp(value, OCCURRENCES_MIN, OCCURRENCES_MAX)

    @field_validator("by_weekdays", mode="before")
    @classmethod
    def _upper_codes(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return [str(code).strip().upper() for code in value]
        return value


class _RangeBase(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class NoEndRange(_RangeBase):
    type: Literal["noEnd"] = "noEnd"


class EndDateRange(_RangeBase):
    type: Literal["endDate"] = "endDate"
    end_date: date


class NumberedRange(_RangeBase):
    type: Literal["numbered"] = "numbered"
    number_of_occurrences: int = Field(..., ge=OCCURRENCES_MIN)


RecurrenceRange = Annotated[
    Union[NoEndRange, EndDateRange, NumberedRange],
    Field(discriminator="type"),
]


class CanonicalPattern(BaseModel):
    """
    Backend-facing recurrence pattern, frozen once derived.

    Embedded in booking submissions with camelCase keys
    (`model_dump(by_alias=True, mode="json")`).
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    pattern_type: Frequency
    interval: int = Field(..., ge=INTERVAL_MIN)
    day_of_month: int = Field(..., ge=1, le=31)
    month: int = Field(..., ge=1, le=12)
    days_of_week_mask: int = Field(0, ge=0, lt=1 << 7)
    range: RecurrenceRange = Field(default_factory=NoEndRange)


class RecurrencePreviewRequest(BaseModel):
    anchor_date: date = Field(..., description="First occurrence of the series.")
    selection: RecurrenceSelection


class RecurrencePreview(BaseModel):
    """
    Everything derived from a finalized selection.
    """

    selection: RecurrenceSelection = Field(
        ..., description="The selection after weekday/end-date invariants were applied."
    )
    pattern: CanonicalPattern
    rule: str = Field(..., description="iCalendar RRULE value (without the 'RRULE:' prefix).")
    summary: str = Field(..., description="Human readable description of the series.")
