# roomboard/schemas/meeting.py
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class MeetingStatus(str, Enum):
    """
    Temporal status of a meeting relative to "now". Always derived, never stored.
    """

    UPCOMING = "upcoming"
    LIVE = "live"
    COMPLETED = "completed"


class RawMeeting(BaseModel):
    """
    One occurrence as reported by one room's calendar.

    The same logical meeting shows up once per room it occupies; see
    `EventGroup` for the reconciled view.
    """

    model_config = ConfigDict(frozen=True)

    subject: str = Field("", description="Meeting subject as shown in the room calendar.")
    start_time: datetime = Field(..., description="UTC start instant.")
    end_time: datetime = Field(..., description="UTC end instant.")
    organizer: str = Field("", description="Organizer display name (or email for legacy rows).")
    organizer_email: str = Field("", description="Organizer email address.")
    location: str = Field("", description="Room label of the calendar this record came from.")
    attendee_count: int = Field(0, ge=0)
    ical_uid: str | None = Field(
        None,
        description="Stable cross-calendar identifier; absent on some legacy records.",
    )
    id: str | None = Field(None, description="Backend event id, when provided.")
    multi_rooms: tuple[str, ...] | None = Field(
        None,
        description="Rooms the backend already knows this meeting occupies.",
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # naive instants are read as UTC
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60.0


class EventGroup(BaseModel):
    """
    The reconciled, de-duplicated unit shown on the dashboard: one
    representative record plus the rooms the meeting occupies.
    """

    model_config = ConfigDict(frozen=True)

    meeting: RawMeeting
    rooms: tuple[str, ...] = Field(..., description="Distinct room labels, sorted.")

    @computed_field  # type: ignore[misc]
    @property
    def room_count(self) -> int:
        return len(self.rooms)

    @computed_field  # type: ignore[misc]
    @property
    def is_multi_room(self) -> bool:
        return self.room_count > 1


class StatsSnapshot(BaseModel):
    """
    Dashboard header figures, recomputed wholesale on every successful fetch.
    """

    total_meetings: int = Field(0, description="Unique logical meetings.")
    active_meetings: int = Field(0, description="Unique meetings currently live.")
    total_attendees: int = Field(0, description="Attendees summed over unique meetings.")
    avg_duration_minutes: int = Field(0, description="Mean unique meeting length, rounded.")
    room_utilization_percent: int = Field(
        0,
        description="Booked room-minutes over bookable room-minutes for the day, capped at 100.",
    )


class MeetingView(BaseModel):
    """
    API representation of an `EventGroup` with its status at response time.
    """

    subject: str
    start_time: datetime
    end_time: datetime
    organizer: str
    organizer_email: str
    location: str
    attendee_count: int
    ical_uid: str | None
    status: MeetingStatus
    rooms: list[str]
    room_count: int
    is_multi_room: bool


class MeetingEdit(BaseModel):
    """
    Quick edit of an existing meeting: new subject and time window.
    """

    subject: str = Field("", description="New subject (at least 3 characters).", examples=["Sprint review"])
    start_time: datetime = Field(
        ...,
        description="New start; a value without offset is read in the configured local timezone.",
    )
    end_time: datetime = Field(..., description="New end; must be after the start.")


class DayMeetings(BaseModel):
    """
    Response body of `GET /meetings`.
    """

    day: date
    page: int
    total_pages: int
    stats: StatsSnapshot
    meetings: list[MeetingView]
    floors: dict[str, list[MeetingView]] = Field(
        default_factory=dict,
        description="Current page of meetings per floor, live first.",
    )


class ViewState(BaseModel):
    """
    What a fetch controller publishes to its view after each change.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    filter_date: date | None = Field(None, description="Date the current groups belong to.")
    groups: tuple[EventGroup, ...] = ()
    stats: StatsSnapshot | None = None
    loading: bool = False
    error: str | None = Field(
        None,
        description="Transient notice from the last failed fetch; stale data stays visible.",
    )
    last_updated: datetime | None = None
