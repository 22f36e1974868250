# roomboard/schemas/booking.py
from datetime import date, time

from pydantic import BaseModel, Field

from roomboard.schemas.recurrence import CanonicalPattern


class BookingAttendee(BaseModel):
    name: str = Field("", description="Display name.")
    email: str = Field(..., description="Attendee email address.")


class BookingDraft(BaseModel):
    """
    A booking as entered by the user, before validation and before being
    turned into the bookings API request body.
    """

    title: str = Field("", description="Event title (required).", examples=["Sprint planning"])
    description: str = Field("", description="Optional body; defaults to the title.")
    start_date: date | None = Field(None, description="Local date of the (first) occurrence.")
    end_date: date | None = Field(
        None,
        description="Local end date; defaults to start_date (used by all-day events).",
    )
    start_time: time = Field(time(9, 0), description="Local start time.")
    end_time: time | None = Field(
        None,
        description="Local end time; proposed as start + 30 minutes when omitted.",
    )
    is_all_day: bool = False
    location: str = Field("", description="Room label.")
    room_email: str = Field("", description="Calendar mailbox of the booked room.")
    user_email: str = Field("", description="Organizer email.")
    attendees: list[BookingAttendee] = Field(default_factory=list)
    category: str = Field("Busy")
    reminder: int = Field(15, ge=0, description="Reminder lead time in minutes.")
    is_recurring: bool = False
    recurrence: CanonicalPattern | None = Field(
        None,
        description="Finalized recurrence pattern; required when is_recurring is true.",
    )


class BookingConfirmation(BaseModel):
    """
    What the bookings API returned for a successful submission.
    """

    message: str = Field("Booking confirmed.")
    payload: dict | None = Field(
        None,
        description="Raw bookings API response for debugging purposes.",
    )
