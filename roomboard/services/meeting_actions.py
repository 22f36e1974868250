# roomboard/services/meeting_actions.py
from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, Type

from roomboard.core.errors import (
    ActionNotAllowed,
    DeletionNotAllowed,
    EditNotAllowed,
    NetworkError,
    ValidationError,
)
from roomboard.schemas.booking import BookingConfirmation, BookingDraft
from roomboard.schemas.meeting import EventGroup, MeetingEdit, MeetingStatus, RawMeeting
from roomboard.services.reconciliation import classify_status
from roomboard.services.recurrence_engine import derive_rule_string, propose_end_time

logger = logging.getLogger(__name__)

ROOM_BUSY_MESSAGE = (
    "The selected room is not available at the chosen time. "
    "Please select a different time or room."
)


class BookingBackend(Protocol):
    async def query_meetings(self, resource_ids: Sequence[str], day: date) -> List[RawMeeting]: ...

    async def submit_booking(self, body: Dict[str, Any]) -> BookingConfirmation: ...

    async def update_meeting(self, ical_uid: str, body: Dict[str, Any]) -> None: ...

    async def delete_meeting(self, ical_uid: str, organizer_email: str) -> None: ...


def _domain_pattern(org_domain: str) -> re.Pattern[str]:
    return re.compile(rf"^[a-zA-Z0-9._%+-]+@{re.escape(org_domain.lstrip('@'))}$", re.IGNORECASE)


def _utc_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _booking_window(draft: BookingDraft, tz: tzinfo) -> Tuple[datetime, datetime]:
    """
    Local start/end instants of the (first occurrence of the) booking.
    """
    end_date = draft.end_date or draft.start_date
    if draft.is_all_day:
        start = datetime.combine(draft.start_date, time.min, tzinfo=tz)
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=tz)
        return start, end

    end_time = propose_end_time(draft.start_time, draft.end_time, draft.is_all_day)
    start = datetime.combine(draft.start_date, draft.start_time, tzinfo=tz)
    end = datetime.combine(end_date, end_time, tzinfo=tz)
    if end <= start:
        raise ValidationError("End time must be after start time")
    return start, end


def build_booking_request(
    draft: BookingDraft,
    *,
    org_domain: Optional[str] = None,
    tz: tzinfo = timezone.utc,
) -> Dict[str, Any]:
    """
    Validate a booking draft and build the bookings API request body.

    Rules
    -----
    - title, start date, user email and room are required.
    - a recurring booking must carry a finalized recurrence pattern.
    - when `org_domain` is set, the user and every attendee must use it.
    - timed events need end > start (end defaults to start + 30 minutes);
      all-day events span local midnight to the midnight after the end date.

    Raises
    ------
    ValidationError
        With a user-facing message; nothing is sent.
    """
    if not draft.title.strip():
        raise ValidationError("Event title is required")
    if draft.start_date is None:
        raise ValidationError("Start date is required")
    if not draft.user_email.strip():
        raise ValidationError("User email is required")
    if not draft.room_email.strip():
        raise ValidationError("Please select a room")
    if draft.is_recurring and draft.recurrence is None:
        raise ValidationError("Please configure recurrence details")

    if org_domain:
        pattern = _domain_pattern(org_domain)
        if not pattern.match(draft.user_email.strip()):
            raise ValidationError(f"Please use a valid @{org_domain} email address.")
        invalid = [a.email for a in draft.attendees if not pattern.match(a.email.strip())]
        if invalid:
            raise ValidationError(f"These attendee emails are invalid: {', '.join(invalid)}")

    start, end = _booking_window(draft, tz)

    recurrence = None
    rule = None
    if draft.is_recurring and draft.recurrence is not None:
        recurrence = draft.recurrence.model_dump(by_alias=True, mode="json")
        rule = derive_rule_string(draft.start_date, draft.recurrence, tz)

    return {
        "Title": draft.title.strip(),
        "Description": draft.description or draft.title.strip(),
        "StartTime": _utc_iso(start),
        "EndTime": _utc_iso(end),
        "Location": draft.location,
        "UserEmail": draft.user_email.strip(),
        "RoomEmail": draft.room_email.strip(),
        "Attendees": [{"Name": a.name, "Email": a.email} for a in draft.attendees],
        "Category": draft.category,
        "Reminder": draft.reminder,
        "IsAllDay": draft.is_all_day,
        "IsRecurring": draft.is_recurring,
        "recurrence": recurrence,
        "recurrenceRule": rule,
    }


async def ensure_room_available(
    backend: BookingBackend,
    draft: BookingDraft,
    *,
    tz: tzinfo = timezone.utc,
) -> None:
    """
    Refuse a booking whose room already holds an overlapping meeting.

    Only the first occurrence of a recurring booking is checked. When the
    room calendar cannot be read the booking goes ahead and the bookings API
    has the final word.

    Raises
    ------
    ValidationError
        When the room is busy during the requested window.
    """
    start, end = _booking_window(draft, tz)
    room = draft.room_email.strip()

    day = start.date()
    last_day = (end - timedelta(microseconds=1)).date()
    while day <= last_day:
        try:
            meetings = await backend.query_meetings([room], day)
        except NetworkError as exc:
            logger.warning("Availability of %s on %s unknown: %s", room, day.isoformat(), exc.message)
            return
        if any(m.start_time < end and start < m.end_time for m in meetings):
            logger.info("Room %s busy between %s and %s", room, _utc_iso(start), _utc_iso(end))
            raise ValidationError(ROOM_BUSY_MESSAGE)
        day += timedelta(days=1)


async def submit_booking(
    backend: BookingBackend,
    draft: BookingDraft,
    *,
    org_domain: Optional[str] = None,
    tz: tzinfo = timezone.utc,
) -> BookingConfirmation:
    """
    Validate, check the room is free, and submit a booking. NetworkError
    from the submission propagates unchanged so the caller can show the
    server's message.
    """
    body = build_booking_request(draft, org_domain=org_domain, tz=tz)
    await ensure_room_available(backend, draft, tz=tz)
    confirmation = await backend.submit_booking(body)
    logger.info(
        "Booking submitted: title=%r room=%s start=%s",
        body["Title"],
        body["RoomEmail"],
        body["StartTime"],
    )
    return confirmation


# Wording per action: (imperative, permission verb, past participle)
_DELETE_WORDS = ("cancel", "delete", "deleted")
_EDIT_WORDS = ("edit", "edit", "edited")


def _check_may_manage(
    group: EventGroup,
    caller_email: str,
    *,
    error: Type[ActionNotAllowed],
    words: Tuple[str, str, str],
    admin_emails: Iterable[str],
    org_domain: Optional[str],
    now: Optional[datetime],
) -> None:
    action, verb, done = words
    meeting = group.meeting
    caller = (caller_email or "").strip().lower()
    if not caller:
        raise error(f"You must be signed in to {action} this meeting.")

    is_admin = caller in {e.strip().lower() for e in admin_emails}

    if org_domain and not is_admin and not caller.endswith(f"@{org_domain.lstrip('@').lower()}"):
        raise error(f"Please sign in with your @{org_domain} email to manage meetings.")

    status = classify_status(meeting.start_time, meeting.end_time, now)
    if status != MeetingStatus.UPCOMING and not is_admin:
        raise error(f"Only admins can {verb} live or completed meetings.")

    organizer_email = meeting.organizer_email.strip().lower()
    is_organizer = caller in {organizer_email, meeting.organizer.strip().lower()}
    if not is_organizer and not is_admin:
        raise error(f"Only the organizer or an admin can {action} this meeting.")

    if not meeting.ical_uid:
        raise error(f"Meeting cannot be {done} because iCalUId is missing.")
    if not organizer_email:
        raise error(f"Meeting cannot be {done} because organizer email is missing.")


def check_deletion_allowed(
    group: EventGroup,
    caller_email: str,
    *,
    admin_emails: Iterable[str] = (),
    org_domain: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Raise DeletionNotAllowed unless `caller_email` may delete the meeting.

    Rules
    -----
    - caller must be identified;
    - when `org_domain` is set, non-admin callers must belong to it;
    - non-admins may only delete *upcoming* meetings they organize
      (case-insensitive email match);
    - the meeting must carry an iCalUId and an organizer email.
    """
    _check_may_manage(
        group,
        caller_email,
        error=DeletionNotAllowed,
        words=_DELETE_WORDS,
        admin_emails=admin_emails,
        org_domain=org_domain,
        now=now,
    )


def check_edit_allowed(
    group: EventGroup,
    caller_email: str,
    *,
    admin_emails: Iterable[str] = (),
    org_domain: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Raise EditNotAllowed unless `caller_email` may edit the meeting.

    Same rules as deletion: organizers edit their own upcoming meetings,
    admins edit anything that can be identified.
    """
    _check_may_manage(
        group,
        caller_email,
        error=EditNotAllowed,
        words=_EDIT_WORDS,
        admin_emails=admin_emails,
        org_domain=org_domain,
        now=now,
    )


async def delete_meeting(
    backend: BookingBackend,
    group: EventGroup,
    caller_email: str,
    *,
    admin_emails: Iterable[str] = (),
    org_domain: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    """
    Check the precondition, then ask the backend to delete the meeting.

    No local state is touched here; callers remove the group only after this
    returns.
    """
    check_deletion_allowed(
        group,
        caller_email,
        admin_emails=admin_emails,
        org_domain=org_domain,
        now=now,
    )
    meeting = group.meeting
    await backend.delete_meeting(meeting.ical_uid or "", meeting.organizer_email.strip().lower())
    logger.info(
        "Meeting deleted: ical_uid=%s by=%s rooms=%d",
        meeting.ical_uid,
        caller_email.strip().lower(),
        group.room_count,
    )


def build_edit_request(
    edit: MeetingEdit,
    organizer_email: str,
    *,
    tz: tzinfo = timezone.utc,
) -> Dict[str, Any]:
    """
    Validate a quick edit and build the bookings API PATCH body.

    Times without an offset are read in `tz`; both are sent as UTC.
    """
    subject = edit.subject.strip()
    if len(subject) < 3:
        raise ValidationError("Please enter a subject (at least 3 characters).")

    start = edit.start_time if edit.start_time.tzinfo else edit.start_time.replace(tzinfo=tz)
    end = edit.end_time if edit.end_time.tzinfo else edit.end_time.replace(tzinfo=tz)
    if end <= start:
        raise ValidationError("End time must be after start time")

    return {
        "subject": subject,
        "StartTime": _utc_iso(start),
        "EndTime": _utc_iso(end),
        "organizerEmail": organizer_email.strip().lower(),
    }


async def update_meeting(
    backend: BookingBackend,
    group: EventGroup,
    edit: MeetingEdit,
    caller_email: str,
    *,
    admin_emails: Iterable[str] = (),
    org_domain: Optional[str] = None,
    tz: tzinfo = timezone.utc,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Check the caller may edit the meeting, validate the edit and send it.

    The change applies to every room the meeting occupies. Returns the body
    that was sent.
    """
    check_edit_allowed(
        group,
        caller_email,
        admin_emails=admin_emails,
        org_domain=org_domain,
        now=now,
    )
    meeting = group.meeting
    body = build_edit_request(edit, meeting.organizer_email, tz=tz)
    await backend.update_meeting(meeting.ical_uid or "", body)
    logger.info(
        "Meeting updated: ical_uid=%s by=%s start=%s",
        meeting.ical_uid,
        caller_email.strip().lower(),
        body["StartTime"],
    )
    return body
