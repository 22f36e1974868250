# roomboard/services/meeting_normalizer.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from roomboard.schemas.meeting import RawMeeting
from roomboard.services.calendar_utils import parse_iso_utc

logger = logging.getLogger(__name__)

_ATTENDEE_COUNT_KEYS = ("attendeesCount", "attendeeCount", "AttendeeCount", "attendee_count")
_ORGANIZER_EMAIL_KEYS = ("organizerEmail", "OrganizerEmail", "organizer_email")
_ORGANIZER_KEYS = ("organizer", "Organizer", "organizerName")


class MeetingNormalizer:
    """
    Converts the bookings API's meeting payloads into canonical `RawMeeting`
    records.

    This is the only place that knows about the several field names the
    backend has used over time (attendee counts, organizer fields, Graph-style
    `{"dateTime": ..}` objects). Everything downstream only sees `RawMeeting`.
    """

    @staticmethod
    def _first(payload: Dict[str, Any], keys: Iterable[str]) -> Any:
        for key in keys:
            value = payload.get(key)
            if value not in (None, ""):
                return value
        return None

    @staticmethod
    def _instant(value: Any) -> Any:
        # Graph-style {"dateTime": "...", "timeZone": "UTC"}
        if isinstance(value, dict):
            return value.get("dateTime")
        return value

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional[RawMeeting]:
        """
        Build a RawMeeting from one payload entry.

        Rules
        -----
        - start/end are required; entries without a parseable pair are
          skipped (None) and logged.
        - attendee count falls back through the known spellings, then 0.
        - organizer email falls back to the organizer field when that field
          looks like an address.
        - `multiRooms` is kept only when it is a list.
        """
        start = parse_iso_utc(cls._instant(cls._first(payload, ("startTime", "StartTime", "start"))))
        end = parse_iso_utc(cls._instant(cls._first(payload, ("endTime", "EndTime", "end"))))
        if start is None or end is None:
            logger.warning(
                "Skipping meeting without usable start/end: subject=%r",
                payload.get("subject"),
            )
            return None

        organizer = str(cls._first(payload, _ORGANIZER_KEYS) or "").strip()
        organizer_email = str(cls._first(payload, _ORGANIZER_EMAIL_KEYS) or "").strip()
        if not organizer_email and "@" in organizer:
            organizer_email = organizer

        try:
            attendee_count = int(cls._first(payload, _ATTENDEE_COUNT_KEYS) or 0)
        except (TypeError, ValueError):
            attendee_count = 0

        multi_rooms = payload.get("multiRooms")
        rooms = tuple(str(r) for r in multi_rooms) if isinstance(multi_rooms, list) else None

        ical_uid = cls._first(payload, ("iCalUId", "ICalUId", "ical_uid"))
        event_id = payload.get("id")

        return RawMeeting(
            subject=str(payload.get("subject") or payload.get("Subject") or ""),
            start_time=start,
            end_time=end,
            organizer=organizer,
            organizer_email=organizer_email,
            location=str(payload.get("location") or payload.get("Location") or ""),
            attendee_count=max(attendee_count, 0),
            ical_uid=str(ical_uid) if ical_uid else None,
            id=str(event_id) if event_id else None,
            multi_rooms=rooms,
        )

    @classmethod
    def normalize_many(cls, payload: Any) -> List[RawMeeting]:
        """
        Normalize a bookings API response (`{"meetings": [...]}` or a bare list).
        """
        if isinstance(payload, dict):
            entries = payload.get("meetings") or []
        elif isinstance(payload, list):
            entries = payload
        else:
            entries = []

        meetings: List[RawMeeting] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            meeting = cls.from_payload(entry)
            if meeting is not None:
                meetings.append(meeting)
        return meetings
