# tests/test_meeting_normalizer.py
from datetime import datetime, timezone

from roomboard.services.meeting_normalizer import MeetingNormalizer


def _payload(**overrides):
    payload = {
        "subject": "Design review",
        "startTime": "2025-11-14T04:30:00Z",
        "endTime": "2025-11-14T05:30:00Z",
        "organizer": "Jane Doe",
        "organizerEmail": "jane@example.com",
        "location": "Room A",
        "attendeesCount": 4,
        "iCalUId": "uid-1",
        "id": "evt-1",
    }
    payload.update(overrides)
    return payload


def test_from_payload_maps_canonical_fields():
    meeting = MeetingNormalizer.from_payload(_payload())

    assert meeting is not None
    assert meeting.subject == "Design review"
    assert meeting.start_time == datetime(2025, 11, 14, 4, 30, tzinfo=timezone.utc)
    assert meeting.end_time == datetime(2025, 11, 14, 5, 30, tzinfo=timezone.utc)
    assert meeting.organizer_email == "jane@example.com"
    assert meeting.location == "Room A"
    assert meeting.attendee_count == 4
    assert meeting.ical_uid == "uid-1"
    assert meeting.id == "evt-1"
    assert meeting.multi_rooms is None
    assert meeting.duration_minutes == 60.0


def test_from_payload_accepts_alternative_attendee_spellings():
    payload = _payload()
    del payload["attendeesCount"]
    payload["AttendeeCount"] = "7"

    meeting = MeetingNormalizer.from_payload(payload)

    assert meeting is not None
    assert meeting.attendee_count == 7


def test_from_payload_defaults_bad_attendee_count_to_zero():
    meeting = MeetingNormalizer.from_payload(_payload(attendeesCount="lots"))

    assert meeting is not None
    assert meeting.attendee_count == 0


def test_organizer_address_is_used_when_email_field_missing():
    payload = _payload(organizer="jane@example.com")
    del payload["organizerEmail"]

    meeting = MeetingNormalizer.from_payload(payload)

    assert meeting is not None
    assert meeting.organizer_email == "jane@example.com"


def test_graph_style_datetime_objects_are_unwrapped():
    meeting = MeetingNormalizer.from_payload(
        _payload(
            startTime={"dateTime": "2025-11-14T04:30:00", "timeZone": "UTC"},
            endTime={"dateTime": "2025-11-14T05:00:00", "timeZone": "UTC"},
        )
    )

    assert meeting is not None
    assert meeting.duration_minutes == 30.0


def test_multi_rooms_kept_only_when_list():
    meeting = MeetingNormalizer.from_payload(_payload(multiRooms=["Room A", "Room B"]))
    assert meeting is not None
    assert meeting.multi_rooms == ("Room A", "Room B")

    meeting = MeetingNormalizer.from_payload(_payload(multiRooms="Room A"))
    assert meeting is not None
    assert meeting.multi_rooms is None


def test_records_without_times_are_skipped():
    assert MeetingNormalizer.from_payload(_payload(startTime=None)) is None
    assert MeetingNormalizer.from_payload(_payload(endTime="not-a-date")) is None


def test_normalize_many_accepts_wrapped_and_bare_lists():
    good = _payload()
    bad = _payload(startTime=None)

    wrapped = MeetingNormalizer.normalize_many({"meetings": [good, bad, "junk"]})
    bare = MeetingNormalizer.normalize_many([good])

    assert [m.ical_uid for m in wrapped] == ["uid-1"]
    assert [m.ical_uid for m in bare] == ["uid-1"]
    assert MeetingNormalizer.normalize_many(None) == []
