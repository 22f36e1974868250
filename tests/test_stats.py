# tests/test_stats.py
from datetime import datetime, timedelta, timezone

from conftest import make_meeting

from roomboard.services.stats import compute_stats

NOW = datetime(2030, 1, 10, 10, 30, tzinfo=timezone.utc)


def test_empty_day_is_all_zero():
    stats = compute_stats([], total_resources=4, hours_per_resource_per_day=8, now=NOW)

    assert stats.total_meetings == 0
    assert stats.active_meetings == 0
    assert stats.total_attendees == 0
    assert stats.avg_duration_minutes == 0
    assert stats.room_utilization_percent == 0


def test_multi_room_meeting_counts_once_but_uses_every_room():
    start = datetime(2030, 1, 10, 10, tzinfo=timezone.utc)
    raw = [
        make_meeting(ical_uid="abc", location="Room A", attendees=5, start=start),
        make_meeting(ical_uid="abc", location="Room B", attendees=5, start=start),
        make_meeting(ical_uid="def", location="Room C", attendees=2, start=start + timedelta(hours=3)),
    ]

    stats = compute_stats(raw, total_resources=4, hours_per_resource_per_day=8, now=NOW)

    assert stats.total_meetings == 2
    assert stats.active_meetings == 1
    assert stats.total_attendees == 7
    assert stats.avg_duration_minutes == 60
    # 180 used of 1920 bookable minutes
    assert stats.room_utilization_percent == 9


def test_utilization_is_capped_and_zero_without_resources():
    raw = [make_meeting(ical_uid=str(i), minutes=600) for i in range(3)]

    assert compute_stats(raw, 1, 8, now=NOW).room_utilization_percent == 100
    assert compute_stats(raw, 0, 8, now=NOW).room_utilization_percent == 0


def test_average_rounds_halves_up():
    start = datetime(2030, 1, 10, 12, tzinfo=timezone.utc)
    raw = [
        make_meeting(ical_uid="a", minutes=30, start=start),
        make_meeting(ical_uid="b", minutes=31, start=start),
        make_meeting(ical_uid="c", minutes=30, start=start),
        make_meeting(ical_uid="d", minutes=31, start=start),
    ]

    # mean 30.5 -> 31
    assert compute_stats(raw, 4, 8, now=NOW).avg_duration_minutes == 31
