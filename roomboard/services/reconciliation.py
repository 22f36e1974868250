# roomboard/services/reconciliation.py
"""
Multi-source event reconciliation.

Room calendars are queried one by one, so a meeting booked into three rooms
arrives as three records. `reconcile()` folds them back into one
`EventGroup` per logical meeting, annotated with the rooms it occupies.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from roomboard.schemas.meeting import EventGroup, MeetingStatus, RawMeeting

UNKNOWN_ROOM = "Unknown"


@dataclass(frozen=True)
class ICalUidKey:
    """Grouping key for records carrying a stable cross-calendar id."""

    ical_uid: str


@dataclass(frozen=True)
class CompositeKey:
    """
    Heuristic grouping key for legacy records without an iCalUId.

    Two distinct meetings with identical subject, times and organizer will
    share this key and be merged as one multi-room meeting.
    """

    subject: str
    start: str
    end: str
    organizer: str


GroupingKey = Union[ICalUidKey, CompositeKey]


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def organizer_identity(meeting: RawMeeting) -> str:
    return (meeting.organizer_email or meeting.organizer or "").strip().lower()


def grouping_key(meeting: RawMeeting) -> GroupingKey:
    """
    Derive the grouping key for a record. Total: never raises.
    """
    if meeting.ical_uid:
        return ICalUidKey(meeting.ical_uid)
    return CompositeKey(
        subject=(meeting.subject or "").strip(),
        start=_iso(meeting.start_time),
        end=_iso(meeting.end_time),
        organizer=organizer_identity(meeting),
    )


def _room_label(meeting: RawMeeting) -> str:
    return (meeting.location or "").strip() or UNKNOWN_ROOM


def reconcile(raw_meetings: Iterable[RawMeeting]) -> List[EventGroup]:
    """
    Merge per-room records into one EventGroup per logical meeting.

    Steps
    -----
    1) Partition records by grouping key, in first-appearance order.
    2) Collect the distinct, sorted room labels of each partition (plus any
       rooms the backend already listed in `multi_rooms`).
    3) Emit one group per partition wrapping its first record.
    4) Drop any group whose key was already emitted.
    """
    members: Dict[GroupingKey, List[RawMeeting]] = {}
    for meeting in raw_meetings:
        members.setdefault(grouping_key(meeting), []).append(meeting)

    groups: List[EventGroup] = []
    for items in members.values():
        rooms = {_room_label(m) for m in items}
        for m in items:
            if m.multi_rooms:
                rooms.update(r.strip() or UNKNOWN_ROOM for r in m.multi_rooms)
        groups.append(EventGroup(meeting=items[0], rooms=tuple(sorted(rooms))))

    return dedupe_groups(groups)


def dedupe_groups(groups: Iterable[EventGroup]) -> List[EventGroup]:
    """
    Keep the first group per grouping key. Idempotent.
    """
    seen: set[GroupingKey] = set()
    unique: List[EventGroup] = []
    for group in groups:
        key = grouping_key(group.meeting)
        if key in seen:
            continue
        seen.add(key)
        unique.append(group)
    return unique


def flatten_to_raw(groups: Iterable[EventGroup]) -> List[RawMeeting]:
    """
    Expand groups back into one record per room.

    The representative comes first with its own location, so reconciling the
    result reproduces the same groups.
    """
    records: List[RawMeeting] = []
    for group in groups:
        representative = group.meeting
        records.append(representative)
        own_room = _room_label(representative)
        for room in group.rooms:
            if room == own_room:
                continue
            records.append(representative.model_copy(update={"location": room}))
    return records


def classify_status(
    start_time: datetime,
    end_time: datetime,
    now: Optional[datetime] = None,
) -> MeetingStatus:
    """
    completed if now > end, live if start <= now <= end, otherwise upcoming.
    """
    if now is None:
        now = datetime.now(tz=timezone.utc)
    if now > end_time:
        return MeetingStatus.COMPLETED
    if start_time <= now <= end_time:
        return MeetingStatus.LIVE
    return MeetingStatus.UPCOMING


def group_status(group: EventGroup, now: Optional[datetime] = None) -> MeetingStatus:
    return classify_status(group.meeting.start_time, group.meeting.end_time, now)
