# roomboard/services/dashboard_view.py
from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from roomboard.schemas.meeting import EventGroup, MeetingStatus, MeetingView
from roomboard.services.reconciliation import group_status

_STATUS_ORDER = {
    MeetingStatus.LIVE: 0,
    MeetingStatus.UPCOMING: 1,
    MeetingStatus.COMPLETED: 2,
}


def sort_by_status(groups: Sequence[EventGroup], now: Optional[datetime] = None) -> List[EventGroup]:
    """
    Live meetings first, then upcoming, then completed. Stable within a status.
    """
    return sorted(groups, key=lambda g: _STATUS_ORDER[group_status(g, now)])


def active_only(groups: Sequence[EventGroup], now: Optional[datetime] = None) -> List[EventGroup]:
    """
    Drop completed meetings (side panel view).
    """
    return [g for g in groups if group_status(g, now) != MeetingStatus.COMPLETED]


def split_by_floor(groups: Sequence[EventGroup], floors: Sequence[str]) -> Dict[str, List[EventGroup]]:
    """
    Bucket groups into floor columns by case-insensitive match of the floor
    label inside the representative's room label.
    """
    columns: Dict[str, List[EventGroup]] = {}
    for floor in floors:
        needle = floor.lower()
        columns[floor] = [g for g in groups if needle in (g.meeting.location or "").lower()]
    return columns


def page_count(columns: Dict[str, List[EventGroup]], page_size: int) -> int:
    longest = max((len(items) for items in columns.values()), default=0)
    return max(1, math.ceil(longest / page_size)) if page_size > 0 else 1


def paginate(items: Sequence[EventGroup], page: int, page_size: int) -> List[EventGroup]:
    page = max(1, page)
    start = (page - 1) * page_size
    return list(items[start:start + page_size])


def to_view(group: EventGroup, now: Optional[datetime] = None) -> MeetingView:
    meeting = group.meeting
    return MeetingView(
        subject=meeting.subject,
        start_time=meeting.start_time,
        end_time=meeting.end_time,
        organizer=meeting.organizer,
        organizer_email=meeting.organizer_email,
        location=meeting.location,
        attendee_count=meeting.attendee_count,
        ical_uid=meeting.ical_uid,
        status=group_status(group, now),
        rooms=list(group.rooms),
        room_count=group.room_count,
        is_multi_room=group.is_multi_room,
    )
