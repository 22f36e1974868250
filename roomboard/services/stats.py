# roomboard/services/stats.py
from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from roomboard.schemas.meeting import MeetingStatus, RawMeeting, StatsSnapshot
from roomboard.services.reconciliation import GroupingKey, classify_status, grouping_key


def _round_half_up(value: float) -> int:
    # Halves round up (2.5 -> 3), unlike round()'s banker's rounding.
    return int(math.floor(value + 0.5))


def compute_stats(
    raw_meetings: Sequence[RawMeeting],
    total_resources: int,
    hours_per_resource_per_day: float,
    now: Optional[datetime] = None,
) -> StatsSnapshot:
    """
    Compute the dashboard header figures for one day.

    Steps
    -----
    1) Keep the first record per grouping key ("unique" meetings) so a
       meeting held in three rooms counts once.
    2) Over unique meetings compute:
        - total_meetings
        - active_meetings (currently live)
        - total_attendees
        - avg_duration_minutes (rounded, 0 if there are none)
    3) Over *all* raw records compute room utilization, since a 3-room
       meeting consumes three rooms' worth of minutes:
        - used = sum of every record's duration in minutes
        - possible = total_resources * hours_per_resource_per_day * 60
        - utilization = min(100, round(100 * used / possible)), 0 if possible == 0
    """
    uniques: Dict[GroupingKey, RawMeeting] = {}
    for meeting in raw_meetings:
        uniques.setdefault(grouping_key(meeting), meeting)

    unique_list: List[RawMeeting] = list(uniques.values())

    active = 0
    total_attendees = 0
    total_duration = 0.0
    for meeting in unique_list:
        if classify_status(meeting.start_time, meeting.end_time, now) == MeetingStatus.LIVE:
            active += 1
        total_attendees += meeting.attendee_count
        total_duration += meeting.duration_minutes

    avg_duration = _round_half_up(total_duration / len(unique_list)) if unique_list else 0

    used_minutes = sum(m.duration_minutes for m in raw_meetings)
    possible_minutes = total_resources * hours_per_resource_per_day * 60
    if possible_minutes > 0:
        utilization = min(100, _round_half_up(used_minutes / possible_minutes * 100))
    else:
        utilization = 0

    return StatsSnapshot(
        total_meetings=len(unique_list),
        active_meetings=active,
        total_attendees=total_attendees,
        avg_duration_minutes=int(avg_duration),
        room_utilization_percent=int(utilization),
    )
