# roomboard/api/routes/meetings.py
from datetime import date as date_type, datetime, timezone
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from roomboard.api.dependencies.caller_identity import get_caller_email
from roomboard.core.config import get_settings
from roomboard.core.errors import ValidationError
from roomboard.schemas.meeting import DayMeetings, EventGroup, MeetingEdit
from roomboard.services.booking_client import BookingApiClient, get_booking_client
from roomboard.services.calendar_utils import parse_ymd, resolve_timezone
from roomboard.services.dashboard_view import (
    page_count,
    paginate,
    sort_by_status,
    split_by_floor,
    to_view,
)
from roomboard.services.meeting_actions import delete_meeting, update_meeting
from roomboard.services.reconciliation import reconcile
from roomboard.services.stats import compute_stats

router = APIRouter(prefix="/meetings", tags=["Meetings"])


class DeletedMeeting(BaseModel):
    ical_uid: str = Field(..., description="iCalUId of the deleted meeting.")
    rooms: list[str] = Field(..., description="Rooms released by the deletion.")


class UpdatedMeeting(BaseModel):
    ical_uid: str = Field(..., description="iCalUId of the edited meeting.")
    subject: str
    start_time: str = Field(..., description="New UTC start as sent to the bookings API.")
    end_time: str = Field(..., description="New UTC end as sent to the bookings API.")
    rooms: list[str] = Field(..., description="Rooms the change applies to.")


def _resolve_day(value: str | None) -> date_type:
    settings = get_settings()
    if not value:
        return datetime.now(tz=resolve_timezone(settings.LOCAL_TIMEZONE)).date()
    try:
        return parse_ymd(value)
    except ValidationError as exc:
        raise HTTPException(status_code=HTTPStatus.UNPROCESSABLE_ENTITY, detail=str(exc)) from exc


async def _find_group(client: BookingApiClient, ical_uid: str, target: date_type) -> EventGroup:
    settings = get_settings()
    raw = await client.query_meetings(settings.resource_ids, target)
    group = next((g for g in reconcile(raw) if g.meeting.ical_uid == ical_uid), None)
    if group is None:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND,
            detail=f"No meeting with iCalUId={ical_uid} on {target.isoformat()}",
        )
    return group


@router.get(
    "",
    response_model=DayMeetings,
    summary="Reconciled meetings for one day",
    description=(
        "Queries every configured room calendar for the given local date, "
        "merges per-room records into one entry per logical meeting "
        "(multi-room aware) and returns them live-first together with the "
        "day's statistics and a paged per-floor breakdown."
    ),
)
async def list_meetings(
    day: str | None = Query(
        default=None,
        alias="date",
        description="Local date (YYYY-MM-DD). Defaults to today in the configured timezone.",
        examples=["2025-11-14"],
    ),
    page: int = Query(default=1, ge=1, description="Page of the per-floor columns."),
    client: BookingApiClient = Depends(get_booking_client),
) -> DayMeetings:
    settings = get_settings()
    target = _resolve_day(day)
    now = datetime.now(tz=timezone.utc)

    raw = await client.query_meetings(settings.resource_ids, target)
    groups = sort_by_status(reconcile(raw), now)
    stats = compute_stats(
        raw,
        total_resources=len(settings.ROOM_RESOURCES),
        hours_per_resource_per_day=settings.HOURS_PER_RESOURCE_PER_DAY,
        now=now,
    )

    columns = split_by_floor(groups, settings.floors)
    total_pages = page_count(columns, settings.PAGE_SIZE)

    return DayMeetings(
        day=target,
        page=page,
        total_pages=total_pages,
        stats=stats,
        meetings=[to_view(g, now) for g in groups],
        floors={
            floor: [to_view(g, now) for g in paginate(items, page, settings.PAGE_SIZE)]
            for floor, items in columns.items()
        },
    )


@router.delete(
    "/{ical_uid}",
    response_model=DeletedMeeting,
    summary="Cancel a meeting in every room it occupies",
    responses={
        401: {"description": "Caller identity missing."},
        403: {"description": "Caller may not delete this meeting."},
        404: {"description": "No meeting with this iCalUId on the given date."},
        502: {"description": "The bookings API rejected or failed the deletion."},
    },
)
async def cancel_meeting(
    ical_uid: str,
    day: str | None = Query(
        default=None,
        alias="date",
        description="Local date the meeting takes place on (YYYY-MM-DD).",
    ),
    caller_email: str = Depends(get_caller_email),
    client: BookingApiClient = Depends(get_booking_client),
) -> DeletedMeeting:
    """
    Look the meeting up on its day (so organizer and status are the
    server's current view), check the caller may delete it, then delete.
    """
    settings = get_settings()
    group = await _find_group(client, ical_uid, _resolve_day(day))

    await delete_meeting(
        client,
        group,
        caller_email,
        admin_emails=settings.ADMIN_EMAILS,
        org_domain=settings.ORG_DOMAIN,
    )
    return DeletedMeeting(ical_uid=ical_uid, rooms=list(group.rooms))


@router.patch(
    "/{ical_uid}",
    response_model=UpdatedMeeting,
    summary="Edit a meeting's subject and time window",
    responses={
        400: {"description": "Subject too short or end not after start."},
        401: {"description": "Caller identity missing."},
        403: {"description": "Caller may not edit this meeting."},
        404: {"description": "No meeting with this iCalUId on the given date."},
        502: {"description": "The bookings API rejected or failed the edit."},
    },
)
async def edit_meeting(
    ical_uid: str,
    edit: MeetingEdit,
    day: str | None = Query(
        default=None,
        alias="date",
        description="Local date the meeting currently takes place on (YYYY-MM-DD).",
    ),
    caller_email: str = Depends(get_caller_email),
    client: BookingApiClient = Depends(get_booking_client),
) -> UpdatedMeeting:
    settings = get_settings()
    group = await _find_group(client, ical_uid, _resolve_day(day))

    body = await update_meeting(
        client,
        group,
        edit,
        caller_email,
        admin_emails=settings.ADMIN_EMAILS,
        org_domain=settings.ORG_DOMAIN,
        tz=resolve_timezone(settings.LOCAL_TIMEZONE),
    )
    return UpdatedMeeting(
        ical_uid=ical_uid,
        subject=body["subject"],
        start_time=body["StartTime"],
        end_time=body["EndTime"],
        rooms=list(group.rooms),
    )
