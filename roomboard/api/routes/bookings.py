# roomboard/api/routes/bookings.py
from http import HTTPStatus

from fastapi import APIRouter, Depends

from roomboard.core.config import get_settings
from roomboard.schemas.booking import BookingConfirmation, BookingDraft
from roomboard.services.booking_client import BookingApiClient, get_booking_client
from roomboard.services.calendar_utils import resolve_timezone
from roomboard.services.meeting_actions import submit_booking

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post(
    "",
    response_model=BookingConfirmation,
    status_code=HTTPStatus.CREATED,
    summary="Book a room",
    description=(
        "Validates the booking (title, date, organizer, room, organisation "
        "domain, recurrence present for recurring bookings) and forwards it "
        "to the bookings API. Recurring bookings carry the canonical pattern "
        "from `/recurrence/preview` plus its RRULE."
    ),
    responses={
        400: {"description": "The booking is incomplete or invalid."},
        502: {"description": "The bookings API rejected the booking; detail holds its message."},
    },
)
async def create_booking(
    draft: BookingDraft,
    client: BookingApiClient = Depends(get_booking_client),
) -> BookingConfirmation:
    settings = get_settings()
    return await submit_booking(
        client,
        draft,
        org_domain=settings.ORG_DOMAIN,
        tz=resolve_timezone(settings.LOCAL_TIMEZONE),
    )
