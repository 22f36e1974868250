# tests/conftest.py
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from roomboard.core.errors import NetworkError
from roomboard.main import create_app
from roomboard.schemas.booking import BookingConfirmation
from roomboard.schemas.meeting import RawMeeting
from roomboard.services.booking_client import get_booking_client


def make_meeting(
    subject: str = "Standup",
    start: Optional[datetime] = None,
    minutes: int = 60,
    location: str = "Room A",
    organizer_email: str = "owner@example.com",
    ical_uid: Optional[str] = "abc",
    attendees: int = 3,
) -> RawMeeting:
    start = start or datetime(2030, 1, 10, 10, 0, tzinfo=timezone.utc)
    return RawMeeting(
        subject=subject,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        organizer="Owner",
        organizer_email=organizer_email,
        location=location,
        attendee_count=attendees,
        ical_uid=ical_uid,
    )


class FakeBookingClient:
    """
    In-memory stand-in for BookingApiClient used by API tests.
    """

    def __init__(self) -> None:
        self.meetings: List[RawMeeting] = []
        self.submitted: List[Dict[str, Any]] = []
        self.deleted: List[tuple[str, str]] = []
        self.updated: List[tuple[str, Dict[str, Any]]] = []
        self.query_calls: List[tuple[tuple[str, ...], date]] = []
        self.fail_with: Optional[NetworkError] = None

    async def query_meetings(self, resource_ids: Sequence[str], day: date) -> List[RawMeeting]:
        self.query_calls.append((tuple(resource_ids), day))
        return list(self.meetings)

    async def submit_booking(self, body: Dict[str, Any]) -> BookingConfirmation:
        if self.fail_with is not None:
            raise self.fail_with
        self.submitted.append(body)
        return BookingConfirmation(message="Booking confirmed.", payload={"id": "evt-1"})

    async def update_meeting(self, ical_uid: str, body: Dict[str, Any]) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.updated.append((ical_uid, body))

    async def delete_meeting(self, ical_uid: str, organizer_email: str) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.deleted.append((ical_uid, organizer_email))
        self.meetings = [m for m in self.meetings if m.ical_uid != ical_uid]


@pytest.fixture(scope="session")
def app():
    return create_app()


@pytest.fixture(scope="session")
def client(app) -> TestClient:
    """
    Shared TestClient fixture for all API tests.

    Uses the application factory so configuration stays test-friendly.
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def fake_backend(app) -> FakeBookingClient:
    """
    Route every bookings API call of the app to an in-memory fake.
    """
    fake = FakeBookingClient()
    app.dependency_overrides[get_booking_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_booking_client, None)
