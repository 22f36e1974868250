# tests/test_dashboard_session.py
import asyncio
from datetime import date, datetime, timedelta, timezone

import pytest
from conftest import FakeBookingClient, make_meeting

from roomboard.core.config import Settings
from roomboard.core.errors import DeletionNotAllowed, EditNotAllowed, NetworkError
from roomboard.schemas.booking import BookingDraft
from roomboard.schemas.meeting import MeetingEdit
from roomboard.services.dashboard_session import DashboardSession

DAY = date(2030, 1, 10)
NOW = datetime(2030, 1, 10, 9, 0, tzinfo=timezone.utc)


def _settings(**overrides) -> Settings:
    values = dict(
        POLL_INTERVAL_SECONDS=60.0,
        FILTER_DEBOUNCE_SECONDS=0.01,
        PANEL_OPEN_DELAY_SECONDS=0.01,
        ADMIN_EMAILS=["admin@example.com"],
        LOCAL_TIMEZONE="UTC",
    )
    values.update(overrides)
    return Settings(**values)


def _backend() -> FakeBookingClient:
    backend = FakeBookingClient()
    backend.meetings = [
        make_meeting(ical_uid="past", start=NOW - timedelta(hours=3), location="Room A"),
        make_meeting(ical_uid="mine", start=NOW + timedelta(hours=1), location="Room A"),
        make_meeting(ical_uid="mine", start=NOW + timedelta(hours=1), location="Room B"),
        make_meeting(
            ical_uid="theirs",
            start=NOW + timedelta(hours=2),
            location="Room C",
            organizer_email="other@example.com",
        ),
    ]
    return backend


def _session(backend, **settings_overrides) -> DashboardSession:
    return DashboardSession(
        backend,
        _settings(**settings_overrides),
        today=DAY,
        clock=lambda: NOW,
    )


@pytest.mark.asyncio
async def test_grid_and_panel_are_independent_views():
    backend = _backend()
    session = _session(backend)

    session.start()
    await asyncio.sleep(0.01)
    panel = session.open_panel()
    await asyncio.sleep(0.05)

    grid_ids = [g.meeting.ical_uid for g in session.grid.state.groups]
    panel_ids = [g.meeting.ical_uid for g in panel.state.groups]
    assert grid_ids == ["mine", "theirs", "past"]
    assert panel_ids == ["mine", "theirs"]
    assert session.grid.state.stats.total_meetings == 3
    assert panel.state.stats is None
    assert session.grid.session is not panel.session

    session.close_panel()
    assert session.panel is None
    assert panel.session.torn_down is True
    assert session.grid.session.torn_down is False

    session.close()
    assert session.grid.session.torn_down is True


@pytest.mark.asyncio
async def test_panel_opened_for_a_specific_day():
    backend = _backend()
    session = _session(backend)

    session.open_panel(DAY + timedelta(days=1))
    await asyncio.sleep(0.05)

    assert backend.query_calls[-1][1] == DAY + timedelta(days=1)
    session.close()


@pytest.mark.asyncio
async def test_grid_date_change_is_debounced():
    backend = _backend()
    session = _session(backend)

    session.set_grid_date(DAY + timedelta(days=1))
    session.set_grid_date(DAY + timedelta(days=2))
    await asyncio.sleep(0.05)

    assert [call[1] for call in backend.query_calls] == [DAY + timedelta(days=2)]
    session.close()


@pytest.mark.asyncio
async def test_delete_removes_meeting_from_every_open_view():
    backend = _backend()
    session = _session(backend)
    await session.grid.refresh()
    panel = session.open_panel()
    await panel.refresh()

    target = next(g for g in session.grid.state.groups if g.meeting.ical_uid == "mine")
    await session.delete(target, "owner@example.com")

    assert backend.deleted == [("mine", "owner@example.com")]
    assert "mine" not in [g.meeting.ical_uid for g in session.grid.state.groups]
    assert "mine" not in [g.meeting.ical_uid for g in panel.state.groups]
    session.close()


@pytest.mark.asyncio
async def test_failed_delete_keeps_meeting_visible():
    backend = _backend()
    backend.fail_with = NetworkError("Delete failed upstream")
    session = _session(backend)
    await session.grid.refresh()
    target = next(g for g in session.grid.state.groups if g.meeting.ical_uid == "mine")

    with pytest.raises(NetworkError):
        await session.delete(target, "owner@example.com")

    assert "mine" in [g.meeting.ical_uid for g in session.grid.state.groups]
    session.close()


@pytest.mark.asyncio
async def test_delete_by_non_organizer_is_refused():
    backend = _backend()
    session = _session(backend)
    await session.grid.refresh()
    target = next(g for g in session.grid.state.groups if g.meeting.ical_uid == "theirs")

    with pytest.raises(DeletionNotAllowed):
        await session.delete(target, "owner@example.com")

    assert backend.deleted == []
    session.close()


@pytest.mark.asyncio
async def test_deletable_panel_groups_depend_on_caller():
    backend = _backend()
    session = _session(backend)
    panel = session.open_panel()
    await panel.refresh()

    assert [g.meeting.ical_uid for g in session.deletable_panel_groups("owner@example.com")] == ["mine"]
    assert [g.meeting.ical_uid for g in session.deletable_panel_groups("admin@example.com")] == [
        "mine",
        "theirs",
    ]
    assert session.deletable_panel_groups("") == []
    session.close()


@pytest.mark.asyncio
async def test_create_booking_refreshes_views():
    backend = _backend()
    session = _session(backend)
    draft = BookingDraft(
        title="Retro",
        start_date=DAY,
        user_email="owner@example.com",
        room_email="conference@example.com",
    )

    confirmation = await session.create_booking(draft)

    assert confirmation.message == "Booking confirmed."
    assert backend.submitted[0]["Title"] == "Retro"
    # availability check for the room, then the grid refresh
    assert backend.query_calls[0] == (("conference@example.com",), DAY)
    assert len(backend.query_calls) == 2
    session.close()


@pytest.mark.asyncio
async def test_update_sends_edit_and_refreshes_every_view():
    backend = _backend()
    session = _session(backend)
    await session.grid.refresh()
    panel = session.open_panel()
    await panel.refresh()
    calls_before = len(backend.query_calls)

    target = next(g for g in session.grid.state.groups if g.meeting.ical_uid == "mine")
    edit = MeetingEdit(
        subject="Planning",
        start_time=NOW + timedelta(hours=4),
        end_time=NOW + timedelta(hours=5),
    )
    await session.update(target, edit, "owner@example.com")

    assert backend.updated == [
        (
            "mine",
            {
                "subject": "Planning",
                "StartTime": "2030-01-10T13:00:00Z",
                "EndTime": "2030-01-10T14:00:00Z",
                "organizerEmail": "owner@example.com",
            },
        )
    ]
    assert len(backend.query_calls) >= calls_before + 2
    session.close()


@pytest.mark.asyncio
async def test_update_by_non_organizer_is_refused():
    backend = _backend()
    session = _session(backend)
    await session.grid.refresh()
    target = next(g for g in session.grid.state.groups if g.meeting.ical_uid == "theirs")
    edit = MeetingEdit(subject="Hijack", start_time=NOW, end_time=NOW + timedelta(hours=1))

    with pytest.raises(EditNotAllowed):
        await session.update(target, edit, "owner@example.com")

    assert backend.updated == []
    session.close()


@pytest.mark.asyncio
async def test_panel_opened_while_hidden_does_not_poll():
    backend = _backend()
    session = _session(backend, POLL_INTERVAL_SECONDS=0.01)
    session.on_visibility_change(False)

    panel = session.open_panel()
    await asyncio.sleep(0.05)

    assert panel.session.visible is False
    assert panel.session.poll_task is None
    session.close()
