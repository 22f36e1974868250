# roomboard/services/dashboard_session.py
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Sequence

from roomboard.core.config import Settings
from roomboard.schemas.booking import BookingConfirmation, BookingDraft
from roomboard.schemas.meeting import EventGroup, MeetingEdit, MeetingStatus, RawMeeting
from roomboard.services.calendar_utils import resolve_timezone
from roomboard.services.fetch_controller import Clock, FetchLifecycleController
from roomboard.services.meeting_actions import delete_meeting, submit_booking, update_meeting
from roomboard.services.reconciliation import group_status, organizer_identity

logger = logging.getLogger(__name__)


class DashboardBackend(Protocol):
    def query_meetings(self, resource_ids: Sequence[str], day: date) -> Awaitable[List[RawMeeting]]: ...

    async def submit_booking(self, body: Dict[str, Any]) -> BookingConfirmation: ...

    async def update_meeting(self, ical_uid: str, body: Dict[str, Any]) -> None: ...

    async def delete_meeting(self, ical_uid: str, organizer_email: str) -> None: ...


class DashboardSession:
    """
    One user's dashboard: a main grid view that lives as long as the session
    and a side panel view that exists only while the panel is open.

    Each view gets its own FetchLifecycleController; they never share
    timers or tokens.
    """

    def __init__(
        self,
        backend: DashboardBackend,
        settings: Settings,
        *,
        today: Optional[date] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._backend = backend
        self._settings = settings
        self._clock = clock
        self._today = today or date.today()
        self._visible = True

        self.grid = self._make_controller("grid", include_completed=True, compute_stats=True)
        self.panel: Optional[FetchLifecycleController] = None

    def _make_controller(self, name: str, *, include_completed: bool, compute_stats: bool) -> FetchLifecycleController:
        return FetchLifecycleController(
            name,
            self._backend.query_meetings,
            self._settings.resource_ids,
            filter_date=self._today,
            hours_per_resource_per_day=self._settings.HOURS_PER_RESOURCE_PER_DAY,
            debounce_seconds=self._settings.FILTER_DEBOUNCE_SECONDS,
            include_completed=include_completed,
            compute_stats=compute_stats,
            clock=self._clock,
        )

    def _views(self) -> List[FetchLifecycleController]:
        return [c for c in (self.grid, self.panel) if c is not None]

    def start(self) -> None:
        """
        Fetch the grid immediately and keep polling it.
        """
        self.grid.open(poll_interval_seconds=self._settings.POLL_INTERVAL_SECONDS)

    def set_grid_date(self, day: date) -> None:
        self.grid.on_filter_change(day)

    # ------------------------------------------------------------------
    # Side panel
    # ------------------------------------------------------------------

    def open_panel(self, day: Optional[date] = None) -> FetchLifecycleController:
        if self.panel is None:
            self.panel = self._make_controller("panel", include_completed=False, compute_stats=False)
            if day is not None:
                self.panel.session.filter_date = day
            if not self._visible:
                self.panel.on_visibility_change(False)
            self.panel.open(
                initial_delay=self._settings.PANEL_OPEN_DELAY_SECONDS,
                poll_interval_seconds=self._settings.POLL_INTERVAL_SECONDS,
            )
        return self.panel

    def set_panel_date(self, day: date) -> None:
        if self.panel is not None:
            self.panel.on_filter_change(day)

    def close_panel(self) -> None:
        if self.panel is not None:
            self.panel.teardown()
            self.panel = None

    def deletable_panel_groups(self, caller_email: str) -> List[EventGroup]:
        """
        Panel meetings the caller may delete: all for admins, otherwise the
        caller's own upcoming meetings.
        """
        if self.panel is None:
            return []
        caller = (caller_email or "").strip().lower()
        if not caller:
            return []
        groups = list(self.panel.state.groups)
        if caller in {e.strip().lower() for e in self._settings.ADMIN_EMAILS}:
            return groups
        now = self._clock() if self._clock else None
        return [
            g
            for g in groups
            if organizer_identity(g.meeting) == caller
            and group_status(g, now) == MeetingStatus.UPCOMING
        ]

    # ------------------------------------------------------------------
    # Visibility / lifecycle
    # ------------------------------------------------------------------

    def on_visibility_change(self, visible: bool) -> None:
        self._visible = visible
        for view in self._views():
            view.on_visibility_change(visible)

    async def refresh_all(self) -> None:
        await asyncio.gather(*(view.refresh() for view in self._views()))

    def close(self) -> None:
        self.close_panel()
        self.grid.teardown()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_booking(self, draft: BookingDraft) -> BookingConfirmation:
        """
        Submit a booking, then refresh the open views.
        """
        confirmation = await submit_booking(
            self._backend,
            draft,
            org_domain=self._settings.ORG_DOMAIN,
            tz=resolve_timezone(self._settings.LOCAL_TIMEZONE),
        )
        await self.refresh_all()
        return confirmation

    async def delete(self, group: EventGroup, caller_email: str, now: Optional[datetime] = None) -> None:
        """
        Delete a meeting; local views drop it only after the server confirmed.
        """
        if now is None and self._clock is not None:
            now = self._clock()
        await delete_meeting(
            self._backend,
            group,
            caller_email,
            admin_emails=self._settings.ADMIN_EMAILS,
            org_domain=self._settings.ORG_DOMAIN,
            now=now,
        )
        for view in self._views():
            view.remove_group(group)
        await self.refresh_all()

    async def update(
        self,
        group: EventGroup,
        edit: MeetingEdit,
        caller_email: str,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Edit a meeting's subject and times, then refresh the open views.
        """
        if now is None and self._clock is not None:
            now = self._clock()
        await update_meeting(
            self._backend,
            group,
            edit,
            caller_email,
            admin_emails=self._settings.ADMIN_EMAILS,
            org_domain=self._settings.ORG_DOMAIN,
            tz=resolve_timezone(self._settings.LOCAL_TIMEZONE),
            now=now,
        )
        await self.refresh_all()
