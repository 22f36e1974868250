# roomboard/services/fetch_controller.py
"""
Fetch lifecycle for one dashboard view.

Each view (main grid, side panel) owns one `FetchLifecycleController`, which
owns one `FetchSession`: the in-flight flag, the live cancellation token and
every timer/task the view started. Nothing is shared between views.

Ordering rule: a result is applied only when its token is still the
session's current token (last request wins), whatever order responses arrive
in.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Awaitable, Callable, Coroutine, List, Optional, Sequence, Set

from roomboard.core.errors import CancellationNotice, NetworkError
from roomboard.schemas.meeting import EventGroup, RawMeeting, ViewState
from roomboard.services.dashboard_view import active_only, sort_by_status
from roomboard.services.reconciliation import grouping_key, reconcile
from roomboard.services.stats import compute_stats

logger = logging.getLogger(__name__)

QueryMeetings = Callable[[Sequence[str], date], Awaitable[List[RawMeeting]]]
Listener = Callable[[ViewState], None]
Clock = Callable[[], datetime]

_token_ids = itertools.count(1)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class CancellationToken:
    """
    Identifies one request. Compared by identity; cancelling is cooperative.
    """

    __slots__ = ("request_id", "_cancelled")

    def __init__(self) -> None:
        self.request_id = next(_token_ids)
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "live"
        return f"<CancellationToken #{self.request_id} {state}>"


@dataclass
class FetchSession:
    """
    Per-view fetch state. Owned by exactly one controller.
    """

    filter_date: date
    in_flight: bool = False
    token: Optional[CancellationToken] = None
    poll_interval: Optional[float] = None
    poll_task: Optional[asyncio.Task] = None
    debounce_handle: Optional[asyncio.TimerHandle] = None
    open_handle: Optional[asyncio.TimerHandle] = None
    tasks: Set[asyncio.Task] = field(default_factory=set)
    visible: bool = True
    torn_down: bool = False

    def issue_token(self) -> CancellationToken:
        """
        Cancel the outstanding token (if any) and make a fresh one current.
        """
        if self.token is not None:
            self.token.cancel()
        self.token = CancellationToken()
        return self.token

    def is_current(self, token: CancellationToken) -> bool:
        return not self.torn_down and token is self.token and not token.cancelled

    def cancel_timers(self) -> None:
        for handle in (self.debounce_handle, self.open_handle):
            if handle is not None:
                handle.cancel()
        self.debounce_handle = None
        self.open_handle = None

    def cancel_polling(self) -> None:
        if self.poll_task is not None and not self.poll_task.done():
            self.poll_task.cancel()
        self.poll_task = None

    def stop(self) -> None:
        """
        Cancel pending timers and polling; in-flight requests keep running.
        """
        self.cancel_timers()
        self.cancel_polling()
        self.poll_interval = None

    def teardown(self) -> None:
        """
        Synchronously release every timer, task and the live token.
        """
        self.torn_down = True
        self.stop()
        for task in list(self.tasks):
            if not task.done():
                task.cancel()
        self.tasks.clear()
        if self.token is not None:
            self.token.cancel()
        self.token = None
        self.in_flight = False


class FetchLifecycleController:
    """
    Issues, supersedes and retires meeting fetches for one view.

    Behaviour
    ---------
    - `refresh()` while a fetch is in flight is a no-op; poll ticks use it.
    - `on_filter_change()` debounces, then supersedes any outstanding fetch
      with a fresh one for the new date.
    - Polling pauses while the view is hidden and resumes (with an immediate
      refresh) once it is visible again.
    - Read failures keep the previously published groups and stats and only
      set `state.error`. Unexpected query errors are logged and reported with
      a generic message.
    - After `teardown()` nothing is published and every call is a no-op.
    """

    def __init__(
        self,
        name: str,
        query: QueryMeetings,
        resource_ids: Sequence[str],
        *,
        filter_date: Optional[date] = None,
        hours_per_resource_per_day: float = 8,
        debounce_seconds: float = 0.25,
        include_completed: bool = True,
        compute_stats: bool = True,
        clock: Optional[Clock] = None,
    ) -> None:
        self.name = name
        self._query = query
        self._resource_ids = list(resource_ids)
        self._hours_per_resource = hours_per_resource_per_day
        self._debounce_seconds = debounce_seconds
        self._include_completed = include_completed
        self._compute_stats = compute_stats
        self._clock = clock or _utcnow

        self.session = FetchSession(filter_date=filter_date or date.today())
        self._raw: List[RawMeeting] = []
        self._state = ViewState(name=name)
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    @property
    def state(self) -> ViewState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback for every published state; returns an unsubscribe.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, **changes: object) -> None:
        if self.session.torn_down:
            return
        self._state = self._state.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("View listener failed for %s view", self.name)

    def _derive_groups(self, meetings: List[RawMeeting], now: datetime) -> tuple[EventGroup, ...]:
        groups = reconcile(meetings)
        if not self._include_completed:
            groups = active_only(groups, now)
        return tuple(sort_by_status(groups, now))

    def _apply_result(
        self,
        token: CancellationToken,
        day: date,
        meetings: List[RawMeeting],
    ) -> None:
        if not self.session.is_current(token):
            raise CancellationNotice(f"{self.name}: result of {token!r} superseded")

        now = self._clock()
        self._raw = list(meetings)
        stats = None
        if self._compute_stats:
            stats = compute_stats(
                self._raw,
                total_resources=len(self._resource_ids),
                hours_per_resource_per_day=self._hours_per_resource,
                now=now,
            )
        self._publish(
            filter_date=day,
            groups=self._derive_groups(self._raw, now),
            stats=stats,
            loading=False,
            error=None,
            last_updated=now,
        )

    def _apply_error(self, token: CancellationToken, exc: NetworkError) -> None:
        if not self.session.is_current(token):
            raise CancellationNotice(f"{self.name}: error of {token!r} superseded")
        logger.warning("[%s] fetch error: %s", self.name, exc)
        self._publish(loading=False, error=exc.message)

    def remove_group(self, group: EventGroup) -> None:
        """
        Drop a group locally (after the server confirmed its deletion).
        """
        if self.session.torn_down:
            return
        key = grouping_key(group.meeting)
        self._raw = [m for m in self._raw if grouping_key(m) != key]
        changes: dict = {
            "groups": tuple(g for g in self._state.groups if grouping_key(g.meeting) != key),
        }
        if self._compute_stats:
            changes["stats"] = compute_stats(
                self._raw,
                total_resources=len(self._resource_ids),
                hours_per_resource_per_day=self._hours_per_resource,
                now=self._clock(),
            )
        self._publish(**changes)

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def refresh(self) -> None:
        """
        Fetch now, unless a fetch is already in flight (then do nothing).
        """
        session = self.session
        if session.torn_down:
            return
        if session.in_flight:
            logger.debug("[%s] refresh skipped: fetch already in flight", self.name)
            return
        await self._fetch()

    async def _supersede(self) -> None:
        if self.session.torn_down:
            return
        # The outstanding request (if any) loses its token inside _fetch().
        self.session.in_flight = False
        await self._fetch()

    async def _fetch(self) -> None:
        session = self.session
        token = session.issue_token()
        session.in_flight = True
        day = session.filter_date
        self._publish(loading=True)

        try:
            try:
                meetings = await self._query(self._resource_ids, day)
            except NetworkError as exc:
                self._apply_error(token, exc)
                return
            except Exception:
                logger.exception("[%s] fetch failed", self.name)
                self._apply_error(token, NetworkError("Could not load meetings."))
                return
            self._apply_result(token, day, meetings)
        except CancellationNotice as notice:
            logger.debug("%s", notice)
        finally:
            if session.token is token:
                session.in_flight = False

    def _spawn(self, coro: Coroutine) -> Optional[asyncio.Task]:
        if self.session.torn_down:
            coro.close()
            return None
        task = asyncio.get_running_loop().create_task(coro)
        self.session.tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self.session.tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("[%s] background fetch failed", self.name, exc_info=exc)

    # ------------------------------------------------------------------
    # Filter changes (debounced)
    # ------------------------------------------------------------------

    def on_filter_change(self, new_date: date) -> None:
        """
        Record a new date filter and re-fetch once it has been stable for the
        debounce delay. Must be called from within the running event loop.
        """
        session = self.session
        if session.torn_down:
            return
        session.filter_date = new_date
        if session.debounce_handle is not None:
            session.debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        session.debounce_handle = loop.call_later(self._debounce_seconds, self._on_debounce_elapsed)

    def _on_debounce_elapsed(self) -> None:
        self.session.debounce_handle = None
        self._spawn(self._supersede())

    # ------------------------------------------------------------------
    # Open / polling / visibility
    # ------------------------------------------------------------------

    def open(self, initial_delay: float = 0.0, poll_interval_seconds: Optional[float] = None) -> None:
        """
        Start the view: first fetch after `initial_delay`, then poll.
        """
        session = self.session
        if session.torn_down:
            return
        if initial_delay > 0:
            if session.open_handle is not None:
                session.open_handle.cancel()
            loop = asyncio.get_running_loop()
            session.open_handle = loop.call_later(initial_delay, self._on_open_elapsed)
        else:
            self._spawn(self.refresh())
        if poll_interval_seconds:
            self.start_polling(poll_interval_seconds)

    def _on_open_elapsed(self) -> None:
        self.session.open_handle = None
        self._spawn(self.refresh())

    def start_polling(self, interval_seconds: float) -> None:
        """
        Refresh every `interval_seconds` while the view is visible.
        """
        session = self.session
        if session.torn_down:
            return
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        if session.poll_interval != interval_seconds:
            session.cancel_polling()
        session.poll_interval = interval_seconds
        if session.visible and session.poll_task is None:
            session.poll_task = asyncio.get_running_loop().create_task(
                self._poll_loop(interval_seconds)
            )
            logger.debug("[%s] polling every %ss", self.name, interval_seconds)

    def stop_polling(self) -> None:
        self.session.cancel_polling()
        self.session.poll_interval = None

    def stop(self) -> None:
        """
        Pause the view without closing it: pending debounce/open timers and
        polling are dropped, `open()` starts it again.
        """
        if not self.session.torn_down:
            self.session.stop()

    async def _poll_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self._spawn(self.refresh())

    def on_visibility_change(self, visible: bool) -> None:
        """
        Suspend polling while hidden; resume with an immediate refresh.
        """
        session = self.session
        if session.torn_down or session.visible == visible:
            return
        session.visible = visible
        if not visible:
            session.cancel_polling()
            return
        if session.poll_interval is not None:
            self.start_polling(session.poll_interval)
            self._spawn(self.refresh())

    def teardown(self) -> None:
        """
        Close the view: cancel timers, tasks and the live token synchronously.
        """
        if self.session.torn_down:
            return
        self.session.teardown()
        self._listeners.clear()
        logger.debug("[%s] torn down", self.name)
