# roomboard/services/booking_client.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence
from urllib.parse import quote

import httpx

from roomboard.core.config import get_settings
from roomboard.core.errors import NetworkError
from roomboard.schemas.booking import BookingConfirmation
from roomboard.schemas.meeting import RawMeeting
from roomboard.services.calendar_utils import format_ymd
from roomboard.services.meeting_normalizer import MeetingNormalizer

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]


def _error_message(resp: httpx.Response) -> str:
    """
    Prefer the server's own `message` field, then the raw body.
    """
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    text = (resp.text or "").strip()
    return text or f"HTTP {resp.status_code}"


class BookingApiClient:
    """
    Thin client for the remote bookings API.

    Responsibilities
    ----------------
    - Query meetings for a set of room calendars on a given date.
    - Submit new bookings.
    - Edit the subject and time window of a meeting by its iCalUId.
    - Delete a meeting by its iCalUId on behalf of its organizer.

    Notes
    -----
    - Authentication is external: a bearer token is obtained from the
      injected `token_provider` (or a static token) on every call.
    - Every failure (transport error, timeout, non-2xx) surfaces as
      `NetworkError`, carrying the server-provided message when present.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        token_provider: TokenProvider | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")

        self._base_url = base_url.rstrip("/")
        self._token = token
        self._token_provider = token_provider
        self._timeout_seconds = timeout_seconds

    async def _bearer(self) -> str | None:
        if self._token_provider is not None:
            return await self._token_provider()
        return self._token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Any] = None,
        json: Any = None,
    ) -> httpx.Response:
        """
        Issue an authenticated request and translate failures to NetworkError.

        Parameters
        ----------
        method:
            HTTP method (GET, POST, PATCH, DELETE).
        path:
            Path relative to the configured base URL.
        params:
            Optional query parameters (a list of pairs allows repeated keys).
        json:
            Optional JSON body.
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        headers = {"Accept": "application/json"}
        token = await self._bearer()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                resp = await client.request(
                    method=method.upper(),
                    url=url,
                    headers=headers,
                    params=params,
                    json=json,
                )
        except httpx.TimeoutException as exc:
            logger.warning("Bookings API %s %s timed out", method.upper(), url)
            raise NetworkError(f"Request to bookings API timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("Bookings API %s %s failed: %s", method.upper(), url, exc)
            raise NetworkError(f"Could not reach bookings API: {exc}") from exc

        if resp.status_code // 100 != 2:
            message = _error_message(resp)
            logger.warning(
                "Bookings API %s %s returned %s: %s",
                method.upper(),
                url,
                resp.status_code,
                message,
            )
            raise NetworkError(message, status_code=resp.status_code)

        return resp

    async def query_meetings(self, resource_ids: Sequence[str], day: date) -> list[RawMeeting]:
        """
        Fetch every meeting on `day` from the given room calendars.
        """
        params = [("userEmails", rid) for rid in resource_ids]
        params.append(("date", format_ymd(day)))

        resp = await self._request("GET", "/api/Meetings", params=params)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise NetworkError("Bookings API returned invalid JSON for meetings") from exc

        meetings = MeetingNormalizer.normalize_many(payload)
        logger.debug("Fetched %d meetings for %s", len(meetings), format_ymd(day))
        return meetings

    async def submit_booking(self, body: Dict[str, Any]) -> BookingConfirmation:
        """
        POST a booking request body; returns the confirmation on success.
        """
        resp = await self._request("POST", "/api/Bookings", json=body)
        try:
            payload = resp.json()
        except ValueError:
            payload = None

        message = "Booking confirmed."
        if isinstance(payload, dict) and payload.get("message"):
            message = str(payload["message"])
        return BookingConfirmation(
            message=message,
            payload=payload if isinstance(payload, dict) else None,
        )

    async def update_meeting(self, ical_uid: str, body: Dict[str, Any]) -> None:
        """
        PATCH subject and times of a meeting (in every room) by iCalUId.
        """
        path = f"/api/Meetings/by-ical/{quote(ical_uid, safe='')}"
        await self._request("PATCH", path, json=body)

    async def delete_meeting(self, ical_uid: str, organizer_email: str) -> None:
        """
        Delete a meeting (in every room it occupies) by iCalUId.
        """
        path = f"/api/Meetings/by-ical/{quote(ical_uid, safe='')}"
        await self._request("DELETE", path, params={"organizerEmail": organizer_email})


_booking_client_instance: Optional[BookingApiClient] = None


def get_booking_client() -> BookingApiClient:
    """
    Lazily construct a BookingApiClient using application settings.

    Used as a FastAPI dependency; tests override it with a fake.
    """
    global _booking_client_instance
    if _booking_client_instance is None:
        settings = get_settings()
        _booking_client_instance = BookingApiClient(
            base_url=settings.BOOKING_API_BASE_URL,
            token=settings.BOOKING_API_TOKEN,
            timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS,
        )
    return _booking_client_instance
