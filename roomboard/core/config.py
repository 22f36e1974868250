# roomboard/core/config.py
from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RoomResource(BaseModel):
    """
    A bookable room and the calendar (mailbox) that backs it.
    """

    name: str
    email: str
    floor: str


DEFAULT_ROOMS = [
    RoomResource(name="Ground Floor Meeting Room", email="gfmeeting@example.com", floor="Ground Floor"),
    RoomResource(name="1st Floor Meeting Room", email="ffmeeting@example.com", floor="1st Floor"),
    RoomResource(name="Conference Room", email="conference@example.com", floor="Conference Room"),
    RoomResource(name="3rd Floor Meeting Room", email="sfmeeting@example.com", floor="3rd Floor"),
]


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime.

    These settings cover:
    - Remote booking API location and credentials
    - Room resources shown on the dashboard
    - Polling / debounce timings for the dashboard views
    - Booking policy (organisation domain, admin overrides)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    APP_NAME: str = "Roomboard"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    LOG_LEVEL: str = Field("INFO", description="Root log level.")
    LOG_FORMAT: str = Field("text", description="Log output format: text or json.")

    BOOKING_API_BASE_URL: str = Field(
        "http://localhost:5001",
        description="Base URL of the remote bookings API.",
    )
    BOOKING_API_TOKEN: str | None = Field(
        default=None,
        description=(
            "Static bearer token forwarded to the bookings API. Token "
            "acquisition happens outside this service."
        ),
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout applied to every call against the bookings API.",
    )

    LOCAL_TIMEZONE: str = Field(
        "Asia/Kolkata",
        description="IANA zone used for recurrence UNTIL values and day boundaries.",
    )

    ROOM_RESOURCES: list[RoomResource] = Field(
        default_factory=lambda: list(DEFAULT_ROOMS),
        description="Rooms (and their calendar mailboxes) shown on the dashboard.",
    )
    HOURS_PER_RESOURCE_PER_DAY: int = Field(
        default=8,
        description="Bookable hours per room per day, used for utilization.",
    )

    POLL_INTERVAL_SECONDS: float = Field(
        default=30.0,
        description="How often an open, visible view re-fetches meetings.",
    )
    FILTER_DEBOUNCE_SECONDS: float = Field(
        default=0.25,
        description="Delay applied to date filter changes before re-fetching.",
    )
    PANEL_OPEN_DELAY_SECONDS: float = Field(
        default=0.25,
        description="Delay between opening the side panel and its first fetch.",
    )
    PAGE_SIZE: int = Field(default=10, description="Meetings per floor column page.")

    ORG_DOMAIN: str | None = Field(
        default=None,
        description=(
            "When set, booking and attendee emails must belong to this domain "
            "(e.g. 'example.com')."
        ),
    )
    ADMIN_EMAILS: list[str] = Field(
        default_factory=list,
        description="Users allowed to delete any meeting regardless of organizer/status.",
    )

    @property
    def resource_ids(self) -> list[str]:
        return [room.email for room in self.ROOM_RESOURCES]

    @property
    def floors(self) -> list[str]:
        return [room.floor for room in self.ROOM_RESOURCES]


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
