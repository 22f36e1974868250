# roomboard/main.py
import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from roomboard.api.routes import bookings, health, meetings, recurrence
from roomboard.core.config import get_settings
from roomboard.core.errors import ActionNotAllowed, NetworkError, ValidationError
from roomboard.core.logging import configure_logging

logger = logging.getLogger(__name__)


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=HTTPStatus.BAD_REQUEST, content={"detail": str(exc)})


async def _action_not_allowed_handler(request: Request, exc: ActionNotAllowed) -> JSONResponse:
    return JSONResponse(status_code=HTTPStatus.FORBIDDEN, content={"detail": exc.reason})


async def _network_error_handler(request: Request, exc: NetworkError) -> JSONResponse:
    logger.warning("Bookings API failure on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=HTTPStatus.BAD_GATEWAY, content={"detail": exc.message})


def create_app() -> FastAPI:
    """
    Application factory for the Roomboard service.
    """
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Meeting-room booking dashboard backend: reconciles per-room\n"
            "calendars into multi-room-aware meetings, derives recurrence\n"
            "patterns for recurring bookings and forwards bookings, edits and\n"
            "cancellations to the bookings API."
        ),
        version="0.1.0",
    )

    # Routers
    app.include_router(health.router)
    app.include_router(recurrence.router)
    app.include_router(meetings.router)
    app.include_router(bookings.router)

    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(ActionNotAllowed, _action_not_allowed_handler)
    app.add_exception_handler(NetworkError, _network_error_handler)

    return app


app = create_app()
