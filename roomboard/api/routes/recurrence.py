# roomboard/api/routes/recurrence.py
from fastapi import APIRouter

from roomboard.core.config import get_settings
from roomboard.schemas.recurrence import RecurrencePreview, RecurrencePreviewRequest
from roomboard.services.calendar_utils import resolve_timezone
from roomboard.services.recurrence_engine import (
    RecurrenceEditor,
    derive_rule_string,
    derive_summary,
)

router = APIRouter(prefix="/recurrence", tags=["Recurrence"])


@router.post(
    "/preview",
    response_model=RecurrencePreview,
    summary="Derive pattern, RRULE and summary for a recurrence selection",
    description=(
        "Applies the recurrence invariants to the submitted selection "
        "(clamped interval/occurrences, at least one weekday for weekly "
        "series, default end date) and returns the canonical pattern that "
        "should be embedded in the booking, its RRULE and a readable summary."
    ),
)
async def preview_recurrence(body: RecurrencePreviewRequest) -> RecurrencePreview:
    editor = RecurrenceEditor(body.anchor_date, body.selection)
    pattern = editor.finalize()
    tz = resolve_timezone(get_settings().LOCAL_TIMEZONE)
    return RecurrencePreview(
        selection=editor.selection,
        pattern=pattern,
        rule=derive_rule_string(body.anchor_date, pattern, tz),
        summary=derive_summary(body.anchor_date, pattern),
    )
