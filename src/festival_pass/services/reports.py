"""Revenue reports. Annulled sales never count towards revenue."""

from sqlalchemy.orm import Session

from festival_pass.domain.credential import is_valid_date_string
from festival_pass.domain.errors import InvalidInputError
from festival_pass.domain.records import DailyReport, EventReport
from festival_pass.infrastructure.repository import ReportRepository


def daily_report(
    session: Session, start: str | None = None, end: str | None = None
) -> list[DailyReport]:
    """Per-day takings between two inclusive YYYY-MM-DD bounds, newest day first."""
    for bound in (start, end):
        if bound is not None and not is_valid_date_string(bound):
            raise InvalidInputError("Report bounds must be in YYYY-MM-DD format")
    return ReportRepository(session).daily(start, end)


def event_report(session: Session) -> list[EventReport]:
    return ReportRepository(session).per_event()
