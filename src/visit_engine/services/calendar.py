"""Links calendar events to visits."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta

from visit_engine.domain.calendar import CalendarEvent, best_event_for_window
from visit_engine.domain.models import VisitStatus
from visit_engine.services.visits import VisitRepository

_logger = logging.getLogger(__name__)


@dataclass
class CalendarService:
    """Attaches the best matching calendar event to visits lacking one."""

    visit_repository: VisitRepository
    buffer: timedelta = timedelta(minutes=30)

    def attach_events(self, events: list[CalendarEvent]) -> int:
        """Store the best overlapping event on every eligible visit."""
        if not events:
            return 0
        now = datetime.now(tz=UTC)
        attached = 0
        for visit in self.visit_repository.list_all():
            if visit.status is VisitStatus.REJECTED or visit.calendar_event_id:
                continue
            event = best_event_for_window(
                events, visit.start_time, visit.end_time, self.buffer
            )
            if event is None:
                continue
            self.visit_repository.update(
                replace(
                    visit,
                    calendar_event_id=event.id,
                    calendar_event_title=event.title,
                    calendar_event_location=event.location,
                    updated_at=now,
                )
            )
            attached += 1
        _logger.info("Attached calendar events: visits=%s", attached)
        return attached
