"""Calendar display projection and its presentation mapping.

Events are derived from bookings and schedule blocks for display only.
Colors are kept out of the event variants; UIs look them up here.
"""

import uuid
from datetime import datetime
from typing import Iterable, Optional

from booking_core.schemas.booking_schema import (
    Booking,
    BookingEvent,
    BookingStatus,
    BreakEvent,
    CalendarEvent,
    CalendarEventType,
    UnavailableEvent,
)

EVENT_COLORS: dict[CalendarEventType, str] = {
    CalendarEventType.BOOKING: "#007bff",
    CalendarEventType.BREAK: "#28a745",
    CalendarEventType.UNAVAILABLE: "#dc3545",
}

DEFAULT_EVENT_COLOR = "#6c757d"


def _block_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def booking_event(booking: Booking, title: str = "") -> BookingEvent:
    return BookingEvent(
        id=f"booking-{booking.id}",
        title=title or f"Booking {booking.id}",
        start_time=booking.start_time,
        end_time=booking.end_time,
        booking_id=booking.id,
        status=booking.status,
        employee_id=booking.employee_id,
    )


def project_bookings(bookings: Iterable[Booking]) -> list[BookingEvent]:
    """Calendar events for every booking still on the schedule, by start time."""
    return [
        booking_event(b)
        for b in sorted(bookings, key=lambda b: b.start_time)
        if b.status != BookingStatus.CANCELLED
    ]


def break_event(
    start: datetime, end: datetime, employee_id: Optional[str] = None, title: str = "Break"
) -> BreakEvent:
    return BreakEvent(
        id=_block_id("break"), title=title, start_time=start, end_time=end,
        employee_id=employee_id,
    )


def unavailable_event(
    start: datetime,
    end: datetime,
    employee_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> UnavailableEvent:
    return UnavailableEvent(
        id=_block_id("unavailable"), title=reason or "Unavailable",
        start_time=start, end_time=end, employee_id=employee_id, reason=reason,
    )


def event_color(event: CalendarEvent) -> str:
    return EVENT_COLORS.get(event.type, DEFAULT_EVENT_COLOR)
