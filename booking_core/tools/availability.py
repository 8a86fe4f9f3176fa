"""
Bookable time-slot computation for a service, employee and day.

Pure and deterministic: the same (service, employee, day, bookings,
today) always yields the same ordered slot list, and nothing is cached
between calls. Occupancy is counted with a single sweep over pre-sorted
bookings instead of comparing every slot against every booking.

Datetimes are naive wall-clock times in the company's timezone.

Usage:
    slots = compute_slots(service, employee, date(2025, 3, 18), bookings)
    check_interval(service, employee, new_start, new_end, bookings)
"""

import heapq
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from booking_core.access.policy import Policy
from booking_core.errors import ConflictError, ValidationError
from booking_core.schemas.actor_schema import Employee, Weekday
from booking_core.schemas.booking_schema import Booking, TimeSlot
from booking_core.schemas.service_schema import Service
from booking_core.utils import at, minutes

logger = logging.getLogger(__name__)

_DEFAULT_POLICY = Policy()


def slot_step(service: Service) -> timedelta:
    """Distance between consecutive slot starts: occupation plus trailing buffer."""
    return minutes(service.duration + service.buffer_time_after)


def _is_eligible(service: Service, employee: Optional[Employee]) -> bool:
    if not service.is_active:
        return False
    if employee is None:
        return True
    return employee.active and employee.id in service.assigned_employees


def _in_advance_window(service: Service, day: date, today: date, policy: Policy) -> bool:
    horizon = policy.advance_days_for(service.advance_booking_days)
    return today <= day <= today + timedelta(days=horizon)


def _window(
    service: Service,
    employee: Optional[Employee],
    day: date,
) -> Optional[tuple[datetime, datetime]]:
    """Intersection of the service's daily window and the employee's hours."""
    if Weekday.of(day) not in service.available_days:
        return None

    start, end = service.daily_start_time, service.daily_end_time
    if employee is not None:
        hours = employee.hours_on(day)
        if hours is None:
            return None
        start, end = max(start, hours.start), min(end, hours.end)

    if start >= end:
        return None
    return at(day, start), at(day, end)


def _candidates(service: Service, window: tuple[datetime, datetime]) -> list[TimeSlot]:
    window_start, window_end = window
    duration = minutes(service.duration)
    step = slot_step(service)

    slots: list[TimeSlot] = []
    start = window_start + minutes(service.buffer_time_before)
    while start + duration <= window_end:
        slots.append(TimeSlot(start=start, end=start + duration))
        start += step
    return slots


def _relevant(bookings: Iterable[Booking], employee: Optional[Employee]) -> list[Booking]:
    """Bookings that hold the employee's time (or unassigned ones when no employee)."""
    owner = employee.id if employee is not None else None
    return sorted(
        (b for b in bookings if b.employee_id == owner and b.occupies_time),
        key=lambda b: b.start_time,
    )


def _occupancy(slots: list[TimeSlot], ordered: list[Booking]) -> list[int]:
    """Overlap count per slot. Both inputs must be sorted by start."""
    counts: list[int] = []
    active_ends: list[datetime] = []
    i = 0
    for slot in slots:
        while i < len(ordered) and ordered[i].start_time < slot.end:
            heapq.heappush(active_ends, ordered[i].end_time)
            i += 1
        while active_ends and active_ends[0] <= slot.start:
            heapq.heappop(active_ends)
        counts.append(len(active_ends))
    return counts


def compute_slots(
    service: Service,
    employee: Optional[Employee],
    day: date,
    existing_bookings: Iterable[Booking],
    today: Optional[date] = None,
    policy: Optional[Policy] = None,
) -> list[TimeSlot]:
    """
    Return the free slots for ``day`` in chronological order.

    Args:
        service: Service whose duration, buffers and windows apply.
        employee: Employee to schedule, or None for the service window alone
            (counts only unassigned bookings).
        day: Calendar day to compute.
        existing_bookings: Bookings that may overlap the day; others are ignored.
        today: Reference date for the advance-booking window. None means the
            local current date.
        policy: Plan gates; may cap the advance-booking window.
    """
    today = today or date.today()
    policy = policy or _DEFAULT_POLICY

    if not _is_eligible(service, employee):
        return []
    if not _in_advance_window(service, day, today, policy):
        return []
    window = _window(service, employee, day)
    if window is None:
        return []

    slots = _candidates(service, window)
    counts = _occupancy(slots, _relevant(existing_bookings, employee))
    free = [s for s, n in zip(slots, counts) if n < service.max_bookings_per_slot]
    logger.debug(
        "Slots for service=%s employee=%s on %s: %d of %d free",
        service.id, employee.id if employee else None, day, len(free), len(slots),
    )
    return free


def check_interval(
    service: Service,
    employee: Optional[Employee],
    start: datetime,
    end: datetime,
    existing_bookings: Iterable[Booking],
    today: Optional[date] = None,
    policy: Optional[Policy] = None,
) -> TimeSlot:
    """
    Validate a concrete interval at commit time.

    The caller must exclude the booking being moved from
    ``existing_bookings``.

    Raises:
        ValidationError: Interval is empty, timezone-aware, not exactly the
            service duration, off the slot grid, or outside the
            advance-booking, weekday or daily windows.
        ConflictError: The slot is already at ``max_bookings_per_slot``.
    """
    today = today or date.today()
    policy = policy or _DEFAULT_POLICY

    if start.tzinfo is not None or end.tzinfo is not None:
        raise ValidationError("Interval must use naive company-local times")
    if start >= end:
        raise ValidationError(f"Interval start {start} must be before end {end}")
    if end - start != minutes(service.duration):
        raise ValidationError(
            f"Interval lasts {int((end - start).total_seconds() // 60)} min, "
            f"service '{service.id}' takes {service.duration} min"
        )
    if not _is_eligible(service, employee):
        raise ValidationError(
            f"Service '{service.id}' cannot be scheduled"
            + (f" with employee '{employee.id}'" if employee else "")
        )

    day = start.date()
    if not _in_advance_window(service, day, today, policy):
        raise ValidationError(f"{day} is outside the advance booking window")
    window = _window(service, employee, day)
    if window is None:
        raise ValidationError(f"No working window on {day} ({Weekday.of(day).value})")
    if end > window[1]:
        raise ValidationError(f"Interval ends at {end:%H:%M}, after the window closes")
    if start not in {s.start for s in _candidates(service, window)}:
        raise ValidationError(f"{start:%H:%M} is not on the slot grid for '{service.id}'")

    slot = TimeSlot(start=start, end=end)
    taken = _occupancy([slot], _relevant(existing_bookings, employee))[0]
    if taken >= service.max_bookings_per_slot:
        raise ConflictError(
            f"Slot {start:%Y-%m-%d %H:%M} already has {taken} booking(s), "
            f"limit {service.max_bookings_per_slot}"
        )
    return slot
