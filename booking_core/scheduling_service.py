"""
Entry point used by request handlers on both client surfaces.

Wires the Authorizer, BookingLifecycle, AssignmentResolver and
RescheduleEngine over one set of ports, and applies the caller-side
error policy:
- ConflictError gets at most ``conflict_retries`` refetch-and-retry
  (none when the caller pinned ``expected_version``: its view is stale
  and staff must review the change).
- Everything else is surfaced immediately.
- A repeated ``idempotency_key`` on the same booking returns the first
  result instead of applying the mutation again. Concurrent calls with
  one key run the mutation once; the others wait and replay it.

Each mutation runs inside ``request_context`` so its log lines carry the
caller's request id, or one generated from the configured surface.
"""

import threading
from collections import OrderedDict
from datetime import date, datetime, time, timedelta
from typing import Callable, Iterable, Optional

from booking_core.access.authorizer import Authorizer
from booking_core.access.policy import Policy
from booking_core.config import settings
from booking_core.errors import ConflictError, is_retryable
from booking_core.lifecycle.state_machine import BookingLifecycle
from booking_core.logging_context import get_request_logger, request_context
from booking_core.schemas.actor_schema import Employee
from booking_core.schemas.booking_schema import Booking, BookingStatus, CalendarEvent, TimeSlot
from booking_core.tools.assignment import AssignmentResolver
from booking_core.tools.availability import compute_slots
from booking_core.tools.calendar import project_bookings
from booking_core.tools.repository import (
    BookingRepository,
    EmployeeDirectory,
    EventSink,
    ServiceCatalog,
)
from booking_core.tools.reschedule import RescheduleEngine, RescheduleSession

logger = get_request_logger(__name__)

# (operation, booking id, caller key)
IdempotencyKey = tuple[str, str, str]


class SchedulingService:
    def __init__(
        self,
        repository: BookingRepository,
        catalog: ServiceCatalog,
        directory: EmployeeDirectory,
        events: EventSink,
        policy: Optional[Policy] = None,
        authorizer: Optional[Authorizer] = None,
        clock: Optional[Callable[[], datetime]] = None,
        conflict_retries: Optional[int] = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.directory = directory
        self.policy = policy or Policy.from_config()
        self.lifecycle = BookingLifecycle(
            repository, catalog, directory, events,
            policy=self.policy, authorizer=authorizer, clock=clock,
        )
        self.assignments = AssignmentResolver(
            repository, catalog, directory, events,
            policy=self.policy, authorizer=authorizer,
        )
        self.rescheduler = RescheduleEngine(self.lifecycle)
        self.conflict_retries = (
            settings.scheduling.conflict_retries if conflict_retries is None else conflict_retries
        )
        self._results: OrderedDict[IdempotencyKey, Booking] = OrderedDict()
        self._in_flight: dict[IdempotencyKey, threading.Lock] = {}
        self._results_lock = threading.Lock()

    # --- Reads ---

    def available_slots(
        self, service_id: str, employee_id: Optional[str], day: date
    ) -> list[TimeSlot]:
        service = self.catalog.get(service_id)
        employee = self.directory.get(employee_id) if employee_id else None
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        if employee is not None:
            existing = self.repository.find_overlapping(employee.id, day_start, day_end)
        else:
            existing = self.repository.find_unassigned_overlapping(service.id, day_start, day_end)
        return compute_slots(
            service, employee, day, existing,
            today=self.lifecycle.today(), policy=self.policy,
        )

    def day_calendar(
        self, employee_id: str, day: date, blocks: Iterable[CalendarEvent] = ()
    ) -> list[CalendarEvent]:
        """Bookings plus break/unavailable blocks for one employee's day."""
        day_start = datetime.combine(day, time.min)
        bookings = self.repository.find_overlapping(
            employee_id, day_start, day_start + timedelta(days=1)
        )
        events: list[CalendarEvent] = [*project_bookings(bookings), *blocks]
        return sorted(events, key=lambda e: e.start_time)

    # --- Mutations ---

    def update_status(
        self,
        booking_id: str,
        target: BookingStatus,
        actor: Employee,
        notes: Optional[str] = None,
        notify_customer: bool = False,
        expected_version: Optional[int] = None,
        idempotency_key: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Booking:
        return self._run(
            "update_status", booking_id, idempotency_key, expected_version, request_id,
            lambda: self.lifecycle.update_status(
                booking_id, target, actor, notes=notes,
                notify_customer=notify_customer, expected_version=expected_version,
            ),
        )

    def assign(
        self,
        booking_id: str,
        employee_id: Optional[str],
        actor: Employee,
        expected_version: Optional[int] = None,
        idempotency_key: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Booking:
        return self._run(
            "assign", booking_id, idempotency_key, expected_version, request_id,
            lambda: self.assignments.assign(
                booking_id, employee_id, actor, expected_version=expected_version
            ),
        )

    def reschedule(
        self,
        booking_id: str,
        new_start: datetime,
        new_end: datetime,
        actor: Employee,
        expected_version: Optional[int] = None,
        idempotency_key: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Booking:
        return self._run(
            "reschedule", booking_id, idempotency_key, expected_version, request_id,
            lambda: self.lifecycle.reschedule(
                booking_id, new_start, new_end, actor, expected_version=expected_version
            ),
        )

    def start_drag(self, booking_id: str, actor: Employee) -> RescheduleSession:
        return self.rescheduler.start(booking_id, actor)

    # --- Internals ---

    def _run(
        self,
        operation: str,
        booking_id: str,
        idempotency_key: Optional[str],
        expected_version: Optional[int],
        request_id: Optional[str],
        call: Callable[[], Booking],
    ) -> Booking:
        with request_context(request_id, settings.surface):
            if not idempotency_key:
                return self._attempt(operation, expected_version, call)

            cache_key = (operation, booking_id, idempotency_key)
            with self._results_lock:
                gate = self._in_flight.setdefault(cache_key, threading.Lock())
            try:
                with gate:
                    with self._results_lock:
                        cached = self._results.get(cache_key)
                    if cached is not None:
                        logger.info(
                            "Replaying %s for idempotency key %s", operation, idempotency_key
                        )
                        return cached
                    result = self._attempt(operation, expected_version, call)
                    self._remember(cache_key, result)
                    return result
            finally:
                with self._results_lock:
                    if self._in_flight.get(cache_key) is gate:
                        del self._in_flight[cache_key]

    def _attempt(
        self,
        operation: str,
        expected_version: Optional[int],
        call: Callable[[], Booking],
    ) -> Booking:
        attempt = 0
        while True:
            try:
                return call()
            except ConflictError as exc:
                if expected_version is not None or not is_retryable(
                    exc, attempt, self.conflict_retries
                ):
                    raise
                attempt += 1
                logger.info("Conflict on %s, refetching and retrying: %s", operation, exc)

    def _remember(self, cache_key: IdempotencyKey, result: Booking) -> None:
        with self._results_lock:
            self._results[cache_key] = result
            self._results.move_to_end(cache_key)
            while len(self._results) > settings.scheduling.idempotency_cache_size:
                self._results.popitem(last=False)
