"""
Storage and messaging ports the scheduling core depends on.

Abstract ports may be implemented over REST, RPC or a document database.
The in-memory adapters back the test suite and local demos; the booking
repository implements the same check-and-increment on ``version`` a real
store has to do atomically.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from booking_core.errors import ConflictError, NotFoundError
from booking_core.schemas.actor_schema import Employee
from booking_core.schemas.booking_schema import Booking
from booking_core.schemas.event_schema import DomainEvent
from booking_core.schemas.service_schema import Service
from booking_core.utils import overlaps

logger = logging.getLogger(__name__)


class BookingRepository(ABC):
    @abstractmethod
    def get(self, booking_id: str) -> Booking:
        """Return the booking or raise NotFoundError."""
        raise NotImplementedError

    @abstractmethod
    def save(self, booking: Booking, expected_version: int) -> Booking:
        """Persist ``booking`` if the stored version still equals ``expected_version``.

        Returns the stored booking with ``version`` incremented and
        ``updated_at`` refreshed. Raises ConflictError on a stale version.
        """
        raise NotImplementedError

    @abstractmethod
    def find_overlapping(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings of ``employee_id`` that occupy time inside ``[start, end)``."""
        raise NotImplementedError

    @abstractmethod
    def find_unassigned_overlapping(
        self,
        service_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        """Unassigned bookings of ``service_id`` that occupy time inside ``[start, end)``."""
        raise NotImplementedError


class ServiceCatalog(ABC):
    @abstractmethod
    def get(self, service_id: str) -> Service:
        raise NotImplementedError


class EmployeeDirectory(ABC):
    @abstractmethod
    def get(self, employee_id: str) -> Employee:
        raise NotImplementedError


class EventSink(ABC):
    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        raise NotImplementedError


class InMemoryBookingRepository(BookingRepository):
    """Thread-safe dict-backed store with optimistic concurrency."""

    def __init__(
        self,
        bookings: Iterable[Booking] = (),
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._bookings: dict[str, Booking] = {b.id: b for b in bookings}
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def add(self, booking: Booking) -> Booking:
        """Insert a new booking as-is (booking creation lives outside the core)."""
        with self._lock:
            self._bookings[booking.id] = booking
        logger.debug("Booking stored: %s (v%d)", booking.id, booking.version)
        return booking

    def get(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking '{booking_id}' not found")
        return booking

    def save(self, booking: Booking, expected_version: int) -> Booking:
        with self._lock:
            current = self._bookings.get(booking.id)
            if current is None:
                raise NotFoundError(f"Booking '{booking.id}' not found")
            if current.version != expected_version:
                logger.info(
                    "Stale write rejected for %s: expected v%d, stored v%d",
                    booking.id, expected_version, current.version,
                )
                raise ConflictError(
                    f"Booking '{booking.id}' was modified concurrently "
                    f"(expected version {expected_version}, found {current.version})"
                )
            stored = booking.model_copy(
                update={"version": current.version + 1, "updated_at": self._clock()}
            )
            self._bookings[booking.id] = stored
        return stored

    def find_overlapping(
        self,
        employee_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        return self._select(
            lambda b: b.employee_id == employee_id, start, end, exclude_booking_id
        )

    def find_unassigned_overlapping(
        self,
        service_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> list[Booking]:
        return self._select(
            lambda b: b.employee_id is None and b.service_id == service_id,
            start, end, exclude_booking_id,
        )

    def all(self) -> list[Booking]:
        with self._lock:
            return sorted(self._bookings.values(), key=lambda b: b.start_time)

    def reset(self) -> None:
        """Clear all bookings. Used by test fixtures for isolation."""
        with self._lock:
            self._bookings.clear()

    def _select(
        self,
        match: Callable[[Booking], bool],
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str],
    ) -> list[Booking]:
        with self._lock:
            candidates = list(self._bookings.values())
        return sorted(
            (
                b for b in candidates
                if b.id != exclude_booking_id
                and b.occupies_time
                and match(b)
                and overlaps(b.start_time, b.end_time, start, end)
            ),
            key=lambda b: b.start_time,
        )


class InMemoryServiceCatalog(ServiceCatalog):
    def __init__(self, services: Iterable[Service] = ()) -> None:
        self._services: dict[str, Service] = {s.id: s for s in services}

    def add(self, service: Service) -> None:
        self._services[service.id] = service

    def get(self, service_id: str) -> Service:
        if service_id not in self._services:
            raise NotFoundError(f"Service '{service_id}' not found")
        return self._services[service_id]


class InMemoryEmployeeDirectory(EmployeeDirectory):
    def __init__(self, employees: Iterable[Employee] = ()) -> None:
        self._employees: dict[str, Employee] = {e.id: e for e in employees}

    def add(self, employee: Employee) -> None:
        self._employees[employee.id] = employee

    def get(self, employee_id: str) -> Employee:
        if employee_id not in self._employees:
            raise NotFoundError(f"Employee '{employee_id}' not found")
        return self._employees[employee_id]


class InMemoryEventSink(EventSink):
    """Records published events and fans them out to subscribers."""

    def __init__(self) -> None:
        self.events: list[DomainEvent] = []
        self._subscribers: list[Callable[[DomainEvent], None]] = []

    def subscribe(self, handler: Callable[[DomainEvent], None]) -> None:
        self._subscribers.append(handler)

    def publish(self, event: DomainEvent) -> None:
        self.events.append(event)
        logger.debug("Event published: %s for %s", type(event).__name__, event.booking_id)
        for handler in self._subscribers:
            handler(event)

    def of_type(self, event_type: type) -> list[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]
