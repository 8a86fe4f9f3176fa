"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

import pytest

from booking_core.access.policy import Policy
from booking_core.lifecycle.state_machine import BookingLifecycle
from booking_core.scheduling_service import SchedulingService
from booking_core.schemas.actor_schema import Employee, Permission, Role, Weekday, WorkingHours
from booking_core.schemas.booking_schema import Booking, BookingStatus
from booking_core.schemas.service_schema import Service
from booking_core.tools.assignment import AssignmentResolver
from booking_core.tools.repository import (
    InMemoryBookingRepository,
    InMemoryEmployeeDirectory,
    InMemoryEventSink,
    InMemoryServiceCatalog,
)

# Monday; the default booking day below is the Tuesday after.
TODAY = date(2025, 3, 17)
DAY = date(2025, 3, 18)
NOW = datetime(2025, 3, 17, 8, 0)

WEEKDAYS = frozenset(
    {Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY}
)


def full_week(start: time = time(8, 0), end: time = time(18, 0)) -> dict[Weekday, WorkingHours]:
    return {day: WorkingHours(start=start, end=end) for day in Weekday}


def make_employee(
    employee_id: str = "emp-1",
    role: Role = Role.EMPLOYEE,
    permissions: Iterable[Permission] = (),
    active: bool = True,
    working_hours: Optional[dict[Weekday, WorkingHours]] = None,
) -> Employee:
    return Employee(
        id=employee_id,
        name=employee_id.title(),
        role=role,
        permissions=frozenset(permissions),
        active=active,
        working_hours=full_week() if working_hours is None else working_hours,
    )


def make_service(**overrides) -> Service:
    fields = dict(
        id="grooming",
        name="Full Groom",
        duration=60,
        available_days=WEEKDAYS,
        daily_start_time=time(9, 0),
        daily_end_time=time(17, 0),
        buffer_time_before=0,
        buffer_time_after=15,
        max_bookings_per_slot=1,
        advance_booking_days=14,
        assigned_employees=frozenset({"emp-1", "emp-2"}),
    )
    fields.update(overrides)
    return Service(**fields)


def make_booking(
    booking_id: str = "BK-1",
    start: datetime = datetime(2025, 3, 18, 9, 0),
    duration: int = 60,
    status: BookingStatus = BookingStatus.PENDING,
    employee_id: Optional[str] = "emp-1",
    service_id: str = "grooming",
    version: int = 1,
) -> Booking:
    return Booking(
        id=booking_id,
        service_id=service_id,
        employee_id=employee_id,
        customer_id="cust-1",
        start_time=start,
        end_time=start + timedelta(minutes=duration),
        status=status,
        version=version,
    )


@pytest.fixture
def admin():
    return make_employee("admin-1", role=Role.ADMIN, working_hours={})


@pytest.fixture
def groomer():
    return make_employee("emp-1")


@pytest.fixture
def second_groomer():
    return make_employee("emp-2")


@pytest.fixture
def service():
    return make_service()


@pytest.fixture
def repository():
    return InMemoryBookingRepository(clock=lambda: NOW)


@pytest.fixture
def catalog(service):
    return InMemoryServiceCatalog([service])


@pytest.fixture
def directory(groomer, second_groomer, admin):
    return InMemoryEmployeeDirectory([groomer, second_groomer, admin])


@pytest.fixture
def events():
    return InMemoryEventSink()


@pytest.fixture
def policy():
    return Policy()


@pytest.fixture
def lifecycle(repository, catalog, directory, events, policy):
    return BookingLifecycle(repository, catalog, directory, events, policy=policy, clock=lambda: NOW)


@pytest.fixture
def resolver(repository, catalog, directory, events, policy):
    return AssignmentResolver(repository, catalog, directory, events, policy=policy)


@pytest.fixture
def scheduling(repository, catalog, directory, events, policy):
    return SchedulingService(
        repository, catalog, directory, events, policy=policy, clock=lambda: NOW
    )
