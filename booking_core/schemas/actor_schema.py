"""Employee (actor) data models: roles, permissions and working hours."""

from datetime import date, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"
    VIEWER = "viewer"


class Permission(str, Enum):
    """Closed permission catalogue. Only the assignment to an actor changes."""

    VIEW_OWN_BOOKINGS = "view_own_bookings"
    VIEW_ALL_BOOKINGS = "view_all_bookings"
    START_BOOKING = "start_booking"
    COMPLETE_BOOKING = "complete_booking"
    CANCEL_BOOKING = "cancel_booking"
    MANAGE_SERVICES = "manage_services"
    MANAGE_EMPLOYEES = "manage_employees"
    MANAGE_SETTINGS = "manage_settings"
    MANAGE_INVENTORY = "manage_inventory"
    VIEW_ANALYTICS = "view_analytics"
    USE_AI_AGENT = "use_ai_agent"
    SEND_NOTIFICATIONS = "send_notifications"


class Weekday(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, day: date) -> "Weekday":
        return list(cls)[day.weekday()]


class WorkingHours(BaseModel):
    """One weekday of an employee's schedule."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time
    available: bool = True

    @model_validator(mode="after")
    def _start_before_end(self) -> "WorkingHours":
        if self.available and self.start >= self.end:
            raise ValueError(f"working hours start {self.start} must be before end {self.end}")
        return self


class Employee(BaseModel):
    """
    Staff member acting on bookings.

    Immutable value: authorization is a pure function of this object, so
    callers can memoize results per instance.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    role: Role = Role.EMPLOYEE
    permissions: frozenset[Permission] = Field(default_factory=frozenset)
    active: bool = True
    working_hours: dict[Weekday, WorkingHours] = Field(default_factory=dict)

    def __hash__(self) -> int:
        # working_hours is a dict; hash only what authorization reads.
        return hash((self.id, self.role, self.permissions, self.active))

    def hours_on(self, day: date) -> Optional[WorkingHours]:
        """Working hours for ``day``'s weekday, or None when not working."""
        hours = self.working_hours.get(Weekday.of(day))
        if hours is None or not hours.available:
            return None
        return hours


# The authorization layer speaks of actors; every actor is an employee.
Actor = Employee
