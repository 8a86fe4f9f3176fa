"""Booking records, bookable time slots and calendar display events."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


TERMINAL_STATUSES = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)

# Cancelled and no-show bookings give their time back to the schedule.
FREE_TIME_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})


class Booking(BaseModel):
    """
    System-of-record booking.

    Never deleted: cancellation is a terminal status. ``version`` is the
    optimistic-concurrency token, checked and incremented on every save.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    service_id: str
    employee_id: Optional[str] = None
    customer_id: str
    start_time: datetime
    end_time: datetime
    status: BookingStatus = BookingStatus.PENDING
    notes: Optional[str] = None
    version: int = Field(default=1, ge=1)
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _start_before_end(self) -> "Booking":
        # Schedule times are naive company-local wall-clock times.
        if self.start_time.tzinfo is not None or self.end_time.tzinfo is not None:
            raise ValueError("booking times must be naive company-local datetimes")
        if self.start_time >= self.end_time:
            raise ValueError(
                f"booking start {self.start_time} must be before end {self.end_time}"
            )
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def occupies_time(self) -> bool:
        return self.status not in FREE_TIME_STATUSES


class TimeSlot(BaseModel):
    """Single bookable interval."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class CalendarEventType(str, Enum):
    BOOKING = "booking"
    BREAK = "break"
    UNAVAILABLE = "unavailable"


class _CalendarEventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    start_time: datetime
    end_time: datetime


class BookingEvent(_CalendarEventBase):
    type: Literal[CalendarEventType.BOOKING] = CalendarEventType.BOOKING
    booking_id: str
    status: BookingStatus
    employee_id: Optional[str] = None


class BreakEvent(_CalendarEventBase):
    type: Literal[CalendarEventType.BREAK] = CalendarEventType.BREAK
    employee_id: Optional[str] = None


class UnavailableEvent(_CalendarEventBase):
    type: Literal[CalendarEventType.UNAVAILABLE] = CalendarEventType.UNAVAILABLE
    employee_id: Optional[str] = None
    reason: Optional[str] = None


# Read-only projection for display; never the system of record.
CalendarEvent = Annotated[
    Union[BookingEvent, BreakEvent, UnavailableEvent],
    Field(discriminator="type"),
]
