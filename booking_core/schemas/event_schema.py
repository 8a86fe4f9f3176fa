"""Domain events published after a mutation commits.

Consumed by the notification, chat and analytics subsystems, which are
outside this package.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from booking_core.schemas.booking_schema import BookingStatus


def _new_event_id() -> str:
    return f"EV-{uuid.uuid4().hex[:12].upper()}"


class DomainEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=_new_event_id)
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    booking_id: str
    actor_id: Optional[str] = None


class BookingStatusChanged(DomainEvent):
    from_status: BookingStatus
    to_status: BookingStatus
    notify_customer: bool = False


class AssignmentChanged(DomainEvent):
    employee_id: Optional[str] = None
    previous_employee_id: Optional[str] = None


class BookingRescheduled(DomainEvent):
    old_start: datetime
    old_end: datetime
    new_start: datetime
    new_end: datetime
