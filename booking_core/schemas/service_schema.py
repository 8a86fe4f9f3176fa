"""Service scheduling configuration, consumed read-only by the core."""

from datetime import time

from pydantic import BaseModel, ConfigDict, Field, model_validator

from booking_core.schemas.actor_schema import Weekday


class Service(BaseModel):
    """A bookable company service and its scheduling rules."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    duration: int = Field(gt=0, description="minutes")
    available_days: frozenset[Weekday] = Field(default_factory=lambda: frozenset(Weekday))
    daily_start_time: time = time(9, 0)
    daily_end_time: time = time(17, 0)
    buffer_time_before: int = Field(default=0, ge=0)
    buffer_time_after: int = Field(default=0, ge=0)
    max_bookings_per_slot: int = Field(default=1, ge=1)
    advance_booking_days: int = Field(default=30, ge=0)
    assigned_employees: frozenset[str] = Field(default_factory=frozenset)
    is_active: bool = True

    @model_validator(mode="after")
    def _window_is_ordered(self) -> "Service":
        if self.daily_start_time >= self.daily_end_time:
            raise ValueError(
                f"daily window {self.daily_start_time}-{self.daily_end_time} is empty"
            )
        return self
