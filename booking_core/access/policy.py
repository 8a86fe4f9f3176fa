"""Plan and company-settings gates, passed explicitly into the engines."""

from dataclasses import dataclass
from typing import Optional

from booking_core.config import settings


@dataclass(frozen=True)
class Policy:
    """Feature gates that apply on top of per-actor permissions."""

    allow_cancellations: bool = True
    allow_rescheduling: bool = True
    allow_assignment: bool = True
    max_advance_booking_days: Optional[int] = None

    @classmethod
    def from_config(cls) -> "Policy":
        return cls(
            allow_cancellations=settings.policy.allow_cancellations,
            allow_rescheduling=settings.policy.allow_rescheduling,
            allow_assignment=settings.policy.allow_assignment,
            max_advance_booking_days=settings.policy.max_advance_booking_days,
        )

    def advance_days_for(self, service_advance_days: int) -> int:
        """Effective advance-booking window: the service's, capped by the plan."""
        if self.max_advance_booking_days is None:
            return service_advance_days
        return min(service_advance_days, self.max_advance_booking_days)
