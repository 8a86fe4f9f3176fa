"""
Drag-to-reschedule as a two-phase, cancellable edit.

Phase 1 (live): while the gesture is active, the accumulated offset only
moves a shadow ``candidate`` interval for visual feedback. Nothing is
persisted.

Phase 2 (commit): on release the offset is rounded half-up to whole slot
steps (the same step compute_slots uses), so the committed interval is
one the availability check accepts. A zero delta is a no-op. Any failure
restores the candidate to the last committed interval; a move is never
partially applied.

Usage:
    session = engine.start("BK-1", actor)
    session.drag_to(135.0)          # pixels, live feedback only
    booking = session.release()     # one lifecycle.reschedule call, or None
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from booking_core.config import settings
from booking_core.errors import BookingCoreError
from booking_core.lifecycle.state_machine import BookingLifecycle
from booking_core.logging_context import get_request_logger
from booking_core.schemas.actor_schema import Employee
from booking_core.schemas.booking_schema import Booking
from booking_core.tools.availability import slot_step
from booking_core.utils import round_half_up

logger = get_request_logger(__name__)


class DragPhase(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def shifted(self, delta: timedelta) -> "Interval":
        return Interval(self.start + delta, self.end + delta)


class RescheduleSession:
    """Gesture state for one booking on one client surface."""

    def __init__(
        self,
        lifecycle: BookingLifecycle,
        booking: Booking,
        step: timedelta,
        actor: Employee,
        pixels_per_hour: Optional[int] = None,
    ) -> None:
        self.lifecycle = lifecycle
        self.booking_id = booking.id
        self.actor = actor
        self.step = step
        self.pixels_per_hour = pixels_per_hour or settings.scheduling.pixels_per_hour
        self.committed = Interval(booking.start_time, booking.end_time)
        self.candidate = self.committed
        self.phase = DragPhase.IDLE
        self._version = booking.version
        self._offset = timedelta(0)

    @property
    def offset(self) -> timedelta:
        return self._offset

    def begin(self) -> None:
        self.phase = DragPhase.DRAGGING
        self._offset = timedelta(0)
        self.candidate = self.committed

    def move_by(self, offset: timedelta) -> Interval:
        """Set the accumulated gesture offset; returns the shadow interval."""
        if self.phase != DragPhase.DRAGGING:
            self.begin()
        self._offset = offset
        self.candidate = self.committed.shifted(offset)
        return self.candidate

    def drag_to(self, translation_px: float) -> Interval:
        """Convert a vertical translation in pixels to a time offset."""
        return self.move_by(timedelta(hours=translation_px / self.pixels_per_hour))

    def snapped_delta(self) -> timedelta:
        """Offset rounded half-up to a whole number of slot steps."""
        return self.step * round_half_up(self._offset / self.step)

    def release(self) -> Optional[Booking]:
        """
        Commit the gesture.

        Returns:
            The saved booking, or None when the snapped delta is zero.

        Raises:
            Whatever BookingLifecycle.reschedule raises, after reverting
            ``candidate`` to the committed interval.
        """
        delta = self.snapped_delta()
        self.phase = DragPhase.IDLE
        self._offset = timedelta(0)

        if not delta:
            self.candidate = self.committed
            logger.debug("Drag on %s released without net movement", self.booking_id)
            return None

        target = self.committed.shifted(delta)
        try:
            saved = self.lifecycle.reschedule(
                self.booking_id, target.start, target.end, self.actor,
                expected_version=self._version,
            )
        except BookingCoreError as exc:
            self.candidate = self.committed
            logger.warning(
                "Drag on %s reverted to %s: %s",
                self.booking_id, self.committed.start.isoformat(), exc,
            )
            raise

        self.committed = Interval(saved.start_time, saved.end_time)
        self.candidate = self.committed
        self._version = saved.version
        return saved

    def cancel(self) -> None:
        """Abandon the gesture (e.g. the view was closed); nothing is sent."""
        self.phase = DragPhase.IDLE
        self._offset = timedelta(0)
        self.candidate = self.committed


class RescheduleEngine:
    """Creates reschedule sessions bound to a lifecycle."""

    def __init__(
        self, lifecycle: BookingLifecycle, pixels_per_hour: Optional[int] = None
    ) -> None:
        self.lifecycle = lifecycle
        self.pixels_per_hour = pixels_per_hour

    def start(self, booking_id: str, actor: Employee) -> RescheduleSession:
        booking = self.lifecycle.repository.get(booking_id)
        service = self.lifecycle.catalog.get(booking.service_id)
        session = RescheduleSession(
            self.lifecycle, booking, slot_step(service), actor, self.pixels_per_hour
        )
        session.begin()
        return session

    def shift(self, booking_id: str, delta: timedelta, actor: Employee) -> Optional[Booking]:
        """Discrete time-delta edit, snapped to the same grid as a drag."""
        session = self.start(booking_id, actor)
        session.move_by(delta)
        return session.release()
