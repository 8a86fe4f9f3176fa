"""
Booking lifecycle state machine with per-transition authorization.

Six statuses and an explicit transition table. Every mutation runs the
same gate sequence before it commits:
1. load the booking and compare versions  (NotFoundError, ConflictError)
2. transition legality                    (InvalidStateTransition)
3. actor permission, then policy          (PermissionDenied)
4. availability, reschedule only          (ValidationError, ConflictError)
5. versioned save                         (ConflictError)
and only then publishes a domain event.

Usage:
    lifecycle = BookingLifecycle(repository, catalog, directory, events)
    lifecycle.update_status("BK-1", BookingStatus.CONFIRMED, actor)
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from booking_core.access.authorizer import (
    BOOKING_MANAGEMENT_PERMISSIONS,
    Authorizer,
    default_authorizer,
)
from booking_core.access.policy import Policy
from booking_core.errors import ConflictError, InvalidStateTransition, PermissionDenied
from booking_core.logging_context import get_request_logger
from booking_core.schemas.actor_schema import Employee, Permission
from booking_core.schemas.booking_schema import TERMINAL_STATUSES, Booking, BookingStatus
from booking_core.schemas.event_schema import BookingRescheduled, BookingStatusChanged
from booking_core.tools.availability import check_interval
from booking_core.tools.repository import (
    BookingRepository,
    EmployeeDirectory,
    EventSink,
    ServiceCatalog,
)

logger = get_request_logger(__name__)


@dataclass(frozen=True)
class Transition:
    """A single legal status move and the permissions that unlock it (any of)."""
    from_state: BookingStatus
    to_state: BookingStatus
    requires: tuple[Permission, ...]


class BookingLifecycle:
    """
    Authoritative enforcement point for booking status and time changes.

    UI surfaces check the Authorizer for gating; this class checks again
    right before persisting because client-side checks can be bypassed.
    """

    TRANSITIONS: list[Transition] = [
        # --- Confirmation ---
        Transition(BookingStatus.PENDING, BookingStatus.CONFIRMED,
                   BOOKING_MANAGEMENT_PERMISSIONS),

        # --- Service delivery ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS,
                   (Permission.START_BOOKING,)),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED,
                   (Permission.COMPLETE_BOOKING,)),

        # --- Cancellation ---
        Transition(BookingStatus.PENDING, BookingStatus.CANCELLED,
                   (Permission.CANCEL_BOOKING,)),
        Transition(BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
                   (Permission.CANCEL_BOOKING,)),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED,
                   (Permission.CANCEL_BOOKING,)),

        # --- No-show ---
        Transition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW,
                   (Permission.CANCEL_BOOKING,)),
        Transition(BookingStatus.IN_PROGRESS, BookingStatus.NO_SHOW,
                   (Permission.CANCEL_BOOKING,)),
    ]

    def __init__(
        self,
        repository: BookingRepository,
        catalog: ServiceCatalog,
        directory: EmployeeDirectory,
        events: EventSink,
        policy: Optional[Policy] = None,
        authorizer: Optional[Authorizer] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.directory = directory
        self.events = events
        self.policy = policy or Policy.from_config()
        self.authorizer = authorizer or default_authorizer
        self._clock = clock or datetime.now

    def today(self) -> date:
        return self._clock().date()

    @staticmethod
    def is_terminal(status: BookingStatus) -> bool:
        return status in TERMINAL_STATUSES

    def find_transition(
        self, current: BookingStatus, target: BookingStatus
    ) -> Transition:
        """Return the table entry for ``current -> target``.

        Raises:
            InvalidStateTransition: If the pair is not in the table.
        """
        for t in self.TRANSITIONS:
            if t.from_state == current and t.to_state == target:
                return t

        valid = [t.to_state.value for t in self.TRANSITIONS if t.from_state == current]
        raise InvalidStateTransition(
            f"No transition from '{current.value}' to '{target.value}'. "
            f"Valid targets: {valid}"
        )

    def allowed_targets(self, booking: Booking, actor: Employee) -> list[BookingStatus]:
        """Statuses ``actor`` may move ``booking`` to right now."""
        return [
            t.to_state
            for t in self.TRANSITIONS
            if t.from_state == booking.status
            and self.authorizer.has_any(actor, t.requires)
            and self._policy_allows(t.to_state)
        ]

    def update_status(
        self,
        booking_id: str,
        target: BookingStatus,
        actor: Employee,
        notes: Optional[str] = None,
        notify_customer: bool = False,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Move a booking to ``target`` status.

        Args:
            booking_id: Booking to change.
            target: Desired status.
            actor: Employee performing the change.
            notes: Replaces the booking notes when given.
            notify_customer: Forwarded on the event for the notification service.
            expected_version: Version the caller loaded; a mismatch fails fast.

        Returns:
            The saved booking with its new version.

        Raises:
            NotFoundError, InvalidStateTransition, PermissionDenied, ConflictError
        """
        booking = self.repository.get(booking_id)
        self._check_version(booking, expected_version)

        transition = self.find_transition(booking.status, target)
        if not self.authorizer.has_any(actor, transition.requires):
            needed = " or ".join(p.value for p in transition.requires)
            logger.warning(
                "Status change denied: %s %s -> %s by %s (needs %s)",
                booking_id, booking.status.value, target.value, actor.id, needed,
            )
            raise PermissionDenied(
                f"Employee '{actor.id}' needs {needed} to move booking "
                f"from '{booking.status.value}' to '{target.value}'"
            )
        if not self._policy_allows(target):
            raise PermissionDenied("Cancellations are disabled for this company")

        update: dict = {"status": target}
        if notes is not None:
            update["notes"] = notes
        saved = self.repository.save(booking.model_copy(update=update), booking.version)

        logger.info(
            "Booking %s: %s -> %s by %s (v%d)",
            booking_id, booking.status.value, target.value, actor.id, saved.version,
        )
        self.events.publish(BookingStatusChanged(
            booking_id=booking_id,
            actor_id=actor.id,
            from_status=booking.status,
            to_status=target,
            notify_customer=notify_customer,
        ))
        return saved

    def reschedule(
        self,
        booking_id: str,
        new_start: datetime,
        new_end: datetime,
        actor: Employee,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Move a booking to a new interval after re-validating availability.

        Overlap is re-checked against the store at commit time rather than
        trusting the slot list the client rendered earlier.

        Raises:
            NotFoundError, InvalidStateTransition, PermissionDenied,
            ValidationError, ConflictError
        """
        booking = self.repository.get(booking_id)
        self._check_version(booking, expected_version)

        if booking.is_terminal:
            raise InvalidStateTransition(
                f"Booking '{booking_id}' is {booking.status.value} and cannot be rescheduled"
            )
        self.authorizer.require_booking_management(actor, "reschedule")
        if not self.policy.allow_rescheduling:
            raise PermissionDenied("Rescheduling is not enabled for this company")

        service = self.catalog.get(booking.service_id)
        employee = self.directory.get(booking.employee_id) if booking.employee_id else None
        if employee is not None:
            existing = self.repository.find_overlapping(
                employee.id, new_start, new_end, exclude_booking_id=booking_id
            )
        else:
            existing = self.repository.find_unassigned_overlapping(
                service.id, new_start, new_end, exclude_booking_id=booking_id
            )
        check_interval(
            service, employee, new_start, new_end, existing,
            today=self.today(), policy=self.policy,
        )

        saved = self.repository.save(
            booking.model_copy(update={"start_time": new_start, "end_time": new_end}),
            booking.version,
        )
        logger.info(
            "Booking %s rescheduled %s -> %s by %s (v%d)",
            booking_id, booking.start_time.isoformat(), new_start.isoformat(),
            actor.id, saved.version,
        )
        self.events.publish(BookingRescheduled(
            booking_id=booking_id,
            actor_id=actor.id,
            old_start=booking.start_time,
            old_end=booking.end_time,
            new_start=new_start,
            new_end=new_end,
        ))
        return saved

    def _policy_allows(self, target: BookingStatus) -> bool:
        return target != BookingStatus.CANCELLED or self.policy.allow_cancellations

    @staticmethod
    def _check_version(booking: Booking, expected_version: Optional[int]) -> None:
        if expected_version is not None and booking.version != expected_version:
            raise ConflictError(
                f"Booking '{booking.id}' is at version {booking.version}, "
                f"caller loaded version {expected_version}"
            )
