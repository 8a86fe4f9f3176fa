"""
Employee-to-booking assignment with commit-time double-booking checks.

The overlap check queries the store at write time; a slot shown as free
earlier may have been taken since.
"""

from typing import Optional

from booking_core.access.authorizer import Authorizer, default_authorizer
from booking_core.access.policy import Policy
from booking_core.errors import (
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from booking_core.logging_context import get_request_logger
from booking_core.schemas.actor_schema import Employee
from booking_core.schemas.booking_schema import Booking
from booking_core.schemas.event_schema import AssignmentChanged
from booking_core.tools.repository import (
    BookingRepository,
    EmployeeDirectory,
    EventSink,
    ServiceCatalog,
)

logger = get_request_logger(__name__)


class AssignmentResolver:
    """Validates and commits ``booking.employee_id`` changes."""

    def __init__(
        self,
        repository: BookingRepository,
        catalog: ServiceCatalog,
        directory: EmployeeDirectory,
        events: EventSink,
        policy: Optional[Policy] = None,
        authorizer: Optional[Authorizer] = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.directory = directory
        self.events = events
        self.policy = policy or Policy.from_config()
        self.authorizer = authorizer or default_authorizer

    def assign(
        self,
        booking_id: str,
        employee_id: Optional[str],
        actor: Employee,
        expected_version: Optional[int] = None,
    ) -> Booking:
        """
        Assign ``employee_id`` to the booking, or unassign it with None.

        Unassigning only needs the permission check; availability is not
        consulted.

        Raises:
            NotFoundError: Booking missing.
            PermissionDenied: Actor cannot manage bookings, or the plan
                disables assignment.
            InvalidStateTransition: Assigning onto a terminal booking.
            ValidationError: Unknown, inactive, or unqualified employee.
            ConflictError: Employee already busy, or stale version.
        """
        booking = self.repository.get(booking_id)
        self.authorizer.require_booking_management(actor, "assign employees")
        if expected_version is not None and booking.version != expected_version:
            raise ConflictError(
                f"Booking '{booking_id}' is at version {booking.version}, "
                f"caller loaded version {expected_version}"
            )

        if employee_id is not None:
            if not self.policy.allow_assignment:
                raise PermissionDenied("Employee assignment is not enabled for this company")
            self._validate_assignee(booking, employee_id)

        saved = self.repository.save(
            booking.model_copy(update={"employee_id": employee_id}), booking.version
        )
        logger.info(
            "Booking %s assigned %s -> %s by %s (v%d)",
            booking_id, booking.employee_id, employee_id, actor.id, saved.version,
        )
        self.events.publish(AssignmentChanged(
            booking_id=booking_id,
            actor_id=actor.id,
            employee_id=employee_id,
            previous_employee_id=booking.employee_id,
        ))
        return saved

    def _validate_assignee(self, booking: Booking, employee_id: str) -> None:
        if booking.is_terminal:
            raise InvalidStateTransition(
                f"Booking '{booking.id}' is {booking.status.value}; assignment is closed"
            )

        service = self.catalog.get(booking.service_id)
        try:
            employee = self.directory.get(employee_id)
        except NotFoundError:
            raise ValidationError(f"Unknown employee '{employee_id}'") from None

        if employee_id not in service.assigned_employees:
            raise ValidationError(
                f"Employee '{employee_id}' is not assigned to service '{service.id}'"
            )
        if not employee.active:
            raise ValidationError(f"Employee '{employee_id}' is inactive")

        clashes = self.repository.find_overlapping(
            employee_id, booking.start_time, booking.end_time,
            exclude_booking_id=booking.id,
        )
        if clashes:
            logger.warning(
                "Assignment conflict: %s already has %s at %s",
                employee_id, clashes[0].id, clashes[0].start_time.isoformat(),
            )
            raise ConflictError(
                f"Employee '{employee_id}' already has booking '{clashes[0].id}' "
                f"overlapping {booking.start_time:%Y-%m-%d %H:%M}"
            )
