"""
Error taxonomy for every scheduling mutation.

Only ConflictError is retryable, and only once: repeating a reschedule
delta or an assignment is not idempotent.
"""


class BookingCoreError(Exception):
    """Base class for all errors raised by the scheduling core."""

    retryable: bool = False
    user_message: str = "Something went wrong, please try again."


class ValidationError(BookingCoreError):
    """Malformed input, unknown ids, or an interval outside bookable time."""

    user_message = "Please check the booking details and try again."


class PermissionDenied(BookingCoreError):
    """The actor (or the company policy) does not allow this action."""

    user_message = "You don't have permission to do that."


class InvalidStateTransition(BookingCoreError):
    """Illegal status move, including any move out of a terminal state."""

    user_message = "This booking can't be changed from its current status."


class ConflictError(BookingCoreError):
    """Optimistic-concurrency loss or a scheduling overlap."""

    retryable = True
    user_message = "This booking changed, please review."


class NotFoundError(BookingCoreError):
    """Booking, service or employee is missing."""

    user_message = "This booking no longer exists, please refresh."


def describe_error(exc: BaseException) -> str:
    """Map an exception to the message shown to staff on web or mobile."""
    if isinstance(exc, BookingCoreError):
        return exc.user_message
    return BookingCoreError.user_message


def is_retryable(exc: BaseException, attempt: int, max_retries: int = 1) -> bool:
    """Whether the caller may refetch and retry after ``attempt`` failures."""
    if not isinstance(exc, BookingCoreError) or not exc.retryable:
        return False
    return attempt < max_retries
