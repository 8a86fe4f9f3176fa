from booking_core.lifecycle.state_machine import BookingLifecycle, Transition

__all__ = [
    "BookingLifecycle",
    "Transition",
]
