from booking_core.access.authorizer import (
    Authorizer,
    ExplicitSetStrategy,
    RoleOverrideStrategy,
    can_manage_bookings,
    can_view_bookings,
    has_all,
    has_any,
    has_permission,
)
from booking_core.access.policy import Policy

__all__ = [
    "Authorizer",
    "RoleOverrideStrategy",
    "ExplicitSetStrategy",
    "has_permission",
    "has_any",
    "has_all",
    "can_manage_bookings",
    "can_view_bookings",
    "Policy",
]
