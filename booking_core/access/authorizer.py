"""
Permission checks shared by the web dashboard and the mobile app.

Two strategies, each answering a different question:
1. RoleOverrideStrategy: admin and manager hold every permission
2. ExplicitSetStrategy: everyone else holds exactly their assigned set

The Authorizer short-circuits inactive actors, then ORs the strategies.
Everything here is a pure function of the (immutable) Employee value, so
results can be memoized by the caller and the same logic runs unchanged
on either client surface. The checks are advisory for UI gating; the
lifecycle and assignment engines call them again before persisting.

Usage:
    if can_manage_bookings(actor):
        lifecycle.update_status(booking_id, BookingStatus.CONFIRMED, actor)
"""

import logging
from typing import Iterable, Optional, Protocol

from booking_core.errors import PermissionDenied
from booking_core.schemas.actor_schema import Employee, Permission, Role

logger = logging.getLogger(__name__)

BOOKING_MANAGEMENT_PERMISSIONS = (
    Permission.START_BOOKING,
    Permission.COMPLETE_BOOKING,
    Permission.CANCEL_BOOKING,
)

BOOKING_VIEW_PERMISSIONS = (
    Permission.VIEW_OWN_BOOKINGS,
    Permission.VIEW_ALL_BOOKINGS,
)


class PermissionStrategy(Protocol):
    def grants(self, actor: Employee, permission: Permission) -> bool: ...


class RoleOverrideStrategy:
    """Roles that hold every permission regardless of the explicit set."""

    OVERRIDE_ROLES = frozenset({Role.ADMIN, Role.MANAGER})

    def grants(self, actor: Employee, permission: Permission) -> bool:
        return actor.role in self.OVERRIDE_ROLES


class ExplicitSetStrategy:
    def grants(self, actor: Employee, permission: Permission) -> bool:
        return permission in actor.permissions


class Authorizer:
    """Composes permission strategies with logical OR."""

    def __init__(self, strategies: Optional[list[PermissionStrategy]] = None) -> None:
        self.strategies: list[PermissionStrategy] = strategies or [
            RoleOverrideStrategy(),
            ExplicitSetStrategy(),
        ]

    def has_permission(self, actor: Employee, permission: Permission) -> bool:
        if not actor.active:
            return False
        return any(s.grants(actor, permission) for s in self.strategies)

    def has_any(self, actor: Employee, permissions: Iterable[Permission]) -> bool:
        return any(self.has_permission(actor, p) for p in permissions)

    def has_all(self, actor: Employee, permissions: Iterable[Permission]) -> bool:
        return all(self.has_permission(actor, p) for p in permissions)

    def can_manage_bookings(self, actor: Employee) -> bool:
        return self.has_any(actor, BOOKING_MANAGEMENT_PERMISSIONS)

    def can_view_bookings(self, actor: Employee) -> bool:
        return self.has_any(actor, BOOKING_VIEW_PERMISSIONS)

    def require(self, actor: Employee, permission: Permission, action: str = "") -> None:
        """Raise PermissionDenied unless the actor holds ``permission``."""
        if not self.has_permission(actor, permission):
            logger.warning(
                "Permission denied: actor=%s role=%s lacks %s%s",
                actor.id, actor.role.value, permission.value,
                f" for {action}" if action else "",
            )
            raise PermissionDenied(
                f"Employee '{actor.id}' lacks permission '{permission.value}'"
                + (f" to {action}" if action else "")
            )

    def require_booking_management(self, actor: Employee, action: str) -> None:
        if not self.can_manage_bookings(actor):
            logger.warning("Permission denied: actor=%s cannot manage bookings (%s)", actor.id, action)
            raise PermissionDenied(f"Employee '{actor.id}' cannot manage bookings to {action}")


default_authorizer = Authorizer()


def has_permission(actor: Employee, permission: Permission) -> bool:
    return default_authorizer.has_permission(actor, permission)


def has_any(actor: Employee, permissions: Iterable[Permission]) -> bool:
    return default_authorizer.has_any(actor, permissions)


def has_all(actor: Employee, permissions: Iterable[Permission]) -> bool:
    return default_authorizer.has_all(actor, permissions)


def can_manage_bookings(actor: Employee) -> bool:
    return default_authorizer.can_manage_bookings(actor)


def can_view_bookings(actor: Employee) -> bool:
    return default_authorizer.can_view_bookings(actor)


def can_start_booking(actor: Employee) -> bool:
    return has_permission(actor, Permission.START_BOOKING)


def can_complete_booking(actor: Employee) -> bool:
    return has_permission(actor, Permission.COMPLETE_BOOKING)


def can_cancel_booking(actor: Employee) -> bool:
    return has_permission(actor, Permission.CANCEL_BOOKING)


def can_manage_services(actor: Employee) -> bool:
    return has_permission(actor, Permission.MANAGE_SERVICES)


def can_manage_employees(actor: Employee) -> bool:
    return has_permission(actor, Permission.MANAGE_EMPLOYEES)


def can_manage_settings(actor: Employee) -> bool:
    return has_permission(actor, Permission.MANAGE_SETTINGS)


def can_manage_inventory(actor: Employee) -> bool:
    return has_permission(actor, Permission.MANAGE_INVENTORY)


def can_view_analytics(actor: Employee) -> bool:
    return has_permission(actor, Permission.VIEW_ANALYTICS)


def can_use_ai(actor: Employee) -> bool:
    return has_permission(actor, Permission.USE_AI_AGENT)


def can_send_notifications(actor: Employee) -> bool:
    return has_permission(actor, Permission.SEND_NOTIFICATIONS)
