"""Tests for the booking lifecycle state machine."""

import threading

import pytest

from booking_core.access.policy import Policy
from booking_core.errors import (
    ConflictError,
    InvalidStateTransition,
    NotFoundError,
    PermissionDenied,
)
from booking_core.lifecycle.state_machine import BookingLifecycle
from booking_core.schemas.actor_schema import Permission, Role
from booking_core.schemas.booking_schema import TERMINAL_STATUSES, BookingStatus
from booking_core.schemas.event_schema import BookingStatusChanged
from tests.conftest import NOW, make_booking, make_employee

CANCELLER = make_employee("desk-1", permissions=[Permission.CANCEL_BOOKING])
STARTER = make_employee("desk-2", permissions=[Permission.START_BOOKING])
FINISHER = make_employee("desk-3", permissions=[Permission.COMPLETE_BOOKING])
VIEWER = make_employee("desk-4", role=Role.VIEWER, permissions=[Permission.VIEW_ALL_BOOKINGS])


class TestHappyPath:
    def test_full_lifecycle_with_admin(self, lifecycle, repository, admin):
        repository.add(make_booking())
        for target in (BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED):
            saved = lifecycle.update_status("BK-1", target, admin)
            assert saved.status == target
        assert repository.get("BK-1").version == 4

    def test_confirm_needs_any_management_permission(self, lifecycle, repository):
        repository.add(make_booking())
        saved = lifecycle.update_status("BK-1", BookingStatus.CONFIRMED, CANCELLER)
        assert saved.status == BookingStatus.CONFIRMED

    def test_notes_replaced_when_given(self, lifecycle, repository, admin):
        repository.add(make_booking())
        saved = lifecycle.update_status(
            "BK-1", BookingStatus.CONFIRMED, admin, notes="Nervous around dryers"
        )
        assert saved.notes == "Nervous around dryers"
        assert saved.updated_at == NOW

    def test_event_emitted_after_commit(self, lifecycle, repository, events, admin):
        repository.add(make_booking())
        lifecycle.update_status("BK-1", BookingStatus.CONFIRMED, admin, notify_customer=True)
        [event] = events.of_type(BookingStatusChanged)
        assert event.from_status == BookingStatus.PENDING
        assert event.to_status == BookingStatus.CONFIRMED
        assert event.actor_id == "admin-1"
        assert event.notify_customer is True


class TestTransitionTable:
    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
    @pytest.mark.parametrize("target", list(BookingStatus))
    def test_no_move_out_of_terminal_states(self, lifecycle, repository, admin, terminal, target):
        repository.add(make_booking(status=terminal))
        with pytest.raises(InvalidStateTransition):
            lifecycle.update_status("BK-1", target, admin)

    @pytest.mark.parametrize("current,target", [
        (BookingStatus.PENDING, BookingStatus.IN_PROGRESS),
        (BookingStatus.PENDING, BookingStatus.COMPLETED),
        (BookingStatus.PENDING, BookingStatus.NO_SHOW),
        (BookingStatus.CONFIRMED, BookingStatus.COMPLETED),
        (BookingStatus.CONFIRMED, BookingStatus.PENDING),
        (BookingStatus.IN_PROGRESS, BookingStatus.CONFIRMED),
        (BookingStatus.CONFIRMED, BookingStatus.CONFIRMED),
    ])
    def test_pairs_outside_the_table_are_rejected(self, lifecycle, repository, admin, current, target):
        repository.add(make_booking(status=current))
        with pytest.raises(InvalidStateTransition, match="Valid targets"):
            lifecycle.update_status("BK-1", target, admin)

    def test_illegal_move_leaves_booking_untouched(self, lifecycle, repository, events, admin):
        repository.add(make_booking(status=BookingStatus.CANCELLED))
        with pytest.raises(InvalidStateTransition):
            lifecycle.update_status("BK-1", BookingStatus.CONFIRMED, admin)
        assert repository.get("BK-1").version == 1
        assert events.events == []

    @pytest.mark.parametrize("current", [BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS])
    def test_no_show_reachable(self, lifecycle, repository, current):
        repository.add(make_booking(status=current))
        saved = lifecycle.update_status("BK-1", BookingStatus.NO_SHOW, CANCELLER)
        assert saved.status == BookingStatus.NO_SHOW


class TestPerTransitionAuthorization:
    def test_in_progress_canceller_cannot_complete_but_can_cancel(self, lifecycle, repository, events):
        repository.add(make_booking(status=BookingStatus.IN_PROGRESS))

        with pytest.raises(PermissionDenied):
            lifecycle.update_status("BK-1", BookingStatus.COMPLETED, CANCELLER)

        saved = lifecycle.update_status("BK-1", BookingStatus.CANCELLED, CANCELLER)
        assert saved.status == BookingStatus.CANCELLED
        [event] = events.events
        assert event.from_status == BookingStatus.IN_PROGRESS
        assert event.to_status == BookingStatus.CANCELLED

    def test_start_requires_start_permission(self, lifecycle, repository):
        repository.add(make_booking(status=BookingStatus.CONFIRMED))
        with pytest.raises(PermissionDenied):
            lifecycle.update_status("BK-1", BookingStatus.IN_PROGRESS, FINISHER)
        assert lifecycle.update_status("BK-1", BookingStatus.IN_PROGRESS, STARTER).status == (
            BookingStatus.IN_PROGRESS
        )

    def test_viewer_cannot_confirm(self, lifecycle, repository):
        repository.add(make_booking())
        with pytest.raises(PermissionDenied):
            lifecycle.update_status("BK-1", BookingStatus.CONFIRMED, VIEWER)

    def test_inactive_manager_is_denied(self, lifecycle, repository):
        repository.add(make_booking())
        manager = make_employee("mgr", role=Role.MANAGER, active=False)
        with pytest.raises(PermissionDenied):
            lifecycle.update_status("BK-1", BookingStatus.CONFIRMED, manager)

    def test_legality_checked_before_permission(self, lifecycle, repository):
        repository.add(make_booking(status=BookingStatus.COMPLETED))
        with pytest.raises(InvalidStateTransition):
            lifecycle.update_status("BK-1", BookingStatus.CANCELLED, VIEWER)

    def test_allowed_targets_reflect_actor(self, lifecycle, admin):
        booking = make_booking(status=BookingStatus.CONFIRMED)
        assert lifecycle.allowed_targets(booking, STARTER) == [BookingStatus.IN_PROGRESS]
        assert lifecycle.allowed_targets(booking, CANCELLER) == [
            BookingStatus.CANCELLED, BookingStatus.NO_SHOW,
        ]
        assert set(lifecycle.allowed_targets(booking, admin)) == {
            BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED, BookingStatus.NO_SHOW,
        }
        assert lifecycle.allowed_targets(make_booking(status=BookingStatus.NO_SHOW), admin) == []


class TestPolicy:
    def test_cancellations_disabled_by_company(self, repository, catalog, directory, events, admin):
        lifecycle = BookingLifecycle(
            repository, catalog, directory, events, policy=Policy(allow_cancellations=False)
        )
        repository.add(make_booking())
        with pytest.raises(PermissionDenied, match="Cancellations"):
            lifecycle.update_status("BK-1", BookingStatus.CANCELLED, admin)
        assert BookingStatus.CANCELLED not in lifecycle.allowed_targets(make_booking(), admin)


class TestErrors:
    def test_missing_booking(self, lifecycle, admin):
        with pytest.raises(NotFoundError):
            lifecycle.update_status("BK-404", BookingStatus.CONFIRMED, admin)

    def test_stale_expected_version(self, lifecycle, repository, admin):
        repository.add(make_booking(version=4))
        with pytest.raises(ConflictError):
            lifecycle.update_status("BK-1", BookingStatus.CONFIRMED, admin, expected_version=3)


class TestConcurrentSurfaces:
    def test_two_surfaces_racing_produce_one_winner(self, lifecycle, repository, admin):
        repository.add(make_booking(version=3))
        web = make_employee("web-user", role=Role.MANAGER)
        mobile = make_employee("mobile-user", permissions=[Permission.CANCEL_BOOKING])

        outcomes: dict[str, object] = {}
        barrier = threading.Barrier(2)

        def act(name, actor, target):
            barrier.wait()
            try:
                outcomes[name] = lifecycle.update_status(
                    "BK-1", target, actor, expected_version=3
                )
            except ConflictError as exc:
                outcomes[name] = exc

        threads = [
            threading.Thread(target=act, args=("web", web, BookingStatus.CONFIRMED)),
            threading.Thread(target=act, args=("mobile", mobile, BookingStatus.CANCELLED)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        conflicts = [o for o in outcomes.values() if isinstance(o, ConflictError)]
        winners = [o for o in outcomes.values() if not isinstance(o, ConflictError)]
        assert len(conflicts) == 1
        assert len(winners) == 1
        assert winners[0].version == 4
        assert repository.get("BK-1").version == 4

    def test_save_checks_version_atomically(self, repository):
        booking = repository.add(make_booking(version=3))
        repository.save(booking.model_copy(update={"notes": "first"}), expected_version=3)
        with pytest.raises(ConflictError):
            repository.save(booking.model_copy(update={"notes": "second"}), expected_version=3)
        assert repository.get("BK-1").notes == "first"


class TestTerminalHelper:
    @pytest.mark.parametrize("status", list(BookingStatus))
    def test_is_terminal(self, status):
        expected = status in {BookingStatus.COMPLETED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
        assert BookingLifecycle.is_terminal(status) is expected
        assert make_booking(status=status).is_terminal is expected
