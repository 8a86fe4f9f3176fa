"""Tests for shared utilities."""

import io
import logging
from datetime import datetime, timedelta

import pytest

from booking_core.logging_context import (
    NO_REQUEST,
    RequestIdFilter,
    get_request_id,
    get_request_logger,
    install_request_id_filter,
    request_context,
)
from booking_core.utils import overlaps, round_half_up

T = datetime(2025, 3, 18, 9, 0)
HOUR = timedelta(hours=1)


class TestOverlaps:
    def test_touching_intervals_do_not_overlap(self):
        assert not overlaps(T, T + HOUR, T + HOUR, T + 2 * HOUR)

    def test_containment_overlaps(self):
        assert overlaps(T, T + 3 * HOUR, T + HOUR, T + 2 * HOUR)

    def test_partial_overlap_is_symmetric(self):
        a = (T, T + HOUR)
        b = (T + HOUR / 2, T + 2 * HOUR)
        assert overlaps(*a, *b) and overlaps(*b, *a)


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,expected", [
        (0.0, 0), (0.49, 0), (0.5, 1), (1.5, 2), (-0.5, 0), (-0.51, -1), (-1.5, -1),
    ])
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected


class TestRequestId:
    def test_context_binds_and_restores(self):
        assert get_request_id() == NO_REQUEST
        with request_context("mobile-42") as rid:
            assert rid == "mobile-42"
            assert get_request_id() == "mobile-42"
        assert get_request_id() == NO_REQUEST

    def test_missing_id_is_generated_from_surface(self):
        with request_context(None, surface="mobile") as rid:
            assert rid.startswith("mobile-")
            assert get_request_id() == rid

    def test_handler_filter_makes_format_resolvable(self):
        handler = logging.StreamHandler(io.StringIO())
        handler.setFormatter(logging.Formatter("[%(request_id)s] %(message)s"))
        install_request_id_filter([handler])
        install_request_id_filter([handler])
        assert sum(isinstance(f, RequestIdFilter) for f in handler.filters) == 1

        logger = logging.getLogger("booking_core.tests.plain")
        logger.addHandler(handler)
        try:
            with request_context("web-7"):
                logger.warning("moved")
        finally:
            logger.removeHandler(handler)
        assert handler.stream.getvalue() == "[web-7] moved\n"

    def test_request_logger_gets_one_filter(self):
        logger = get_request_logger("booking_core.tests")
        get_request_logger("booking_core.tests")
        assert sum(isinstance(f, RequestIdFilter) for f in logger.filters) == 1
