"""Tests for configuration loading and validation."""

from dataclasses import replace

import pytest

from booking_core.access.policy import Policy
from booking_core.config import AppConfig, PolicyConfig, SchedulingConfig, _safe_bool, _validate_config


class TestConfigValidation:
    def test_default_config_passes_validation(self):
        config = AppConfig()
        _validate_config(config)  # should not raise

    def test_pixels_per_hour_must_be_positive(self):
        config = AppConfig(scheduling=replace(SchedulingConfig(), pixels_per_hour=0))
        with pytest.raises(ValueError, match="PIXELS_PER_HOUR"):
            _validate_config(config)

    @pytest.mark.parametrize("retries", [-1, 2, 5])
    def test_conflict_retries_capped_at_one(self, retries):
        config = AppConfig(scheduling=replace(SchedulingConfig(), conflict_retries=retries))
        with pytest.raises(ValueError, match="CONFLICT_RETRIES"):
            _validate_config(config)

    def test_idempotency_cache_size(self):
        config = AppConfig(scheduling=replace(SchedulingConfig(), idempotency_cache_size=0))
        with pytest.raises(ValueError, match="IDEMPOTENCY_CACHE_SIZE"):
            _validate_config(config)

    def test_negative_advance_cap(self):
        config = AppConfig(policy=replace(PolicyConfig(), max_advance_booking_days=-1))
        with pytest.raises(ValueError, match="MAX_ADVANCE_BOOKING_DAYS"):
            _validate_config(config)


class TestEnvParsing:
    @pytest.mark.parametrize("raw,expected", [
        ("true", True), ("1", True), ("YES", True), ("false", False), ("0", False), ("off", False),
    ])
    def test_booleans(self, monkeypatch, raw, expected):
        monkeypatch.setenv("TEST_FLAG", raw)
        assert _safe_bool("TEST_FLAG", "true") is expected

    def test_bad_boolean(self, monkeypatch):
        monkeypatch.setenv("TEST_FLAG", "maybe")
        with pytest.raises(ValueError, match="TEST_FLAG"):
            _safe_bool("TEST_FLAG", "true")


class TestPolicy:
    def test_from_config_matches_settings_types(self):
        policy = Policy.from_config()
        assert isinstance(policy.allow_cancellations, bool)
        assert isinstance(policy.allow_rescheduling, bool)

    def test_advance_cap(self):
        assert Policy().advance_days_for(30) == 30
        assert Policy(max_advance_booking_days=7).advance_days_for(30) == 7
        assert Policy(max_advance_booking_days=60).advance_days_for(30) == 30
