"""
Centralized configuration with environment variable overrides.

Scheduling knobs and the default company policy live here. Nothing in
the lifecycle, availability or reschedule logic hardcodes these values.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

from booking_core.logging_context import install_request_id_filter

load_dotenv()

logger = logging.getLogger(__name__)

MAX_CONFLICT_RETRIES = 1


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_optional_int(env_var: str) -> Optional[int]:
    """Parse an optional integer; an unset or empty variable means no value."""
    raw = os.getenv(env_var, "")
    if not raw.strip():
        return None
    return _safe_int(env_var, raw)


def _safe_bool(env_var: str, default: str) -> bool:
    """Parse a boolean flag ("true"/"false", "1"/"0", "yes"/"no")."""
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class SchedulingConfig:
    """Calendar and mutation-retry settings shared by web and mobile."""

    pixels_per_hour: int = _safe_int("PIXELS_PER_HOUR", "60")
    conflict_retries: int = _safe_int("CONFLICT_RETRIES", "1")
    idempotency_cache_size: int = _safe_int("IDEMPOTENCY_CACHE_SIZE", "1024")


@dataclass(frozen=True)
class PolicyConfig:
    """Default plan and company-settings gates for scheduling actions."""

    allow_cancellations: bool = _safe_bool("ALLOW_CANCELLATIONS", "true")
    allow_rescheduling: bool = _safe_bool("ALLOW_RESCHEDULING", "true")
    allow_assignment: bool = _safe_bool("ALLOW_ASSIGNMENT", "true")
    max_advance_booking_days: Optional[int] = _safe_optional_int("MAX_ADVANCE_BOOKING_DAYS")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    scheduling: SchedulingConfig = field(default_factory=SchedulingConfig)
    policy: PolicyConfig = field(default_factory=PolicyConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    surface: str = os.getenv("CLIENT_SURFACE", "web")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.scheduling.pixels_per_hour < 1:
        raise ValueError(
            f"PIXELS_PER_HOUR must be >= 1, got {config.scheduling.pixels_per_hour}"
        )
    if not 0 <= config.scheduling.conflict_retries <= MAX_CONFLICT_RETRIES:
        raise ValueError(
            f"CONFLICT_RETRIES must be between 0 and {MAX_CONFLICT_RETRIES}, "
            f"got {config.scheduling.conflict_retries}"
        )
    if config.scheduling.idempotency_cache_size < 1:
        raise ValueError(
            "IDEMPOTENCY_CACHE_SIZE must be >= 1, "
            f"got {config.scheduling.idempotency_cache_size}"
        )
    cap = config.policy.max_advance_booking_days
    if cap is not None and cap < 0:
        raise ValueError(f"MAX_ADVANCE_BOOKING_DAYS must be >= 0, got {cap}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [%(request_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_request_id_filter(logging.getLogger().handlers)
    logger.info("Configuration loaded for surface '%s'", config.surface)
    return config


# Singleton instance
settings = load_config()
