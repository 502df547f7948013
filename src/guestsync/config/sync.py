"""Synchronization defaults for the reconciliation service."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_flag, env_int
from .errors import ConfigurationError

DEFAULT_DEBOUNCE_MS = 5000
DEFAULT_BATCH_SIZE = 200
DEFAULT_DUPLICATE_THRESHOLD = 75
DEFAULT_DUPLICATE_CACHE_TTL_MS = 3_600_000
DEFAULT_POLL_INTERVAL_MINUTES = 5
DEFAULT_INITIAL_SYNC_MONTHS = 24


@dataclass(frozen=True, slots=True)
class SyncConfig:
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    batch_size: int = DEFAULT_BATCH_SIZE
    duplicate_detection_enabled: bool = True
    duplicate_threshold: int = DEFAULT_DUPLICATE_THRESHOLD
    duplicate_cache_ttl_ms: int = DEFAULT_DUPLICATE_CACHE_TTL_MS
    poll_interval_minutes: int = DEFAULT_POLL_INTERVAL_MINUTES
    initial_sync_months: int = DEFAULT_INITIAL_SYNC_MONTHS

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ConfigurationError("BATCH_SIZE must be positive")
        if not 0 <= self.duplicate_threshold <= 100:
            raise ConfigurationError("DUPLICATE_THRESHOLD must be between 0 and 100")
        if self.debounce_ms < 0 or self.duplicate_cache_ttl_ms < 0:
            raise ConfigurationError("Durations must be non-negative")

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000

    @property
    def duplicate_cache_ttl_seconds(self) -> float:
        return self.duplicate_cache_ttl_ms / 1000

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_minutes * 60.0


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        debounce_ms=env_int("DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS),
        batch_size=env_int("BATCH_SIZE", DEFAULT_BATCH_SIZE),
        duplicate_detection_enabled=env_flag("ENABLE_DUPLICATE_DETECTION", default=True),
        duplicate_threshold=env_int("DUPLICATE_THRESHOLD", DEFAULT_DUPLICATE_THRESHOLD),
        duplicate_cache_ttl_ms=env_int("DUPLICATE_CACHE_TTL", DEFAULT_DUPLICATE_CACHE_TTL_MS),
        poll_interval_minutes=env_int("POLL_INTERVAL_MINUTES", DEFAULT_POLL_INTERVAL_MINUTES),
        initial_sync_months=env_int("INITIAL_SYNC_MONTHS", DEFAULT_INITIAL_SYNC_MONTHS),
    )
