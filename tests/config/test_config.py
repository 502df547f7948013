from __future__ import annotations

from datetime import date

import pytest

from guestsync.config import (
    ConfigurationError,
    InvalidConfigurationError,
    MissingConfigurationError,
    SyncConfig,
    env_flag,
    env_int,
    get_opera_config,
    get_salesforce_config,
    get_sync_config,
    optional_env,
    require_env_var,
    require_env_vars,
)

SYNC_VARS = (
    "DEBOUNCE_MS",
    "BATCH_SIZE",
    "ENABLE_DUPLICATE_DETECTION",
    "DUPLICATE_THRESHOLD",
    "DUPLICATE_CACHE_TTL",
    "POLL_INTERVAL_MINUTES",
    "INITIAL_SYNC_MONTHS",
)


def test_require_env_vars_returns_trimmed_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", " value ")

    assert require_env_vars(["EXAMPLE_VAR"]) == {"EXAMPLE_VAR": "value"}


def test_require_env_vars_lists_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("MISSING_B", raising=False)
    monkeypatch.setenv("MISSING_A", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["MISSING_B", "MISSING_A"])

    assert "MISSING_A, MISSING_B" in str(exc.value)


def test_require_env_var_handles_blank_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXAMPLE_VAR", "   ")

    with pytest.raises(MissingConfigurationError):
        require_env_var("EXAMPLE_VAR")


def test_optional_env_falls_back_on_blank(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPTIONAL_VAR", "")

    assert optional_env("OPTIONAL_VAR", "fallback") == "fallback"


def test_env_int_rejects_garbage(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BATCH_SIZE", "lots")

    with pytest.raises(InvalidConfigurationError, match="BATCH_SIZE"):
        env_int("BATCH_SIZE", 200)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, True), ("false", False), ("FALSE", False), ("true", True), ("0", True)],
)
def test_env_flag_only_literal_false_disables(
    monkeypatch: pytest.MonkeyPatch, raw: str | None, expected: bool
) -> None:
    if raw is None:
        monkeypatch.delenv("ENABLE_DUPLICATE_DETECTION", raising=False)
    else:
        monkeypatch.setenv("ENABLE_DUPLICATE_DETECTION", raw)

    assert env_flag("ENABLE_DUPLICATE_DETECTION", default=True) is expected


def test_sync_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in SYNC_VARS:
        monkeypatch.delenv(name, raising=False)

    config = get_sync_config()

    assert config == SyncConfig()
    assert config.debounce_seconds == 5.0
    assert config.batch_size == 200
    assert config.duplicate_threshold == 75
    assert config.duplicate_cache_ttl_seconds == 3600.0
    assert config.poll_interval_seconds == 300.0


def test_sync_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEBOUNCE_MS", "250")
    monkeypatch.setenv("BATCH_SIZE", "50")
    monkeypatch.setenv("ENABLE_DUPLICATE_DETECTION", "false")
    monkeypatch.setenv("DUPLICATE_THRESHOLD", "80")
    monkeypatch.setenv("DUPLICATE_CACHE_TTL", "60000")

    config = get_sync_config()

    assert config.debounce_seconds == 0.25
    assert config.batch_size == 50
    assert not config.duplicate_detection_enabled
    assert config.duplicate_threshold == 80
    assert config.duplicate_cache_ttl_seconds == 60.0


@pytest.mark.parametrize(
    "overrides",
    [{"batch_size": 0}, {"duplicate_threshold": 101}, {"debounce_ms": -1}],
)
def test_sync_config_validates_ranges(overrides: dict[str, int]) -> None:
    with pytest.raises(ConfigurationError):
        SyncConfig(**overrides)


def _set_salesforce_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SF_INSTANCE_URL", "https://example.my.salesforce.com/")
    monkeypatch.setenv("SF_CLIENT_ID", "client-id")
    monkeypatch.setenv("SF_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("SF_REFRESH_TOKEN", "refresh-token")
    for name in ("SF_LOGIN_URL", "SF_API_VERSION", "SF_OBJECT", "SF_GUEST_CONTACT_LOOKUP"):
        monkeypatch.delenv(name, raising=False)


def test_salesforce_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_salesforce_env(monkeypatch)
    monkeypatch.setenv("SF_OBJECT", "Guest_Stay__c")

    config = get_salesforce_config()

    assert config.instance_url == "https://example.my.salesforce.com"
    assert config.login_url == "https://login.salesforce.com"
    assert config.data_path == "/services/data/v59.0"
    assert config.guest_object == "Guest_Stay__c"
    assert config.contact_lookup == "Contact__c"
    assert config.resilience.base_url == config.instance_url
    assert config.resilience.ratelimit is not None


def test_salesforce_config_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_salesforce_env(monkeypatch)
    monkeypatch.delenv("SF_REFRESH_TOKEN")

    with pytest.raises(MissingConfigurationError, match="SF_REFRESH_TOKEN"):
        get_salesforce_config()


def _set_oracle_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORACLE_HOST", "opera-db")
    monkeypatch.setenv("ORACLE_USER", "sync")
    monkeypatch.setenv("ORACLE_PASSWORD", "secret")
    for name in (
        "ORACLE_PORT",
        "ORACLE_SID",
        "ORACLE_SERVICE",
        "OPERA_SCHEMA",
        "OPERA_RESORT",
        "OPERA_TIMEZONE",
        "OVERRIDE_TODAY",
    ):
        monkeypatch.delenv(name, raising=False)


def test_opera_config_with_sid(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_oracle_env(monkeypatch)
    monkeypatch.setenv("ORACLE_SID", "OPERA")
    monkeypatch.setenv("OVERRIDE_TODAY", "2026-02-15")

    config = get_opera_config()

    assert config.port == 1521
    assert config.schema == "OPERA"
    assert config.override_today == date(2026, 2, 15)
    assert "(SID=OPERA)" in config.dsn()
    url = config.sqlalchemy_url()
    assert url.drivername == "oracle+oracledb"
    assert url.database == "OPERA"


def test_opera_config_with_service_name(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_oracle_env(monkeypatch)
    monkeypatch.setenv("ORACLE_SERVICE", "OPERAPDB")
    monkeypatch.setenv("ORACLE_PORT", "1522")

    config = get_opera_config()

    assert config.dsn() == "opera-db:1522/OPERAPDB"
    assert config.sqlalchemy_url().query == {"service_name": "OPERAPDB"}


def test_opera_config_needs_sid_or_service(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_oracle_env(monkeypatch)

    with pytest.raises(MissingConfigurationError, match="ORACLE_SID or ORACLE_SERVICE"):
        get_opera_config()


def test_opera_config_rejects_bad_override_date(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_oracle_env(monkeypatch)
    monkeypatch.setenv("ORACLE_SID", "OPERA")
    monkeypatch.setenv("OVERRIDE_TODAY", "15/02/2026")

    with pytest.raises(InvalidConfigurationError, match="OVERRIDE_TODAY"):
        get_opera_config()
