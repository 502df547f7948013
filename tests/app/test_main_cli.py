from __future__ import annotations

from datetime import UTC, datetime

import pytest

from guestsync import main as main_module
from guestsync.app import GuestSyncApp, build_app
from guestsync.config import MissingConfigurationError, SyncConfig
from guestsync.domain.ports import SyncState
from tests.helpers.guests import (
    FakeCrmGateway,
    FakeGuestSource,
    InMemorySyncStateStore,
    make_record,
)


def _install_app(
    monkeypatch: pytest.MonkeyPatch,
    source: FakeGuestSource,
    gateway: FakeCrmGateway,
    store: InMemorySyncStateStore | None = None,
) -> None:
    def fake_build_app() -> GuestSyncApp:
        return build_app(
            sync_config=SyncConfig(),
            source=source,
            gateway=gateway,
            store=store or InMemorySyncStateStore(),
        )

    monkeypatch.setattr(main_module, "build_app", fake_build_app)


def test_sync_command_prints_counts(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    source = FakeGuestSource([make_record("1", "ana@gmail.com", "Ana", "Diaz")])
    _install_app(monkeypatch, source, FakeCrmGateway())

    main_module.main(["sync", "1", "1"])

    out = capsys.readouterr().out
    assert "Identities: 1 created, 0 failed" in out
    assert "Stays: 1 created, 0 updated, 0 unchanged, 0 failed" in out
    assert source.fetched == [["1"]]


def test_sync_command_exits_non_zero_when_every_write_fails(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    gateway = FakeCrmGateway()
    gateway.reject_identity_emails.add("ana@gmail.com")
    source = FakeGuestSource([make_record("1", "ana@gmail.com", "Ana", "Diaz")])
    _install_app(monkeypatch, source, gateway)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["sync", "1"])

    assert excinfo.value.code == 1
    assert "[identity-create-failed] ana@gmail.com" in capsys.readouterr().out


def test_catch_up_with_since_override(monkeypatch: pytest.MonkeyPatch) -> None:
    source = FakeGuestSource()
    store = InMemorySyncStateStore(SyncState(last_sync_timestamp=datetime(2026, 1, 1, tzinfo=UTC)))
    _install_app(monkeypatch, source, FakeCrmGateway(), store)

    main_module.main(["catch-up", "--since", "2026-02-01T03:00:00+03:00"])

    assert source.since_calls == [datetime(2026, 2, 1, 0, 0, tzinfo=UTC)]


def test_catch_up_uses_stored_watermark(monkeypatch: pytest.MonkeyPatch) -> None:
    watermark = datetime(2026, 2, 14, 6, tzinfo=UTC)
    source = FakeGuestSource()
    _install_app(
        monkeypatch,
        source,
        FakeCrmGateway(),
        InMemorySyncStateStore(SyncState(last_sync_timestamp=watermark)),
    )

    main_module.main(["catch-up"])

    assert source.since_calls == [watermark]


def test_invalid_since_exits_with_usage_error(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _install_app(monkeypatch, FakeGuestSource(), FakeCrmGateway())

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["catch-up", "--since", "yesterday"])

    assert excinfo.value.code == 2
    assert "Invalid ISO timestamp: yesterday" in capsys.readouterr().err


def test_missing_configuration_exits_with_code_two(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    def failing_build_app() -> GuestSyncApp:
        raise MissingConfigurationError("Missing configuration for: SF_CLIENT_ID")

    monkeypatch.setattr(main_module, "build_app", failing_build_app)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main(["check-cache"])

    assert excinfo.value.code == 2
    assert "SF_CLIENT_ID" in capsys.readouterr().err


def test_check_cache_prints_statistics(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _install_app(monkeypatch, FakeGuestSource(), FakeCrmGateway())

    main_module.main(["check-cache"])

    out = capsys.readouterr().out
    assert "enabled=True threshold=75 cached=True degraded=False" in out
    assert "Records: 0" in out


def test_command_is_required() -> None:
    with pytest.raises(SystemExit) as excinfo:
        main_module.main([])

    assert excinfo.value.code == 2
