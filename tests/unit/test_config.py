import pytest

from inbox_core.config import Settings


@pytest.mark.unit
def test_defaults(monkeypatch):
    for name in ("STATE_SYNC_ENABLED", "STATE_SYNC_INTERVAL_SECONDS", "STALE_LOCK_MINUTES", "STATE_SYNC_AUTO_CORRECT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None, mongodb_uri="mongodb://localhost:27017")

    assert settings.state_sync_enabled is True
    assert settings.state_sync_interval_seconds == 30.0
    assert settings.stale_lock_minutes == 10
    assert settings.state_sync_auto_correct is False
    assert settings.database_name == "inbox_core"


@pytest.mark.unit
def test_reads_environment(monkeypatch):
    monkeypatch.setenv("MONGODB_URI", "mongodb://db:27017")
    monkeypatch.setenv("STATE_SYNC_INTERVAL_SECONDS", "5")
    monkeypatch.setenv("state_sync_auto_correct", "true")
    monkeypatch.setenv("LOG_FORMAT", "json")

    settings = Settings(_env_file=None)

    assert settings.mongodb_uri == "mongodb://db:27017"
    assert settings.state_sync_interval_seconds == 5.0
    assert settings.state_sync_auto_correct is True
    assert settings.log_format == "json"
